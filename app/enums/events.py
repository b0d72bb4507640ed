from enum import Enum
from typing import TypeAlias


class SensorEvent(str, Enum):
    PH_UPDATE = "ph_update"


class ControlEvent(str, Enum):
    """Events published by the pH regulation controller."""

    DATA_MODE_CHANGED = "data_mode_changed"
    PUMP_ACTIVATED = "pump_activated"
    PUMP_STATUS_CHANGED = "pump_status_changed"
    OPTIMAL_RANGE_CHANGED = "optimal_range_changed"


class DeviceEvent(str, Enum):
    CONNECTIVITY_CHANGED = "connectivity_changed"


class SessionEvent(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"


EventType: TypeAlias = SensorEvent | ControlEvent | DeviceEvent | SessionEvent
