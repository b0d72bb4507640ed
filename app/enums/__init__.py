"""
Enums Module
============

This module provides enumeration types for the EcoSterile application.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.common import (
    DataMode,
    PHStatus,
    PumpOrigin,
    PumpStatus,
    PumpType,
    ReadingSource,
    TimeRange,
)
from app.enums.events import (
    ControlEvent,
    DeviceEvent,
    EventType,
    SensorEvent,
    SessionEvent,
)

__all__ = [
    "ControlEvent",
    "DataMode",
    "DeviceEvent",
    "EventType",
    "PHStatus",
    "PumpOrigin",
    "PumpStatus",
    "PumpType",
    "ReadingSource",
    "SensorEvent",
    "SessionEvent",
    "TimeRange",
]
