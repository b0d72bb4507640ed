"""
Common Enumerations
====================

Enums shared by the pH controller, the monitoring service and the API layer.
"""

from enum import Enum


class DataMode(str, Enum):
    """
    Where the displayed pH series currently comes from.
    Used by: PHRegulationController, status snapshot
    """
    LIVE = "live"
    SIMULATED = "simulated"

    def __str__(self) -> str:
        return self.value


class ReadingSource(str, Enum):
    """Origin tag carried by every Reading."""
    SENSOR = "sensor"
    SIMULATED = "simulated"

    def __str__(self) -> str:
        return self.value


class PumpType(str, Enum):
    """
    Corrective pump kinds.
    BASIC raises pH, ACIDIC lowers it.
    """
    BASIC = "basic"
    ACIDIC = "acidic"

    def __str__(self) -> str:
        return self.value


class PumpStatus(str, Enum):
    """Pump activity shown on the status indicator."""
    IDLE = "idle"
    BASIC = "basic"
    ACIDIC = "acidic"

    @classmethod
    def for_pump(cls, pump_type: PumpType) -> "PumpStatus":
        return cls(pump_type.value)

    def __str__(self) -> str:
        return self.value


class PumpOrigin(str, Enum):
    """Who decided a pump activation."""
    CONTROLLER = "controller"
    DEVICE = "device"

    def __str__(self) -> str:
        return self.value


class PHStatus(str, Enum):
    """
    Classification of a pH value against the optimal range.
    Used by: ph_analytics, status snapshot
    """
    TOO_ACIDIC = "too_acidic"
    OPTIMAL = "optimal"
    TOO_BASIC = "too_basic"

    def __str__(self) -> str:
        return self.value


class TimeRange(str, Enum):
    """Chart windows offered by the dashboard."""
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"

    @property
    def milliseconds(self) -> int:
        hours = {"24h": 24, "7d": 7 * 24, "30d": 30 * 24}[self.value]
        return hours * 60 * 60 * 1000

    @classmethod
    def parse(cls, value: str | None) -> "TimeRange":
        """Parse a range string, falling back to the last 24 hours."""
        try:
            return cls(value)
        except ValueError:
            return cls.LAST_24H

    def __str__(self) -> str:
        return self.value
