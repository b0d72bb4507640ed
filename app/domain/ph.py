"""
pH Domain Objects
=================
Value objects and session state for pH regulation.

Readings and pump events are immutable; ControllerState is the single
mutable record owned by one PHRegulationController.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from app.domain.exceptions import ValidationError
from app.enums import DataMode, PumpOrigin, PumpStatus, PumpType, ReadingSource
from app.utils.time import ms_to_iso

# Full pH scale shown on the dashboard gauge
PH_SCALE_MIN = 0.0
PH_SCALE_MAX = 14.0

T = TypeVar("T")


@dataclass(frozen=True)
class Reading:
    """A single pH sample."""

    value: float
    timestamp: int  # epoch milliseconds
    source: ReadingSource = ReadingSource.SENSOR

    @property
    def is_sensor(self) -> bool:
        return self.source == ReadingSource.SENSOR

    def is_valid(self) -> bool:
        """Finite numeric value; out-of-scale values are still valid."""
        try:
            return math.isfinite(float(self.value))
        except (TypeError, ValueError):
            return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "timestamp": self.timestamp,
            "recorded_at": ms_to_iso(self.timestamp),
            "source": self.source.value,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Reading":
        return cls(
            value=float(row["value"]),
            timestamp=int(row["timestamp_ms"]),
            source=ReadingSource(row.get("source") or ReadingSource.SENSOR.value),
        )


@dataclass(frozen=True)
class PumpEvent:
    """A corrective actuation, decided by the controller or reported by the device."""

    pump_type: PumpType
    reagent: str
    concentration: str
    ph_before: float | None
    timestamp: int
    origin: PumpOrigin = PumpOrigin.CONTROLLER

    def to_dict(self) -> dict[str, Any]:
        return {
            "pump_type": self.pump_type.value,
            "reagent": self.reagent,
            "concentration": self.concentration,
            "ph_before": self.ph_before,
            "timestamp": self.timestamp,
            "recorded_at": ms_to_iso(self.timestamp),
            "origin": self.origin.value,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PumpEvent":
        ph_before = row.get("ph_before")
        return cls(
            pump_type=PumpType(row["pump_type"]),
            reagent=row.get("reagent") or "",
            concentration=row.get("concentration") or "",
            ph_before=float(ph_before) if ph_before is not None else None,
            timestamp=int(row["timestamp_ms"]),
            origin=PumpOrigin(row.get("origin") or PumpOrigin.CONTROLLER.value),
        )


@dataclass(frozen=True)
class OptimalRange:
    """Acceptable pH band for the selected crop. Both bounds are in range."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.min) and math.isfinite(self.max)):
            raise ValidationError("pH range bounds must be finite numbers")
        if self.min > self.max:
            raise ValidationError(
                f"pH range minimum {self.min} exceeds maximum {self.max}",
                detail={"min": self.min, "max": self.max},
            )

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass
class ControllerState:
    """Mutable state of one monitoring session."""

    mode: DataMode = DataMode.LIVE
    last_real_sample_at: int | None = None
    last_pump_at: int | None = None
    current_value: float | None = None
    pump_status: PumpStatus = PumpStatus.IDLE
    device_connected: bool = False
    last_update_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "last_real_sample_at": self.last_real_sample_at,
            "last_pump_at": self.last_pump_at,
            "current_value": self.current_value,
            "pump_status": self.pump_status.value,
            "device_connected": self.device_connected,
            "last_update_at": self.last_update_at,
            "last_update": ms_to_iso(self.last_update_at),
        }


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a store or session operation that must not raise."""

    success: bool
    value: T | None = None
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, value: T | None = None) -> "OperationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, **detail: Any) -> "OperationResult[T]":
        return cls(success=False, error=error, detail=dict(detail))

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        payload: dict[str, Any] = {"success": self.success, "value": value, "error": self.error}
        if self.detail:
            payload["detail"] = self.detail
        return payload
