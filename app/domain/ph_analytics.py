from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from app.domain.ph import PH_SCALE_MAX, PH_SCALE_MIN, OptimalRange, PumpEvent, Reading
from app.enums import PHStatus, PumpType, TimeRange


def classify_ph(value: float, optimal_range: OptimalRange) -> PHStatus:
    """Classify against the band; boundary values count as optimal."""
    if value < optimal_range.min:
        return PHStatus.TOO_ACIDIC
    if value > optimal_range.max:
        return PHStatus.TOO_BASIC
    return PHStatus.OPTIMAL


def scale_position(value: float) -> float:
    """Gauge position of ``value`` on the 0-14 scale, as a percentage."""
    span = PH_SCALE_MAX - PH_SCALE_MIN
    percentage = (value - PH_SCALE_MIN) / span * 100.0
    return max(0.0, min(100.0, percentage))


def filter_by_range(readings: Iterable[Reading], time_range: TimeRange, now_ms: int) -> list[Reading]:
    cutoff = now_ms - time_range.milliseconds
    return [reading for reading in readings if reading.timestamp > cutoff]


@dataclass(frozen=True)
class PHSummary:
    count: int
    average: float | None
    minimum: float | None
    maximum: float | None
    basic_pump_count: int
    acidic_pump_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "average": round(self.average, 2) if self.average is not None else None,
            "min": self.minimum,
            "max": self.maximum,
            "basic_pump_count": self.basic_pump_count,
            "acidic_pump_count": self.acidic_pump_count,
        }


def summarize(readings: Sequence[Reading], pump_events: Sequence[PumpEvent]) -> PHSummary:
    values = [reading.value for reading in readings]
    basic = sum(1 for event in pump_events if event.pump_type == PumpType.BASIC)
    acidic = sum(1 for event in pump_events if event.pump_type == PumpType.ACIDIC)

    if not values:
        return PHSummary(0, None, None, None, basic, acidic)

    return PHSummary(
        count=len(values),
        average=sum(values) / len(values),
        minimum=min(values),
        maximum=max(values),
        basic_pump_count=basic,
        acidic_pump_count=acidic,
    )
