from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.domain.ph import OptimalRange

NOT_PROVIDED = "Not provided"


@dataclass
class FarmProfile:
    """Per-user farm settings read at session start."""

    user_id: int
    farm_name: str | None = None
    farm_location: str | None = None
    current_crop: str | None = None
    crop_min_ph: float | None = None
    crop_max_ph: float | None = None
    last_visited: str | None = None

    @property
    def has_location(self) -> bool:
        location = (self.farm_location or "").strip()
        return bool(location) and location != NOT_PROVIDED

    def optimal_range(self, default: OptimalRange) -> OptimalRange:
        """Stored crop band, or ``default`` when either bound is missing."""
        if self.crop_min_ph is None or self.crop_max_ph is None:
            return default
        return OptimalRange(float(self.crop_min_ph), float(self.crop_max_ph))

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "farm_name": self.farm_name,
            "farm_location": self.farm_location,
            "current_crop": self.current_crop,
            "crop_min_ph": self.crop_min_ph,
            "crop_max_ph": self.crop_max_ph,
            "last_visited": self.last_visited,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FarmProfile":
        return cls(
            user_id=int(row["user_id"]),
            farm_name=row.get("farm_name"),
            farm_location=row.get("farm_location"),
            current_crop=row.get("current_crop"),
            crop_min_ph=row.get("crop_min_ph"),
            crop_max_ph=row.get("crop_max_ph"),
            last_visited=row.get("last_visited"),
        )
