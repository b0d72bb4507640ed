"""
Crop Recommendation Scorer
==========================

Ranks the crop catalog for a farm profile and calendar month.

Composite score = 3 x seasonal + 2 x location + 1 x water, where each part is
on a 0-100 scale:

- seasonal: 100 in-season, 60 in an adjacent month, 30 off-season
- location: 100 exact region, 70 state-level match, 50 unknown location, 40 otherwise
- water: pH-midpoint proxy, ``100 - 10 * |midpoint - 6.5|`` clamped to [30, 100]

The water part stands in for rainfall data and only looks at the crop's
ideal pH band. Ranking is a stable sort, so equal scores keep catalog order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.domain.crops import CropSpec
from app.domain.farm_profile import FarmProfile

SEASONAL_WEIGHT = 3
LOCATION_WEIGHT = 2
WATER_WEIGHT = 1

WATER_IDEAL_PH = 6.5
WATER_SCORE_MIN = 30.0
WATER_SCORE_MAX = 100.0

DEFAULT_LIMIT = 10

# Month number (1 = January) -> crops in season
SEASONAL_CROPS: dict[int, frozenset[str]] = {
    1: frozenset({"wheat", "barley", "rye", "peas", "carrot", "radish", "turnip", "spinach",
                  "lettuce", "mustard", "cabbage", "cauliflower", "broccoli"}),
    2: frozenset({"wheat", "barley", "rye", "peas", "carrot", "radish", "spinach", "lettuce",
                  "mustard", "cabbage"}),
    3: frozenset({"chickpea", "moong", "urad", "barley", "wheat", "tomato", "cucumber", "squash",
                  "okra", "pepper"}),
    4: frozenset({"rice", "maize", "cotton", "sugarcane", "tomato", "onion", "garlic", "chili",
                  "eggplant"}),
    5: frozenset({"rice", "maize", "cotton", "sugarcane", "millet", "sorghum", "pigeon_pea", "arhar"}),
    6: frozenset({"rice", "maize", "cotton", "sugarcane", "millet", "sorghum", "pigeon_pea"}),
    7: frozenset({"rice", "maize", "cotton", "sugarcane", "millet", "okra", "bottle_gourd",
                  "bitter_melon"}),
    8: frozenset({"rice", "maize", "cotton", "millet", "sorghum", "okra", "bottle_gourd",
                  "bitter_melon"}),
    9: frozenset({"rice", "maize", "millet", "sorghum", "chickpea", "lentil", "moong", "tomato"}),
    10: frozenset({"wheat", "barley", "rye", "chickpea", "lentil", "carrot", "radish", "spinach",
                   "lettuce", "cabbage"}),
    11: frozenset({"wheat", "barley", "chickpea", "lentil", "peas", "carrot", "radish", "spinach",
                   "lettuce", "mustard"}),
    12: frozenset({"wheat", "barley", "rye", "peas", "carrot", "radish", "spinach", "lettuce",
                   "mustard", "cabbage"}),
}

# Lower-cased region name -> crops commonly grown there
REGIONAL_CROPS: dict[str, frozenset[str]] = {
    "punjab": frozenset({"wheat", "rice", "cotton", "sugarcane", "maize"}),
    "haryana": frozenset({"wheat", "rice", "cotton", "maize", "mustard"}),
    "uttar pradesh": frozenset({"wheat", "rice", "sugarcane", "chickpea", "lentil"}),
    "himachal pradesh": frozenset({"apple", "mango", "wheat", "rice", "potato"}),
    "jammu": frozenset({"rice", "maize", "wheat", "apple", "walnut"}),
    "kashmir": frozenset({"rice", "maize", "apple", "walnut", "saffron"}),
    "madhya pradesh": frozenset({"wheat", "soybean", "cotton", "chickpea", "lentil"}),
    "chhattisgarh": frozenset({"rice", "cotton", "chickpea", "lentil"}),
    "bihar": frozenset({"rice", "wheat", "maize", "lentil", "chickpea"}),
    "west bengal": frozenset({"rice", "jute", "wheat", "maize", "potato"}),
    "odisha": frozenset({"rice", "lentil", "groundnut", "cotton"}),
    "jharkhand": frozenset({"rice", "wheat", "maize", "cotton", "lentil"}),
    "tamil nadu": frozenset({"rice", "sugarcane", "groundnut", "cotton", "mango", "banana"}),
    "karnataka": frozenset({"rice", "sugarcane", "cotton", "groundnut", "coffee"}),
    "telangana": frozenset({"rice", "groundnut", "cotton", "sugarcane", "turmeric"}),
    "andhra pradesh": frozenset({"rice", "cotton", "groundnut", "sugarcane", "chili"}),
    "kerala": frozenset({"coconut", "banana", "pepper", "tea", "coffee"}),
    "maharashtra": frozenset({"sugarcane", "cotton", "groundnut", "soybean", "chickpea"}),
    "gujarat": frozenset({"cotton", "groundnut", "tobacco", "sugarcane", "wheat"}),
    "rajasthan": frozenset({"wheat", "barley", "mustard", "groundnut", "millet"}),
    "goa": frozenset({"coconut", "arecanut", "banana", "rice"}),
}


@dataclass(frozen=True)
class ScoredCrop:
    crop: CropSpec
    seasonal_score: float
    location_score: float
    water_score: float

    @property
    def score(self) -> float:
        return (
            SEASONAL_WEIGHT * self.seasonal_score
            + LOCATION_WEIGHT * self.location_score
            + WATER_WEIGHT * self.water_score
        )

    def to_dict(self) -> dict[str, Any]:
        payload = self.crop.to_dict()
        payload.update(
            {
                "recommendation_score": self.score,
                "seasonal_score": self.seasonal_score,
                "location_score": self.location_score,
                "water_score": self.water_score,
            }
        )
        return payload


class CropRecommendationScorer:
    """Stateless scorer; the lookup tables can be swapped for tests or other regions."""

    def __init__(
        self,
        seasonal_crops: Mapping[int, frozenset[str]] | None = None,
        regional_crops: Mapping[str, frozenset[str]] | None = None,
    ) -> None:
        self.seasonal_crops = seasonal_crops if seasonal_crops is not None else SEASONAL_CROPS
        self.regional_crops = regional_crops if regional_crops is not None else REGIONAL_CROPS

    def seasonal_score(self, crop: CropSpec, month: int) -> float:
        value = crop.value.lower()
        if value in self.seasonal_crops.get(month, frozenset()):
            return 100.0

        previous_month = (month - 2) % 12 + 1
        next_month = month % 12 + 1
        adjacent = self.seasonal_crops.get(previous_month, frozenset()) | self.seasonal_crops.get(
            next_month, frozenset()
        )
        if value in adjacent:
            return 60.0
        return 30.0

    def location_score(self, crop: CropSpec, profile: FarmProfile | None) -> float:
        if profile is None or not profile.has_location:
            return 50.0

        location = (profile.farm_location or "").strip().lower()
        value = crop.value.lower()
        if value in self.regional_crops.get(location, frozenset()):
            return 100.0

        state = location.split(",")[0].strip()
        if value in self.regional_crops.get(state, frozenset()):
            return 70.0
        return 40.0

    @staticmethod
    def water_score(crop: CropSpec) -> float:
        deviation = abs(crop.ph_midpoint - WATER_IDEAL_PH)
        return max(WATER_SCORE_MIN, min(WATER_SCORE_MAX, 100.0 - deviation * 10.0))

    def score_crop(self, crop: CropSpec, profile: FarmProfile | None, month: int) -> ScoredCrop:
        return ScoredCrop(
            crop=crop,
            seasonal_score=self.seasonal_score(crop, month),
            location_score=self.location_score(crop, profile),
            water_score=self.water_score(crop),
        )

    def score(self, crop: CropSpec, profile: FarmProfile | None, month: int) -> float:
        return self.score_crop(crop, profile, month).score

    def recommend(
        self,
        profile: FarmProfile | None,
        crops: Sequence[CropSpec] | None,
        month: int,
        limit: int = DEFAULT_LIMIT,
    ) -> list[ScoredCrop]:
        """Return the top ``limit`` crops, highest composite score first."""
        if profile is None or not crops:
            return []
        scored = [self.score_crop(crop, profile, month) for crop in crops]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[: max(0, int(limit))]
