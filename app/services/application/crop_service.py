"""Crop catalog and recommendations for a user's farm profile."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from app.domain.crop_recommendation import DEFAULT_LIMIT, CropRecommendationScorer, ScoredCrop
from app.domain.crops import CATEGORIES, CROP_CATALOG, CropSpec, crops_in_category, find_crop
from app.domain.exceptions import ValidationError
from app.utils.time import utc_now
from infrastructure.database.repositories.profiles import ProfileRepository

logger = logging.getLogger(__name__)


class CropService:
    def __init__(
        self,
        profile_repo: ProfileRepository,
        scorer: CropRecommendationScorer | None = None,
        catalog: Sequence[CropSpec] = CROP_CATALOG,
        month_provider: Callable[[], int] | None = None,
    ):
        self.profile_repo = profile_repo
        self.scorer = scorer or CropRecommendationScorer()
        self.catalog = tuple(catalog)
        self._month_provider = month_provider or (lambda: utc_now().month)

    def list_crops(self, category: str | None = None) -> list[CropSpec]:
        if category in (None, "", "all"):
            return list(self.catalog)
        if category not in CATEGORIES:
            raise ValidationError(f"Unknown crop category '{category}'", detail={"categories": list(CATEGORIES)})
        return crops_in_category(category, self.catalog)

    def categories(self) -> dict[str, str]:
        return dict(CATEGORIES)

    def recommendations(self, user_id: int, limit: int = DEFAULT_LIMIT, month: int | None = None) -> list[ScoredCrop]:
        """Top crops for the user's profile this month. Users without a profile get an empty list."""
        if month is None:
            month = self._month_provider()
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12", detail={"month": month})
        profile = self.profile_repo.get(user_id)
        ranked = self.scorer.recommend(profile, self.catalog, month, limit)
        logger.debug("Recommended %s crops for user %s (month %s)", len(ranked), user_id, month)
        return ranked

    def current_crop(self, user_id: int) -> dict[str, Any] | None:
        profile = self.profile_repo.get(user_id)
        if profile is None or not profile.current_crop:
            return None
        crop = find_crop(profile.current_crop)
        return crop.to_dict() if crop else {"value": profile.current_crop}
