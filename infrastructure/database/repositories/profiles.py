from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

from app.domain.farm_profile import FarmProfile
from app.domain.ph import OperationResult
from infrastructure.database.ops.farm_profiles import FarmProfileOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileRepository:
    _backend: FarmProfileOperations

    def get(self, user_id: int) -> FarmProfile | None:
        row = self._backend.get_farm_profile(user_id)
        return FarmProfile.from_row(row) if row else None

    def get_or_default(self, user_id: int) -> FarmProfile:
        return self.get(user_id) or FarmProfile(user_id=user_id)

    def update(self, user_id: int, **fields: Any) -> OperationResult[FarmProfile]:
        try:
            row = self._backend.upsert_farm_profile(user_id, fields)
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Failed to update farm profile for user %s: %s", user_id, exc)
            return OperationResult.fail("storage_error", message=str(exc))
        return OperationResult.ok(FarmProfile.from_row(row))

    def set_current_crop(self, user_id: int, crop: str, min_ph: float, max_ph: float) -> OperationResult[FarmProfile]:
        return self.update(user_id, current_crop=crop, crop_min_ph=min_ph, crop_max_ph=max_ph)
