from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = (
    "farm_name",
    "farm_location",
    "current_crop",
    "crop_min_ph",
    "crop_max_ph",
    "last_visited",
)


class FarmProfileOperations:
    """Database operations for FarmProfiles table."""

    def get_farm_profile(self, user_id: int) -> Optional[Dict[str, Any]]:
        try:
            db = self.get_db()
            row = db.execute("SELECT * FROM FarmProfiles WHERE user_id = ?", (user_id,)).fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.debug("get_farm_profile failed: %s", exc)
            return None

    def upsert_farm_profile(self, user_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create the row if needed and update only the given columns."""
        unknown = set(fields) - set(_PROFILE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown farm profile fields: {sorted(unknown)}")

        db = self.get_db()
        try:
            db.execute("INSERT OR IGNORE INTO FarmProfiles (user_id) VALUES (?)", (user_id,))
            if fields:
                assignments = ", ".join(f"{column} = ?" for column in fields)
                db.execute(
                    f"UPDATE FarmProfiles SET {assignments} WHERE user_id = ?",
                    (*fields.values(), user_id),
                )
            row = db.execute("SELECT * FROM FarmProfiles WHERE user_id = ?", (user_id,)).fetchone()
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return dict(row)
