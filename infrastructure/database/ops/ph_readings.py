from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PHReadingOperations:
    """Database operations for PHReadings table.

    Writes raise ``sqlite3.Error`` so the repository can report the failure;
    reads log and return an empty result.
    """

    def upsert_ph_reading(self, user_id: int, value: float, source: str, timestamp_ms: int) -> Dict[str, Any]:
        """Insert a reading; an existing row with the same timestamp is overwritten."""
        db = self.get_db()
        try:
            db.execute(
                """
                INSERT INTO PHReadings (user_id, value, source, timestamp_ms)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id, timestamp_ms)
                DO UPDATE SET value = excluded.value, source = excluded.source
                """,
                (user_id, value, source, timestamp_ms),
            )
            row = db.execute(
                "SELECT * FROM PHReadings WHERE user_id = ? AND timestamp_ms = ?",
                (user_id, timestamp_ms),
            ).fetchone()
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return dict(row)

    def get_ph_readings(
        self,
        user_id: int,
        since_ms: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Readings in ascending time order. ``limit`` keeps the most recent rows."""
        try:
            db = self.get_db()
            query = "SELECT * FROM PHReadings WHERE user_id = ?"
            params: List[Any] = [user_id]
            if since_ms is not None:
                query += " AND timestamp_ms > ?"
                params.append(since_ms)
            query += " ORDER BY timestamp_ms DESC"
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            rows = [dict(r) for r in db.execute(query, params).fetchall()]
            rows.reverse()
            return rows
        except sqlite3.Error as exc:
            logger.debug("get_ph_readings failed: %s", exc)
            return []

    def delete_ph_readings_before(self, cutoff_ms: int, user_id: Optional[int] = None) -> int:
        db = self.get_db()
        try:
            if user_id is None:
                cur = db.execute("DELETE FROM PHReadings WHERE timestamp_ms < ?", (cutoff_ms,))
            else:
                cur = db.execute(
                    "DELETE FROM PHReadings WHERE user_id = ? AND timestamp_ms < ?",
                    (user_id, cutoff_ms),
                )
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return cur.rowcount

    def count_ph_readings(self, user_id: int) -> int:
        try:
            db = self.get_db()
            return db.execute("SELECT COUNT(*) FROM PHReadings WHERE user_id = ?", (user_id,)).fetchone()[0]
        except sqlite3.Error as exc:
            logger.debug("count_ph_readings failed: %s", exc)
            return 0
