from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PumpLogOperations:
    """Database operations for PumpLogs table."""

    def insert_pump_log(self, log: Dict[str, Any]) -> Dict[str, Any]:
        db = self.get_db()
        try:
            cur = db.execute(
                """
                INSERT INTO PumpLogs (
                    user_id, pump_type, reagent, concentration,
                    ph_before, origin, timestamp_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log["user_id"],
                    log["pump_type"],
                    log["reagent"],
                    log["concentration"],
                    log.get("ph_before"),
                    log.get("origin", "controller"),
                    log["timestamp_ms"],
                ),
            )
            row = db.execute("SELECT * FROM PumpLogs WHERE log_id = ?", (cur.lastrowid,)).fetchone()
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return dict(row)

    def get_pump_logs(self, user_id: int, limit: int = 50, pump_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recent logs first."""
        try:
            db = self.get_db()
            query = "SELECT * FROM PumpLogs WHERE user_id = ?"
            params: List[Any] = [user_id]
            if pump_type:
                query += " AND pump_type = ?"
                params.append(pump_type)
            query += " ORDER BY timestamp_ms DESC, log_id DESC LIMIT ?"
            params.append(limit)
            return [dict(r) for r in db.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            logger.debug("get_pump_logs failed: %s", exc)
            return []

    def get_pump_counts(self, user_id: int, since_ms: Optional[int] = None) -> Dict[str, int]:
        try:
            db = self.get_db()
            query = "SELECT pump_type, COUNT(*) FROM PumpLogs WHERE user_id = ?"
            params: List[Any] = [user_id]
            if since_ms is not None:
                query += " AND timestamp_ms > ?"
                params.append(since_ms)
            query += " GROUP BY pump_type"
            return {row[0]: row[1] for row in db.execute(query, params).fetchall()}
        except sqlite3.Error as exc:
            logger.debug("get_pump_counts failed: %s", exc)
            return {}
