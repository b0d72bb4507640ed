from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class ChatLogOperations:
    """Database operations for ChatLogs table."""

    def insert_chat_log(self, log: Dict[str, Any]) -> Dict[str, Any]:
        db = self.get_db()
        try:
            cur = db.execute(
                """
                INSERT INTO ChatLogs (user_id, question, answer, source, timestamp_ms)
                VALUES (?, ?, ?, ?, ?)
                """,
                (log["user_id"], log["question"], log["answer"], log["source"], log["timestamp_ms"]),
            )
            row = db.execute("SELECT * FROM ChatLogs WHERE log_id = ?", (cur.lastrowid,)).fetchone()
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return dict(row)

    def get_chat_logs(self, user_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent first."""
        try:
            db = self.get_db()
            rows = db.execute(
                "SELECT * FROM ChatLogs WHERE user_id = ? ORDER BY timestamp_ms DESC, log_id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
            return [dict(r) for r in rows]
        except sqlite3.Error as exc:
            logger.debug("get_chat_logs failed: %s", exc)
            return []

    def delete_chat_log(self, user_id: int, log_id: int) -> bool:
        db = self.get_db()
        try:
            cur = db.execute("DELETE FROM ChatLogs WHERE user_id = ? AND log_id = ?", (user_id, log_id))
            db.commit()
        except sqlite3.Error:
            db.rollback()
            raise
        return cur.rowcount > 0

    def get_chat_log_stats(self, user_id: int) -> Dict[str, Any]:
        try:
            db = self.get_db()
            row = db.execute(
                """
                SELECT COUNT(*) AS total,
                       MIN(timestamp_ms) AS first_ms,
                       MAX(timestamp_ms) AS last_ms,
                       AVG(LENGTH(question)) AS avg_length
                FROM ChatLogs WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
            return dict(row)
        except sqlite3.Error as exc:
            logger.debug("get_chat_log_stats failed: %s", exc)
            return {"total": 0, "first_ms": None, "last_ms": None, "avg_length": None}
