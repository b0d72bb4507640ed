from __future__ import annotations

import logging
import sqlite3

from app.domain.chat_log import ASSISTANT_SOURCE, MAX_QUESTION_LENGTH, ChatLogEntry, ChatStats
from app.domain.ph import OperationResult
from app.utils.time import epoch_ms
from infrastructure.database.ops.chat_logs import ChatLogOperations

logger = logging.getLogger(__name__)


class ChatLogRepository:
    """Per-user history of assistant questions and answers."""

    def __init__(self, backend: ChatLogOperations) -> None:
        self._backend = backend

    def log_interaction(
        self,
        user_id: int,
        question: str,
        answer: str | None = None,
        timestamp: int | None = None,
    ) -> OperationResult[ChatLogEntry]:
        if user_id is None:
            return OperationResult.fail("no_user")
        question = (question or "").strip()
        if not question or len(question) > MAX_QUESTION_LENGTH:
            return OperationResult.fail("invalid_question", length=len(question))

        try:
            row = self._backend.insert_chat_log(
                {
                    "user_id": user_id,
                    "question": question,
                    "answer": (answer or "").strip(),
                    "source": ASSISTANT_SOURCE,
                    "timestamp_ms": epoch_ms() if timestamp is None else int(timestamp),
                }
            )
        except sqlite3.Error as exc:
            logger.error("Failed to log chat interaction for user %s: %s", user_id, exc)
            return OperationResult.fail("storage_error", message=str(exc))
        return OperationResult.ok(ChatLogEntry.from_row(row))

    def history(self, user_id: int, limit: int = 50) -> list[ChatLogEntry]:
        """Most recent first."""
        return [ChatLogEntry.from_row(row) for row in self._backend.get_chat_logs(user_id, max(1, int(limit)))]

    def delete(self, user_id: int, log_id: int) -> OperationResult[bool]:
        try:
            deleted = self._backend.delete_chat_log(user_id, log_id)
        except sqlite3.Error as exc:
            logger.error("Failed to delete chat log %s for user %s: %s", log_id, user_id, exc)
            return OperationResult.fail("storage_error", message=str(exc))
        if not deleted:
            return OperationResult.fail("unknown_log", log_id=log_id)
        return OperationResult.ok(True)

    def stats(self, user_id: int) -> ChatStats:
        row = self._backend.get_chat_log_stats(user_id)
        total = int(row.get("total") or 0)
        if not total:
            return ChatStats()
        return ChatStats(
            total_interactions=total,
            first_question_at=row.get("first_ms"),
            last_question_at=row.get("last_ms"),
            average_question_length=float(row.get("avg_length") or 0.0),
        )
