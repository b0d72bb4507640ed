from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.utils.time import ms_to_iso

MAX_QUESTION_LENGTH = 2000
ASSISTANT_SOURCE = "assistant"


@dataclass(frozen=True)
class ChatLogEntry:
    """One question put to the dashboard assistant and the answer it gave."""

    log_id: int
    user_id: int
    question: str
    answer: str
    timestamp: int
    source: str = ASSISTANT_SOURCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.log_id,
            "question": self.question,
            "answer": self.answer,
            "source": self.source,
            "timestamp": self.timestamp,
            "asked_at": ms_to_iso(self.timestamp),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ChatLogEntry":
        return cls(
            log_id=int(row["log_id"]),
            user_id=int(row["user_id"]),
            question=row["question"],
            answer=row.get("answer") or "",
            timestamp=int(row["timestamp_ms"]),
            source=row.get("source") or ASSISTANT_SOURCE,
        )


@dataclass(frozen=True)
class ChatStats:
    total_interactions: int = 0
    first_question_at: int | None = None
    last_question_at: int | None = None
    average_question_length: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_interactions": self.total_interactions,
            "first_question_at": ms_to_iso(self.first_question_at),
            "last_question_at": ms_to_iso(self.last_question_at),
            "average_question_length": round(self.average_question_length, 1),
        }
