"""Request schema for recording an assistant interaction."""

from pydantic import BaseModel, Field, field_validator

from app.domain.chat_log import MAX_QUESTION_LENGTH


class ChatLogCreate(BaseModel):
    question: str = Field(..., min_length=1, max_length=MAX_QUESTION_LENGTH)
    answer: str = Field(default="", max_length=10_000)

    @field_validator("question", "answer", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v
