"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.base import ChangeListeners
from infrastructure.database.repositories.chat_logs import ChatLogRepository
from infrastructure.database.repositories.profiles import ProfileRepository
from infrastructure.database.repositories.pump_logs import PumpLogRepository
from infrastructure.database.repositories.readings import ReadingRepository

__all__ = [
    "ChangeListeners",
    "ChatLogRepository",
    "ProfileRepository",
    "PumpLogRepository",
    "ReadingRepository",
]
