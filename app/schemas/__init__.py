"""
Schemas Module
==============

This module provides Pydantic models for request/response validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.chat import ChatLogCreate
from app.schemas.ph import CropSelection, PHMessage, PumpCommand, PumpMessage, ReadingCreate
from app.schemas.profile import ProfileUpdate

__all__ = [
    "ChatLogCreate",
    "CropSelection",
    "PHMessage",
    "ProfileUpdate",
    "PumpCommand",
    "PumpMessage",
    "ReadingCreate",
]
