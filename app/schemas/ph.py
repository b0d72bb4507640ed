"""
pH Schemas
==========

Request schemas for the pH and crop endpoints, plus the two message shapes
written by the sensor board over the serial link.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.enums import ReadingSource


class ReadingCreate(BaseModel):
    """Request schema for submitting a pH reading."""

    value: float = Field(..., allow_inf_nan=False, description="pH value (out-of-scale values are accepted)")
    source: ReadingSource = Field(default=ReadingSource.SENSOR, description="sensor or simulated")
    timestamp: Optional[int] = Field(default=None, ge=0, description="Epoch milliseconds (defaults to now)")

    @field_validator("source", mode="before")
    @classmethod
    def normalize_source(cls, v):
        if isinstance(v, str):
            return ReadingSource(v.lower())
        return v


class CropSelection(BaseModel):
    """Request schema for changing the active crop."""

    crop: str = Field(..., min_length=1, description="Crop value from the catalog, e.g. 'rice'")

    @field_validator("crop", mode="before")
    @classmethod
    def normalize_crop(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class PumpCommand(str, Enum):
    """Pump values a sensor board may report."""
    BASIC = "basic"
    ACIDIC = "acidic"
    OFF = "off"


class PHMessage(BaseModel):
    """Serial line ``{"pH": 6.8}``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ph: float = Field(..., alias="pH", allow_inf_nan=False)


class PumpMessage(BaseModel):
    """Serial line ``{"pump": "basic"}``."""

    model_config = ConfigDict(extra="ignore")

    pump: PumpCommand

    @field_validator("pump", mode="before")
    @classmethod
    def normalize_pump(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v
