"""
Farm Profile Schemas
====================

Request schema for editing the farm profile. The location drives crop
recommendations and the default weather lookup.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProfileUpdate(BaseModel):
    """Partial update: only the fields present in the body are written.

    An empty string clears the field.
    """

    model_config = ConfigDict(extra="forbid")

    farm_name: Optional[str] = Field(default=None, max_length=100, description="Display name of the farm")
    farm_location: Optional[str] = Field(
        default=None, max_length=200, description="'District, State' or 'State', e.g. 'Karimganj, Assam'"
    )

    @field_validator("farm_name", "farm_location", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @model_validator(mode="after")
    def require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("Provide farm_name or farm_location")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
