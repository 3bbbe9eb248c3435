"""Pydantic schemas for call context and transcripts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["caller", "agent"]


class CallContext(BaseModel):
    """Verification parameters the agent needs for one call.

    Accepts both snake_case and the camelCase keys used by the HTTP surface.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    customer_name: str | None = None
    vehicle_name: str | None = None
    rental_start_date: str | None = None
    rental_days: str | None = None
    state: str | None = None
    driver_license: str | None = None
    insurance_provider: str | None = None
    policy_number: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, value):
        # Forms send rental_days as a number; the prompt only needs text.
        if value is None or isinstance(value, str):
            return value
        return str(value)


class TranscriptEntry(BaseModel):
    """A single role-tagged utterance."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str = Field(min_length=1)
