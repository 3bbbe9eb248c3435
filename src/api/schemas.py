"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from agents.schemas import CallContext


class StartCallRequest(CallContext):
    """Destination number plus the context the agent verifies on the call."""

    model_config = ConfigDict(frozen=False)

    to: str | None = Field(default=None, description="E.164 destination number, e.g. +1415...")

    def to_context(self) -> CallContext:
        return CallContext.model_validate(self.model_dump(exclude={"to"}))


class StartCallResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    call_sid: str = Field(serialization_alias="callSid")


class HealthResponse(BaseModel):
    status: str
