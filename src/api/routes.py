"""FastAPI routes outside the Twilio call flow."""

from __future__ import annotations

from fastapi import APIRouter

from api.schemas import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="Twilio Voice AI server running")
