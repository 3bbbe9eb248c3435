"""Entry point for the Twilio to OpenAI Realtime voice relay."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agents.errors import RelayError
from api.dependencies import get_context_store, get_transcript_sink
from api.routes import router as health_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.store_backend == "sql":
        from db.base import init_db

        await init_db()
    yield
    await get_context_store().close()
    await get_transcript_sink().close()
    if settings.store_backend == "sql":
        from db.base import dispose_db

        await dispose_db()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Voice Verification Relay",
    description="Bridges Twilio Media Streams calls to an OpenAI Realtime agent.",
    lifespan=lifespan,
)
app.include_router(health_router)
app.include_router(twilio_router)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
