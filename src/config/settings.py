"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Public URL Twilio uses to reach the webhooks and the media stream.
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(default=None, description="E.164, e.g. +1415...")
    twilio_say_voice: str = Field(default="Polly.Joanna")

    # OpenAI Realtime
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-10-01")
    realtime_voice: str = Field(default="shimmer")
    realtime_temperature: float = Field(default=0.8, ge=0.6, le=1.2)
    realtime_transcription_model: str = Field(default="whisper-1")

    # Context / transcript stores
    store_backend: Literal["memory", "sql", "redis"] = Field(default="memory")
    context_ttl_seconds: int = Field(default=3600, gt=0)
    context_retry_attempts: int = Field(default=5, ge=1)
    context_retry_interval_seconds: float = Field(default=0.5, ge=0.0)

    # Seconds to let trailing agent audio play after a closing phrase.
    termination_delay_seconds: float = Field(default=6.0, ge=0.0)

    # Database (used when STORE_BACKEND=sql)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/relay.db",
        description="SQLAlchemy connection string.",
    )
    auto_create_db_schema: bool = Field(
        default=True,
        description="If true, creates tables automatically on startup (useful for local/dev).",
    )

    # Redis (used when STORE_BACKEND=redis)
    redis_url: str = Field(default="redis://localhost:6379/0")

    data_dir: Path = Field(default=Path("./data"))

    @field_validator("data_dir")
    @classmethod
    def ensure_data_dir(cls, value: Path) -> Path:
        value.mkdir(parents=True, exist_ok=True)
        return value

    @property
    def realtime_ws_url(self) -> str:
        return f"{self.openai_realtime_url}?model={self.openai_realtime_model}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
