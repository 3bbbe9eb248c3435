"""SQLAlchemy models backing the SQL context and transcript stores."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class CallContextRecord(Base):
    """Context for one call, keyed by call SID or correlation token."""

    __tablename__ = "call_contexts"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    # Epoch seconds; rows past this instant are treated as absent.
    expires_at: Mapped[float] = mapped_column(index=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))


class TranscriptEntryRecord(Base):
    """Individual caller or agent utterances."""

    __tablename__ = "transcript_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    call_id: Mapped[str] = mapped_column(String(128), index=True)
    role: Mapped[str] = mapped_column(String(16))
    text: Mapped[str] = mapped_column(Text())
    expires_at: Mapped[float] = mapped_column(index=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))
