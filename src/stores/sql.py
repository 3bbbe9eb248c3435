"""SQLAlchemy-backed context and transcript stores."""

from __future__ import annotations

import time
from collections.abc import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agents.errors import ContextStoreError
from agents.schemas import CallContext, TranscriptEntry
from db.models import CallContextRecord, TranscriptEntryRecord
from stores.base import DEFAULT_TTL_SECONDS, ContextStore, TranscriptSink


def _default_session_factory() -> async_sessionmaker[AsyncSession]:
    from db.base import AsyncSessionFactory

    return AsyncSessionFactory


class SQLContextStore(ContextStore):
    """Async repository keeping one context row per key."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions = session_factory or _default_session_factory()
        self._clock = clock

    async def set(self, key: str, context: CallContext, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        expires_at = self._clock() + ttl_seconds
        try:
            async with self._sessions() as session:
                record = await session.get(CallContextRecord, key)
                if record is None:
                    session.add(
                        CallContextRecord(key=key, payload=context.model_dump(), expires_at=expires_at)
                    )
                else:
                    record.payload = context.model_dump()
                    record.expires_at = expires_at
                await session.commit()
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to store context {key!r}: {exc}") from exc

    async def get(self, key: str) -> CallContext | None:
        try:
            async with self._sessions() as session:
                record = await session.get(CallContextRecord, key)
                if record is None:
                    return None
                if record.expires_at <= self._clock():
                    await session.delete(record)
                    await session.commit()
                    return None
                return CallContext.model_validate(record.payload)
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to load context {key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            async with self._sessions() as session:
                await session.execute(delete(CallContextRecord).where(CallContextRecord.key == key))
                await session.commit()
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to delete context {key!r}: {exc}") from exc


class SQLTranscriptSink(TranscriptSink):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions = session_factory or _default_session_factory()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def append(self, call_id: str, entry: TranscriptEntry) -> None:
        try:
            async with self._sessions() as session:
                session.add(
                    TranscriptEntryRecord(
                        call_id=call_id,
                        role=entry.role,
                        text=entry.text,
                        expires_at=self._clock() + self._ttl_seconds,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to append transcript for {call_id!r}: {exc}") from exc

    async def get(self, call_id: str) -> list[TranscriptEntry]:
        now = self._clock()
        query = (
            select(TranscriptEntryRecord)
            .where(TranscriptEntryRecord.call_id == call_id)
            .where(TranscriptEntryRecord.expires_at > now)
            .order_by(TranscriptEntryRecord.id)
        )
        try:
            async with self._sessions() as session:
                await session.execute(
                    delete(TranscriptEntryRecord)
                    .where(TranscriptEntryRecord.call_id == call_id)
                    .where(TranscriptEntryRecord.expires_at <= now)
                )
                await session.commit()
                result = await session.execute(query)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to load transcript for {call_id!r}: {exc}") from exc
        return [TranscriptEntry(role=row.role, text=row.text) for row in rows]

    async def delete(self, call_id: str) -> None:
        try:
            async with self._sessions() as session:
                await session.execute(
                    delete(TranscriptEntryRecord).where(TranscriptEntryRecord.call_id == call_id)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise ContextStoreError(f"Failed to delete transcript for {call_id!r}: {exc}") from exc
