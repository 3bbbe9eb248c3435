from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from agents.schemas import CallContext, TranscriptEntry
from stores.base import DEFAULT_TTL_SECONDS, ContextStore, TranscriptSink


@dataclass(slots=True)
class _ContextEntry:
    context: CallContext
    expires_at: float


@dataclass(slots=True)
class _Transcript:
    entries: list[TranscriptEntry] = field(default_factory=list)
    expires_at: float = 0.0


class InMemoryContextStore(ContextStore):
    """In-memory context store.

    Note: This is a single-process store. For multi-worker deployments, use the
    SQL or Redis backend instead.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = asyncio.Lock()
        self._entries: dict[str, _ContextEntry] = {}
        self._clock = clock

    async def set(self, key: str, context: CallContext, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        async with self._lock:
            self._entries[key] = _ContextEntry(context=context, expires_at=self._clock() + ttl_seconds)

    async def get(self, key: str) -> CallContext | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.context

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)


class InMemoryTranscriptSink(TranscriptSink):
    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = asyncio.Lock()
        self._transcripts: dict[str, _Transcript] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    async def append(self, call_id: str, entry: TranscriptEntry) -> None:
        async with self._lock:
            transcript = self._live(call_id)
            if transcript is None:
                transcript = _Transcript()
                self._transcripts[call_id] = transcript
            transcript.entries.append(entry)
            transcript.expires_at = self._clock() + self._ttl_seconds

    async def get(self, call_id: str) -> list[TranscriptEntry]:
        async with self._lock:
            transcript = self._live(call_id)
            return list(transcript.entries) if transcript else []

    async def delete(self, call_id: str) -> None:
        async with self._lock:
            self._transcripts.pop(call_id, None)

    def _live(self, call_id: str) -> _Transcript | None:
        transcript = self._transcripts.get(call_id)
        if transcript is not None and transcript.expires_at <= self._clock():
            del self._transcripts[call_id]
            return None
        return transcript
