"""Shared abstractions for per-call context and transcript storage."""

from __future__ import annotations

from abc import ABC, abstractmethod

from agents.schemas import CallContext, TranscriptEntry

DEFAULT_TTL_SECONDS = 3600


class ContextStore(ABC):
    """Key-value store of call context with per-entry expiry.

    Every backend guarantees that a ``set`` is visible to a later ``get`` in
    the same process, and that a key is absent after ``delete`` or once its
    TTL elapses.
    """

    @abstractmethod
    async def set(self, key: str, context: CallContext, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        """Store ``context`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    async def get(self, key: str) -> CallContext | None:
        """Return the context stored under ``key`` or ``None``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error."""

    async def close(self) -> None:
        return None


class TranscriptSink(ABC):
    """Append-only, per-call list of role-tagged utterances."""

    @abstractmethod
    async def append(self, call_id: str, entry: TranscriptEntry) -> None:
        """Append ``entry`` to the transcript of ``call_id``."""

    @abstractmethod
    async def get(self, call_id: str) -> list[TranscriptEntry]:
        """Return the transcript of ``call_id`` in insertion order."""

    @abstractmethod
    async def delete(self, call_id: str) -> None:
        """Drop the transcript of ``call_id``."""

    async def close(self) -> None:
        return None
