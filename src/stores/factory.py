"""Factory returning the configured store implementations."""

from __future__ import annotations

from config.settings import get_settings
from stores.base import ContextStore, TranscriptSink
from stores.memory import InMemoryContextStore, InMemoryTranscriptSink


def build_context_store() -> ContextStore:
    """Instantiate the configured context store backend."""

    settings = get_settings()
    if settings.store_backend == "memory":
        return InMemoryContextStore()
    if settings.store_backend == "sql":
        from stores.sql import SQLContextStore

        return SQLContextStore()
    if settings.store_backend == "redis":
        from stores.redis_store import RedisContextStore

        return RedisContextStore.from_url(settings.redis_url)
    raise ValueError(f"Unsupported store_backend: {settings.store_backend}")


def build_transcript_sink() -> TranscriptSink:
    """Instantiate the configured transcript sink backend."""

    settings = get_settings()
    ttl = settings.context_ttl_seconds
    if settings.store_backend == "memory":
        return InMemoryTranscriptSink(ttl_seconds=ttl)
    if settings.store_backend == "sql":
        from stores.sql import SQLTranscriptSink

        return SQLTranscriptSink(ttl_seconds=ttl)
    if settings.store_backend == "redis":
        from stores.redis_store import RedisTranscriptSink

        return RedisTranscriptSink.from_url(settings.redis_url, ttl_seconds=ttl)
    raise ValueError(f"Unsupported store_backend: {settings.store_backend}")
