"""Redis-backed stores for multi-worker deployments.

Entries rely on Redis' native key expiry, so no sweeping is needed.
"""

from __future__ import annotations

import json

from redis.asyncio import Redis
from redis.exceptions import RedisError

from agents.errors import ContextStoreError
from agents.schemas import CallContext, TranscriptEntry
from stores.base import DEFAULT_TTL_SECONDS, ContextStore, TranscriptSink

CONTEXT_PREFIX = "call-context:"
TRANSCRIPT_PREFIX = "call-transcript:"


class RedisContextStore(ContextStore):
    def __init__(self, client: Redis, *, prefix: str = CONTEXT_PREFIX) -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> RedisContextStore:
        return cls(Redis.from_url(url, decode_responses=True))

    async def set(self, key: str, context: CallContext, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        try:
            await self._redis.set(self._prefix + key, context.model_dump_json(), ex=ttl_seconds)
        except RedisError as exc:
            raise ContextStoreError(f"Failed to store context {key!r}: {exc}") from exc

    async def get(self, key: str) -> CallContext | None:
        try:
            raw = await self._redis.get(self._prefix + key)
        except RedisError as exc:
            raise ContextStoreError(f"Failed to load context {key!r}: {exc}") from exc
        if raw is None:
            return None
        return CallContext.model_validate_json(raw)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._prefix + key)
        except RedisError as exc:
            raise ContextStoreError(f"Failed to delete context {key!r}: {exc}") from exc

    async def close(self) -> None:
        await self._redis.aclose()


class RedisTranscriptSink(TranscriptSink):
    def __init__(
        self,
        client: Redis,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        prefix: str = TRANSCRIPT_PREFIX,
    ) -> None:
        self._redis = client
        self._ttl_seconds = ttl_seconds
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> RedisTranscriptSink:
        return cls(Redis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    async def append(self, call_id: str, entry: TranscriptEntry) -> None:
        key = self._prefix + call_id
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.rpush(key, entry.model_dump_json())
                pipe.expire(key, self._ttl_seconds)
                await pipe.execute()
        except RedisError as exc:
            raise ContextStoreError(f"Failed to append transcript for {call_id!r}: {exc}") from exc

    async def get(self, call_id: str) -> list[TranscriptEntry]:
        try:
            items = await self._redis.lrange(self._prefix + call_id, 0, -1)
        except RedisError as exc:
            raise ContextStoreError(f"Failed to load transcript for {call_id!r}: {exc}") from exc
        return [TranscriptEntry.model_validate(json.loads(item)) for item in items]

    async def delete(self, call_id: str) -> None:
        try:
            await self._redis.delete(self._prefix + call_id)
        except RedisError as exc:
            raise ContextStoreError(f"Failed to delete transcript for {call_id!r}: {exc}") from exc

    async def close(self) -> None:
        await self._redis.aclose()
