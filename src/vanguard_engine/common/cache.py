"""Shared key-value cache used for liveness, role and active-visit lookups.

Every instance of the service must observe the same entries, otherwise an
invalidation issued on one instance leaves the others serving stale data
until the TTL runs out. The production implementation is therefore backed by
Redis; there is no process-local fallback map.

When Redis is unreachable the cache degrades to "always miss": reads return
None and writes are dropped, so callers fall through to storage.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from vanguard_engine.common.logging import get_logger

logger = get_logger("cache")


class Cache(ABC):
    """Async key-value cache with per-entry TTL."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store a JSON-serializable value for ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Remove entries; missing keys are ignored."""

    @abstractmethod
    async def incr(self, key: str, ttl: int) -> int:
        """Increment a counter, starting its TTL window on first use."""

    async def close(self) -> None:
        return None


class RedisCache(Cache):
    """Cache backed by ``redis.asyncio``.

    Values are stored as JSON strings under ``{prefix}:{key}``.
    """

    def __init__(self, url: str, prefix: str = "vanguard", client: aioredis.Redis | None = None):
        self.prefix = prefix
        self._client = client or aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._key(key))
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}, falling back to storage: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl)
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*(self._key(k) for k in keys))
        except RedisError as e:
            logger.error(f"Cache invalidation failed for {keys}: {e}")

    async def incr(self, key: str, ttl: int) -> int:
        redis_key = self._key(key)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, ttl, nx=True)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.warning(f"Cache incr failed for {key}: {e}")
            return 0

    async def close(self) -> None:
        await self._client.aclose()
