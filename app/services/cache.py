"""Read-through response cache.

Routers ask the cache first and fall back to the identity store on a
miss, then populate the entry with a short TTL.  Entries are invalidated
explicitly when the underlying organization changes, with the TTL as a
safety net.

Key layout (all keys are per organization so one pattern clears them)::

    org:{org_id}:schools:{query}

The cache fails soft: a Redis error is logged, counted, and treated as a
miss (reads) or ignored (writes/deletes).  Requests never fail because
the cache is down.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

from redis.exceptions import RedisError

from app.core.metrics import CACHE_OPERATIONS
from app.db.redis import redis_pool

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


def org_key(org_id: object, suffix: str) -> str:
    return f"org:{org_id}:{suffix}"


def org_pattern(org_id: object) -> str:
    return f"org:{org_id}:*"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL."""
        ...

    async def delete(self, key: str) -> None: ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g. 'org:<id>:*')."""
        ...


class InMemoryCacheService:
    """In-process cache for dev and tests, no TTL enforcement."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache shared by all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache read failed for key=%s", key, exc_info=True)
            CACHE_OPERATIONS.labels(operation="error").inc()
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        except RedisError:
            logger.warning("Cache write failed for key=%s", key, exc_info=True)
            CACHE_OPERATIONS.labels(operation="error").inc()

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache delete failed for key=%s", key, exc_info=True)
            CACHE_OPERATIONS.labels(operation="error").inc()

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: cursor-based so Redis keeps serving other clients.
        try:
            cursor = 0
            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=f"{self._PREFIX}{pattern}", count=100
                )
                if keys:
                    await self._redis.delete(*keys)
                if cursor == 0:
                    break
        except RedisError:
            logger.warning("Cache invalidation failed for pattern=%s", pattern, exc_info=True)
            CACHE_OPERATIONS.labels(operation="error").inc()


async def get_json(cache: CacheService, key: str) -> Any | None:
    raw = await cache.get(key)
    if raw is None:
        CACHE_OPERATIONS.labels(operation="miss").inc()
        return None
    CACHE_OPERATIONS.labels(operation="hit").inc()
    return json.loads(raw)


async def set_json(
    cache: CacheService, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS
) -> None:
    await cache.set(key, json.dumps(value, default=str), ttl_seconds)


# --- Module-level singleton ---

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
