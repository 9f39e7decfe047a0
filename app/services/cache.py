"""Read-through cache for evaluated course access.

Evaluating a course means loading the whole content graph plus the
student's views and submissions, and the access page is refreshed far more
often than anything changes.  Entries are keyed per (student, course):

    access:{student_id}:{course_id}

Two invalidation paths:

  1. TTL.  ACCESS_CACHE_TTL_SECONDS, shortened so an entry never outlives
     the next drip date it contains (a drip-locked lesson must unlock on
     time without any write happening). A cached entry read past its
     next drip date is treated as a miss as well.

  2. Explicit.  Every progress mutation for a student deletes
     access:{student_id}:*; content and override changes by admins delete
     the affected keys the same way.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable
from uuid import UUID

from app.db.redis import redis_pool


def access_key(student_id: UUID, course_id: UUID) -> str:
    return f"access:{student_id}:{course_id}"


def student_access_pattern(student_id: UUID) -> str:
    return f"access:{student_id}:*"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL; it reads as a miss once expired."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a trailing-* glob (e.g. "access:<id>:*")."""
        ...


class InMemoryCacheService:
    """Process-local cache used when REDIS_URL is unset.

    This is the runtime cache of a single-instance deployment, so it
    honours TTLs the way Redis does: an expired entry reads as a miss and
    is dropped.  Entries nobody reads again are swept once the store has
    doubled in size since the last sweep.
    """

    _MIN_SWEEP = 1024

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}
        self._sweep_at = self._MIN_SWEEP

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)
        if len(self._store) >= self._sweep_at:
            self._sweep()

    def _sweep(self) -> None:
        now = self._clock()
        for k in [k for k, (_, exp) in self._store.items() if now >= exp]:
            del self._store[k]
        self._sweep_at = max(self._MIN_SWEEP, 2 * len(self._store))

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared by all API instances."""

    # Keeps our keys apart from anything else sharing the Redis database.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN rather than KEYS: KEYS blocks the server while it walks the
        # whole keyspace.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
