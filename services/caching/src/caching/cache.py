"""
Cache-aside manager for the stack guide.

Implements the pattern the guide walks through first: read from Redis,
fall back to the source of truth on a miss, write the result back with
a TTL, and invalidate explicitly on writes.

Values are stored as JSON strings so any client (redis-cli included)
can inspect them.
"""

from __future__ import annotations

import functools
import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from prometheus_client import Counter

from caching.keys import CacheKeyBuilder

logger = structlog.get_logger()

T = TypeVar("T")

cache_requests_total = Counter(
    "cache_requests_total",
    "Cache lookups by outcome",
    ["outcome"],
)

_SCAN_BATCH = 500


@dataclass
class CacheStats:
    """Running counters for a :class:`CacheManager`."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from cache (0.0 when nothing was looked up)."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class CacheManager:
    """JSON cache on top of an async Redis connection.

    Args:
        redis: A ``redis.asyncio.Redis`` instance (``decode_responses=True``).
        default_ttl: TTL in seconds used when ``set`` gets no explicit TTL.
        keys: Key builder; callers pass keys already built with it.
    """

    def __init__(
        self,
        redis: Any,
        *,
        default_ttl: int = 300,
        keys: CacheKeyBuilder | None = None,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._redis = redis
        self.default_ttl = default_ttl
        self.keys = keys or CacheKeyBuilder("guide")
        self.stats = CacheStats()

    async def get(self, key: str) -> Any | None:
        """Return the decoded value at *key*, or ``None`` on a miss."""
        raw = await self._redis.get(key)
        if raw is None:
            self.stats.misses += 1
            cache_requests_total.labels(outcome="miss").inc()
            return None
        self.stats.hits += 1
        cache_requests_total.labels(outcome="hit").inc()
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* at *key* for *ttl* seconds.

        Raises:
            ValueError: If *ttl* is zero or negative.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        self.stats.sets += 1

    async def delete(self, *keys: str) -> int:
        """Delete *keys*; returns how many existed."""
        if not keys:
            return 0
        removed = int(await self._redis.delete(*keys))
        self.stats.deletes += removed
        return removed

    async def get_or_set(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: int | None = None,
    ) -> Any | None:
        """Cache-aside read.

        On a miss, awaits *loader* and caches its result. ``None`` results
        are returned but not cached, so a missing row is looked up again
        next time rather than pinned for a full TTL.
        """
        value = await self.get(key)
        if value is not None:
            return value
        value = await loader()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def invalidate(self, pattern: str) -> int:
        """Delete every key matching *pattern* (``SCAN`` + ``DEL`` in batches).

        ``KEYS`` is never used: it blocks the server on large keyspaces.
        """
        removed = 0
        batch: list[str] = []
        async for key in self._redis.scan_iter(match=pattern, count=_SCAN_BATCH):
            batch.append(key)
            if len(batch) >= _SCAN_BATCH:
                removed += await self.delete(*batch)
                batch = []
        if batch:
            removed += await self.delete(*batch)
        logger.info("cache_invalidated", pattern=pattern, removed=removed)
        return removed

    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime of *key* in seconds.

        Returns ``None`` when the key does not exist (``-2``) or has no
        expiry (``-1``).
        """
        remaining = int(await self._redis.ttl(key))
        return remaining if remaining >= 0 else None


def cached(
    manager: CacheManager,
    template: str,
    ttl: int | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Cache the result of an async function under a templated key.

    The key is ``template.format(**arguments)`` where *arguments* are the
    call's bound parameters, e.g. ``@cached(cm, "guide:user:{user_id}")``.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            bound = signature.bind(*args, **kwargs)
            bound.apply_defaults()
            key = template.format(**bound.arguments)
            return await manager.get_or_set(key, lambda: fn(*args, **kwargs), ttl)

        return wrapper

    return decorator
