"""
Redis data structures applied to everyday web-app problems.

Each class pairs one Redis type with the job it is best at:

* hash        -> :class:`UserProfileStore` (``user:1`` with ``name``/``email`` fields)
* list        -> :class:`ActivityFeed` (capped, newest first)
* set         -> :class:`OnlineUsers` (membership, intersections)
* sorted set  -> :class:`Leaderboard` (ranking by score)
* string      -> :class:`FixedWindowCounter` (``INCR`` + ``EXPIRE``)

All classes take a ``redis.asyncio.Redis`` opened with
``decode_responses=True`` and a :class:`~caching.keys.CacheKeyBuilder`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from caching.keys import CacheKeyBuilder


class UserProfileStore:
    """User profiles stored as Redis hashes at ``<prefix>:user:<id>``."""

    def __init__(self, redis: Any, keys: CacheKeyBuilder) -> None:
        self._redis = redis
        self._keys = keys

    def key(self, user_id: object) -> str:
        return self._keys.build("user", user_id)

    async def save(self, user_id: object, fields: Mapping[str, Any]) -> None:
        """Write (or overwrite) *fields* of the profile."""
        if not fields:
            raise ValueError("fields must not be empty")
        await self._redis.hset(self.key(user_id), mapping={k: str(v) for k, v in fields.items()})

    async def get(self, user_id: object) -> dict[str, str] | None:
        """Return every field of the profile, or ``None`` if it does not exist."""
        data: dict[str, str] = await self._redis.hgetall(self.key(user_id))
        return data or None

    async def update_field(self, user_id: object, field: str, value: Any) -> None:
        await self._redis.hset(self.key(user_id), field, str(value))

    async def increment_field(self, user_id: object, field: str, amount: int = 1) -> int:
        """Atomically add *amount* to an integer field (``HINCRBY``)."""
        return int(await self._redis.hincrby(self.key(user_id), field, amount))

    async def delete(self, user_id: object) -> bool:
        return bool(await self._redis.delete(self.key(user_id)))


class ActivityFeed:
    """Per-user activity list, newest first, trimmed to *max_length* entries."""

    def __init__(self, redis: Any, keys: CacheKeyBuilder, *, max_length: int = 100) -> None:
        if max_length < 1:
            raise ValueError("max_length must be >= 1")
        self._redis = redis
        self._keys = keys
        self.max_length = max_length

    def key(self, user_id: object) -> str:
        return self._keys.build("feed", user_id)

    async def push(self, user_id: object, item: str) -> None:
        """Prepend *item* and drop anything beyond ``max_length``."""
        key = self.key(user_id)
        pipe = self._redis.pipeline()
        pipe.lpush(key, item)
        pipe.ltrim(key, 0, self.max_length - 1)
        await pipe.execute()

    async def recent(self, user_id: object, count: int = 10) -> list[str]:
        if count < 1:
            return []
        items: list[str] = await self._redis.lrange(self.key(user_id), 0, count - 1)
        return items

    async def length(self, user_id: object) -> int:
        return int(await self._redis.llen(self.key(user_id)))


class OnlineUsers:
    """Set of user ids currently online in a room."""

    def __init__(self, redis: Any, keys: CacheKeyBuilder) -> None:
        self._redis = redis
        self._keys = keys

    def key(self, room: str) -> str:
        return self._keys.build("online", room)

    async def join(self, room: str, user_id: object) -> bool:
        """Add *user_id*; returns ``False`` if it was already present."""
        return bool(await self._redis.sadd(self.key(room), str(user_id)))

    async def leave(self, room: str, user_id: object) -> bool:
        return bool(await self._redis.srem(self.key(room), str(user_id)))

    async def members(self, room: str) -> set[str]:
        return set(await self._redis.smembers(self.key(room)))

    async def is_online(self, room: str, user_id: object) -> bool:
        return bool(await self._redis.sismember(self.key(room), str(user_id)))

    async def count(self, room: str) -> int:
        return int(await self._redis.scard(self.key(room)))

    async def common_with(self, room: str, *others: str) -> set[str]:
        """Users present in *room* and in every room of *others* (``SINTER``)."""
        keys = [self.key(room), *(self.key(o) for o in others)]
        return set(await self._redis.sinter(keys))


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of a leaderboard; ``rank`` is 1-based."""

    rank: int
    member: str
    score: float


class Leaderboard:
    """Score ranking backed by a sorted set (highest score first)."""

    def __init__(self, redis: Any, keys: CacheKeyBuilder) -> None:
        self._redis = redis
        self._keys = keys

    def key(self, board: str) -> str:
        return self._keys.build("leaderboard", board)

    async def add_score(self, board: str, member: str, score: float) -> None:
        """Set *member*'s score, replacing any previous value."""
        await self._redis.zadd(self.key(board), {member: score})

    async def increment(self, board: str, member: str, amount: float = 1.0) -> float:
        return float(await self._redis.zincrby(self.key(board), amount, member))

    async def top(self, board: str, count: int = 10) -> list[LeaderboardEntry]:
        """Return the *count* best entries, best first."""
        if count < 1:
            return []
        rows = await self._redis.zrevrange(self.key(board), 0, count - 1, withscores=True)
        return [
            LeaderboardEntry(rank=i, member=member, score=float(score))
            for i, (member, score) in enumerate(rows, start=1)
        ]

    async def rank(self, board: str, member: str) -> int | None:
        """1-based rank of *member*, or ``None`` if it has no score."""
        position = await self._redis.zrevrank(self.key(board), member)
        return None if position is None else int(position) + 1

    async def score(self, board: str, member: str) -> float | None:
        value = await self._redis.zscore(self.key(board), member)
        return None if value is None else float(value)

    async def remove(self, board: str, member: str) -> bool:
        return bool(await self._redis.zrem(self.key(board), member))


class FixedWindowCounter:
    """Count events per subject in fixed windows of *window_s* seconds.

    ``INCR`` and ``EXPIRE ... NX`` go out in one MULTI/EXEC: the expiry is
    attached by the first hit of a window (``NX`` keeps later hits from
    sliding it forward) and a counter can never be left without one.
    ``EXPIRE NX`` needs Redis 7.
    """

    def __init__(self, redis: Any, keys: CacheKeyBuilder, *, name: str, window_s: int) -> None:
        if window_s < 1:
            raise ValueError("window_s must be >= 1")
        self._redis = redis
        self._keys = keys
        self.name = name
        self.window_s = window_s

    def key(self, subject: object) -> str:
        return self._keys.build("counter", self.name, subject)

    async def hit(self, subject: object) -> int:
        """Record one event; returns the count within the current window."""
        key = self.key(subject)
        pipe = self._redis.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, self.window_s, nx=True)
        count, _ = await pipe.execute()
        return int(count)

    async def remaining(self, subject: object, limit: int) -> int:
        current = await self._redis.get(self.key(subject))
        used = int(current) if current is not None else 0
        return max(0, limit - used)
