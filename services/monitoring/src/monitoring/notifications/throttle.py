"""
Alert noise control: one notification per Sentry issue, bounded per project.

Sentry calls the webhook for every event that matches an alert rule, so a
crash loop can produce hundreds of identical deliveries a minute. Two
Redis structures keep the channels usable:

``<prefix>:dedup:<project>:<issue>:<level>``
    String written with ``SET NX EX``. Whoever creates it owns the
    notification until it expires; everyone else is a duplicate.

``<prefix>:throttle:<project>``
    Sorted set of dispatch times (score = unix time). Counting it after
    ``ZREMRANGEBYSCORE`` drops old entries gives a sliding window, the same
    technique the rate-limit middleware and the Redis chapter use.
"""

from __future__ import annotations

import time
from typing import Any

import structlog

from guide_common.utils import new_id

logger = structlog.get_logger()


class AlertThrottle:
    """Redis-backed dedup and per-project sliding-window limit.

    Args:
        redis: Raw ``redis.asyncio.Redis`` (``RedisClient.redis``).
        max_per_minute: Alerts one project may send per window.
        dedup_ttl_s: How long an identical ``(project, issue, level)`` stays muted.
        window_s: Length of the sliding window.
        prefix: Key namespace, normally ``CacheKeyBuilder.build("alerts")``.
    """

    def __init__(
        self,
        redis: Any,
        *,
        max_per_minute: int = 30,
        dedup_ttl_s: int = 60,
        window_s: int = 60,
        prefix: str = "alerts",
    ) -> None:
        self._redis = redis
        self.max_per_minute = max_per_minute
        self.dedup_ttl_s = dedup_ttl_s
        self.window_s = window_s
        self.prefix = prefix

    def dedup_key(self, project: str, issue_id: str, level: str) -> str:
        return f"{self.prefix}:dedup:{project}:{issue_id}:{level}"

    def window_key(self, project: str) -> str:
        return f"{self.prefix}:throttle:{project}"

    async def is_duplicate(self, project: str, issue_id: str, level: str) -> bool:
        """Claim the notification for this issue; ``True`` if already claimed."""
        claimed = await self._redis.set(
            self.dedup_key(project, issue_id, level), "1", nx=True, ex=self.dedup_ttl_s,
        )
        if claimed:
            return False
        logger.debug("alert_deduplicated", project=project, issue_id=issue_id, level=level)
        return True

    async def forget(self, project: str, issue_id: str, level: str) -> None:
        """Release a claim so the next delivery of the same issue is processed."""
        await self._redis.delete(self.dedup_key(project, issue_id, level))

    async def is_throttled(self, project: str) -> bool:
        key = self.window_key(project)
        pipe = self._redis.pipeline()
        pipe.zremrangebyscore(key, "-inf", time.time() - self.window_s)
        pipe.zcard(key)
        _, in_window = await pipe.execute()
        if in_window < self.max_per_minute:
            return False
        logger.warning(
            "alert_throttled",
            project=project,
            count=in_window,
            max=self.max_per_minute,
            window_s=self.window_s,
        )
        return True

    async def record(self, project: str) -> None:
        """Count one dispatched alert against *project*'s window."""
        key = self.window_key(project)
        now = time.time()
        pipe = self._redis.pipeline()
        # Unique member: two alerts in the same clock tick must both count.
        pipe.zadd(key, {f"{now}:{new_id()}": now})
        pipe.expire(key, self.window_s * 2)
        await pipe.execute()
