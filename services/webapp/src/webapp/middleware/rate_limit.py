"""
Rate limiting middleware.

Sliding-window limit per client (default 100 requests per 60 s) kept in
a Redis sorted set, so every app instance shares one budget.

Clients are keyed by peer address. ``X-Forwarded-For`` is only read when
the peer is a configured trusted proxy; otherwise any client could rotate
the header to get a fresh window.
"""

from __future__ import annotations

import time
from typing import Any, Iterable

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

DEFAULT_LIMIT = 100  # requests
DEFAULT_WINDOW = 60  # seconds

# Paths that skip rate-limiting.
_SKIP_PATHS: set[str] = {"/health", "/docs", "/openapi.json", "/redoc"}


def client_id(request: Request, trusted_proxies: Iterable[str] = ()) -> str:
    """Address the limit is counted against.

    Behind trusted proxies this is the rightmost ``X-Forwarded-For`` hop that
    is not itself a trusted proxy; hops further left are client-supplied.
    """
    trusted = set(trusted_proxies)
    peer = request.client.host if request.client else "anonymous"
    if peer not in trusted:
        return peer
    hops = [h.strip() for h in request.headers.get("X-Forwarded-For", "").split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-backed sliding-window rate limiter.

    The Redis connection is read from ``app.state.redis`` on each request
    (it only exists once the lifespan has run). Without Redis, or while
    Redis is failing, an in-process window is used instead.
    """

    def __init__(
        self,
        app: Any,
        redis: Any | None = None,
        limit: int = DEFAULT_LIMIT,
        window: int = DEFAULT_WINDOW,
        prefix: str = "rate",
        trusted_proxies: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self._trusted_proxies = frozenset(trusted_proxies)
        self._redis = redis
        self._limit = limit
        self._window = window
        self._prefix = prefix
        # In-memory fallback: {key: list[float timestamps]}
        self._mem: dict[str, list[float]] = {}
        self._last_sweep = 0.0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        path = request.url.path
        if path in _SKIP_PATHS or path.startswith("/metrics"):
            return await call_next(request)

        bucket = f"{self._prefix}:{client_id(request, self._trusted_proxies)}"
        redis = self._redis or getattr(request.app.state, "redis", None)

        count: int | None = None
        if redis is not None:
            try:
                count = await self._check_redis(redis, bucket)
            except (RedisError, OSError) as exc:
                logger.warning("rate_limit_redis_unavailable", error=str(exc))
        if count is None:
            count = self._check_memory(bucket)

        remaining = max(0, self._limit - count)
        if count > self._limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded"},
                headers={"Retry-After": str(self._window), "X-RateLimit-Remaining": "0"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    async def _check_redis(self, redis: Any, bucket: str) -> int:
        """Sliding-window counter using a Redis sorted set."""
        now = time.time()
        window_start = now - self._window

        pipe = redis.pipeline()
        pipe.zremrangebyscore(bucket, 0, window_start)
        pipe.zadd(bucket, {str(now): now})
        pipe.zcard(bucket)
        pipe.expire(bucket, self._window)
        results = await pipe.execute()
        return int(results[2])

    def _check_memory(self, bucket: str) -> int:
        now = time.time()
        window_start = now - self._window
        if now - self._last_sweep >= self._window:
            self._sweep(window_start)
            self._last_sweep = now
        timestamps = [t for t in self._mem.get(bucket, []) if t > window_start]
        timestamps.append(now)
        self._mem[bucket] = timestamps
        return len(timestamps)

    def _sweep(self, window_start: float) -> None:
        """Drop buckets with no request inside the current window."""
        idle = [b for b, stamps in self._mem.items() if not stamps or stamps[-1] <= window_start]
        for bucket in idle:
            del self._mem[bucket]
