"""
Shared Redis connection for the stack guide.

One ``RedisClient`` owns a connection pool; the caching structures, the
alert throttle and the web app's rate limiter borrow the raw
``redis.asyncio.Redis`` from :attr:`RedisClient.redis` instead of opening
their own. Pub/sub helpers cover the guide's notification examples:
payloads travel as JSON and :meth:`RedisClient.listen` hands back decoded
messages only, skipping the ``subscribe`` confirmations Redis sends first.
"""

from __future__ import annotations

import json
import time
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel
from redis.exceptions import RedisError

from guide_common.config import Settings, get_settings

logger = structlog.get_logger()

Payload = dict[str, Any] | BaseModel | str


def _encode(message: Payload) -> str:
    if isinstance(message, BaseModel):
        return message.model_dump_json()
    if isinstance(message, dict):
        return json.dumps(message, default=str)
    return message


def _decode(data: Any) -> Any:
    if not isinstance(data, str):
        return data
    try:
        return json.loads(data)
    except ValueError:
        return data


class RedisClient:
    """Pooled async Redis connection.

    Usable as ``await client.connect()`` / ``await client.close()`` or as an
    async context manager.

    Args:
        url: Redis URL; defaults to ``Settings.redis_url``.
        settings: Pool size and socket timeout source.
    """

    def __init__(self, url: str | None = None, *, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.url = url or settings.redis_url
        self.max_connections = settings.redis_max_connections
        self.socket_timeout = settings.redis_socket_timeout_s
        self._redis: aioredis.Redis | None = None
        self._pubsubs: list[aioredis.client.PubSub] = []

    async def __aenter__(self) -> RedisClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._redis is not None:
            return
        self._redis = aioredis.from_url(
            self.url,
            decode_responses=True,
            max_connections=self.max_connections,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )
        logger.info("redis_connected", url=self.url, max_connections=self.max_connections)

    async def close(self) -> None:
        """Close open subscriptions, then the pool."""
        for pubsub in self._pubsubs:
            await pubsub.aclose()
        self._pubsubs.clear()
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("redis_closed", url=self.url)

    @property
    def redis(self) -> aioredis.Redis:
        """The pooled ``redis.asyncio.Redis``.

        Raises:
            RuntimeError: If :meth:`connect` has not been awaited.
        """
        if self._redis is None:
            raise RuntimeError("RedisClient is not connected; await connect() first")
        return self._redis

    # ── pub/sub ──

    async def publish(self, channel: str, message: Payload) -> int:
        """Publish *message* on *channel* and return how many subscribers got it.

        Pub/sub is fire-and-forget: a message published while nobody is
        subscribed is gone. Use a list or a RabbitMQ queue when it must be kept.
        """
        receivers: int = await self.redis.publish(channel, _encode(message))
        logger.debug("redis_published", channel=channel, receivers=receivers)
        return receivers

    async def subscribe(self, *channels: str, patterns: bool = False) -> aioredis.client.PubSub:
        """Open a ``PubSub`` subscribed to *channels* (glob patterns if *patterns*)."""
        if not channels:
            raise ValueError("at least one channel is required")
        pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        if patterns:
            await pubsub.psubscribe(*channels)
        else:
            await pubsub.subscribe(*channels)
        self._pubsubs.append(pubsub)
        return pubsub

    async def listen(
        self,
        *channels: str,
        patterns: bool = False,
        limit: int | None = None,
    ) -> AsyncIterator[tuple[str, Any]]:
        """Yield ``(channel, payload)`` for each message; JSON payloads are decoded.

        Stops after *limit* messages when given. The subscription is closed
        when the iterator finishes or is closed early.
        """
        pubsub = await self.subscribe(*channels, patterns=patterns)
        received = 0
        try:
            async for message in pubsub.listen():
                if message["type"] not in ("message", "pmessage"):
                    continue
                yield message["channel"], _decode(message["data"])
                received += 1
                if limit is not None and received >= limit:
                    break
        finally:
            if pubsub in self._pubsubs:
                self._pubsubs.remove(pubsub)
            await pubsub.aclose()

    # ── health ──

    async def ping_latency_ms(self) -> float | None:
        """Round-trip time of a ``PING`` in milliseconds, ``None`` if Redis is unreachable."""
        started = time.perf_counter()
        try:
            await self.redis.ping()
        except (RedisError, OSError) as exc:
            logger.warning("redis_ping_failed", url=self.url, error=str(exc))
            return None
        return round((time.perf_counter() - started) * 1000, 3)

    async def health_check(self) -> bool:
        return await self.ping_latency_ms() is not None
