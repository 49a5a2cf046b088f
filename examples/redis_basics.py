"""Redis walkthrough: strings with TTL, hashes, lists, sets, sorted sets, pub/sub.

Usage:
    python examples/redis_basics.py
"""

import asyncio

from caching.cache import CacheManager
from caching.eviction import memory_report
from caching.keys import CacheKeyBuilder
from caching.structures import ActivityFeed, Leaderboard, OnlineUsers, UserProfileStore
from guide_common.config import get_settings
from guide_common.logging import configure_logging
from guide_common.messaging.redis_client import RedisClient


async def pubsub_demo(client: RedisClient, channel: str) -> None:
    """Subscribe first, then publish: pub/sub does not keep messages for late listeners."""

    async def receive() -> None:
        async for ch, payload in client.listen(channel, limit=2):
            print(f"received on {ch}:", payload)

    listener = asyncio.create_task(receive())
    await asyncio.sleep(0.1)
    await client.publish(channel, {"kind": "login", "user_id": 1})
    await client.publish(channel, "plain text works too")
    await asyncio.wait_for(listener, timeout=5)


async def main() -> None:
    settings = get_settings()
    configure_logging("INFO", "console")
    keys = CacheKeyBuilder("example")

    async with RedisClient(settings=settings) as client:
        redis = client.redis
        cache = CacheManager(redis, default_ttl=60, keys=keys)
        await cache.set(keys.build("greeting"), {"text": "hello"})
        print("cached:", await cache.get(keys.build("greeting")), "ttl:", await cache.ttl(keys.build("greeting")))

        profiles = UserProfileStore(redis, keys)
        await profiles.save(1, {"name": "Ada", "email": "ada@example.com"})
        await profiles.increment_field(1, "logins")
        print("user:1 ->", await profiles.get(1))

        feed = ActivityFeed(redis, keys, max_length=5)
        for n in range(8):
            await feed.push(1, f"event-{n}")
        print("feed (capped at 5):", await feed.recent(1, 10))

        online = OnlineUsers(redis, keys)
        await online.join("lobby", "ada")
        await online.join("lobby", "grace")
        await online.join("support", "grace")
        print("in both rooms:", await online.common_with("lobby", "support"))

        board = Leaderboard(redis, keys)
        for member, score in (("ada", 42), ("grace", 57), ("linus", 13)):
            await board.add_score("weekly", member, score)
        for entry in await board.top("weekly", 3):
            print(f"#{entry.rank} {entry.member} {entry.score:.0f}")

        await pubsub_demo(client, keys.build("events"))

        report = await memory_report(redis)
        print("memory:", report.used_memory, "policy:", report.policy)
        print("ping:", await client.ping_latency_ms(), "ms")

        await cache.invalidate(keys.pattern())


if __name__ == "__main__":
    asyncio.run(main())
