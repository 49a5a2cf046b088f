"""Seed Redis with the sample data used throughout the guide.

Creates the ``user:1`` hash, an activity feed, a leaderboard and a few
sessions (one of them stale) so the docs' redis-cli commands and the
periodic tasks have something to work on.

Usage:
    python scripts/seed_redis.py --redis-url redis://localhost:6379/0
"""

import argparse
import asyncio
import time

from caching.keys import CacheKeyBuilder
from caching.structures import ActivityFeed, Leaderboard, UserProfileStore
from guide_common.config import get_settings
from guide_common.logging import configure_logging
from guide_common.messaging.redis_client import RedisClient

SAMPLE_SCORES = {"ada": 420.0, "grace": 380.0, "linus": 310.0, "guido": 295.0}


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for seeding."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Seed Redis with guide sample data")
    parser.add_argument("--redis-url", type=str, default=settings.redis_url, help="Redis URL")
    parser.add_argument("--prefix", type=str, default=settings.cache_key_prefix, help="Key prefix")
    return parser.parse_args()


async def main() -> None:
    """Write the sample keys."""
    args = parse_args()
    configure_logging("INFO", "console")
    keys = CacheKeyBuilder(args.prefix)
    async with RedisClient(args.redis_url) as client:
        redis = client.redis
        await UserProfileStore(redis, keys).save(1, {"name": "Ada", "email": "ada@example.com"})

        feed = ActivityFeed(redis, keys, max_length=50)
        for item in ("signed_up", "joined:weekly", "scored:420"):
            await feed.push(1, item)

        board = Leaderboard(redis, keys)
        for member, score in SAMPLE_SCORES.items():
            await board.add_score("global", member, score)

        now = time.time()
        await redis.hset(keys.build("session", "fresh"), mapping={"user_id": 1, "last_seen": now})
        await redis.hset(keys.build("session", "stale"), mapping={"user_id": 2, "last_seen": now - 7 * 86400})
    print(f"Seeded sample data under {args.prefix}:*", flush=True)


if __name__ == "__main__":
    asyncio.run(main())
