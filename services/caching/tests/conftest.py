"""Shared fixtures for caching tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from caching.keys import CacheKeyBuilder


def _async_iter(items: list[Any]):
    async def _gen(*args: Any, **kwargs: Any):
        for item in items:
            yield item

    return _gen


@pytest.fixture()
def keys() -> CacheKeyBuilder:
    return CacheKeyBuilder("test")


@pytest.fixture()
def mock_redis() -> AsyncMock:
    """Async mock standing in for a ``redis.asyncio.Redis`` instance."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.ttl = AsyncMock(return_value=-2)
    redis.scan_iter = MagicMock(side_effect=_async_iter([]))

    # Pipeline mock: commands are buffered (sync), execute() is awaited.
    pipe = AsyncMock()
    pipe.lpush = MagicMock(return_value=pipe)
    pipe.ltrim = MagicMock(return_value=pipe)
    pipe.incr = MagicMock(return_value=pipe)
    pipe.expire = MagicMock(return_value=pipe)
    pipe.execute = AsyncMock(return_value=[1, True])
    redis.pipeline = MagicMock(return_value=pipe)
    return redis


@pytest.fixture()
def scan_results():
    """Factory turning a list of keys into a ``scan_iter`` side effect."""
    return _async_iter
