"""Shared fixtures for task-queue tests."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest

from caching.keys import CacheKeyBuilder


@pytest.fixture()
def sync_redis() -> Iterator[MagicMock]:
    """A ``redis.Redis`` stand-in returned by ``taskqueue.tasks._redis``."""
    client = MagicMock(name="Redis")
    with patch("taskqueue.tasks._redis", return_value=client):
        yield client


@pytest.fixture()
def keys() -> Iterator[CacheKeyBuilder]:
    builder = CacheKeyBuilder("test")
    with patch("taskqueue.tasks._keys", return_value=builder):
        yield builder
