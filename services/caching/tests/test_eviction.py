"""
Tests for eviction-policy helpers.

Covers Redis memory-unit parsing, the ``CONFIG SET`` calls and the
``INFO``-based memory report.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from caching.eviction import (
    EvictionPolicy,
    MemoryReport,
    configure_eviction,
    memory_report,
    parse_memory_size,
)


class TestParseMemorySize:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("100", 100),
            ("1k", 1000),
            ("1kb", 1024),
            ("256mb", 256 * 1024**2),
            ("2m", 2_000_000),
            ("1GB", 1024**3),
            (4096, 4096),
        ],
    )
    def test_units(self, value, expected) -> None:
        assert parse_memory_size(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "1tb", "-5mb", "1.5gb"])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            parse_memory_size(value)

    def test_negative_int(self) -> None:
        with pytest.raises(ValueError):
            parse_memory_size(-1)


class TestEvictionPolicy:

    def test_volatile_requires_ttl(self) -> None:
        assert EvictionPolicy.VOLATILE_TTL.requires_ttl is True
        assert EvictionPolicy.ALLKEYS_LRU.requires_ttl is False

    def test_eight_policies(self) -> None:
        assert len(list(EvictionPolicy)) == 8


class TestConfigureEviction:

    async def test_config_set_calls(self, mock_redis) -> None:
        await configure_eviction(mock_redis, "1mb", "allkeys-lfu")
        assert mock_redis.config_set.await_args_list == [
            call("maxmemory", str(1024**2)),
            call("maxmemory-policy", "allkeys-lfu"),
        ]

    async def test_unknown_policy_rejected(self, mock_redis) -> None:
        with pytest.raises(ValueError):
            await configure_eviction(mock_redis, "1mb", "most-recently-used")
        mock_redis.config_set.assert_not_awaited()


class TestMemoryReport:

    async def test_report(self, mock_redis) -> None:
        mock_redis.info = AsyncMock(
            side_effect=[
                {"used_memory": 512, "maxmemory": 1024, "maxmemory_policy": "allkeys-lru"},
                {"evicted_keys": 3, "expired_keys": 7},
            ],
        )
        report = await memory_report(mock_redis)
        assert report == MemoryReport(
            used_memory=512,
            maxmemory=1024,
            policy="allkeys-lru",
            evicted_keys=3,
            expired_keys=7,
        )
        assert report.usage_ratio == pytest.approx(0.5)

    def test_usage_ratio_without_limit(self) -> None:
        report = MemoryReport(100, 0, "noeviction", 0, 0)
        assert report.usage_ratio is None
