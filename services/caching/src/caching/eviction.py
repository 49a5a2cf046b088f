"""
Eviction policy helpers for the stack guide.

Redis stops accepting writes (``noeviction``) or starts dropping keys
once ``maxmemory`` is reached. These helpers apply the policy the guide
recommends for a cache (``allkeys-lru``) and read back memory usage.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()

# Redis memory units: k/m/g are powers of 1000, kb/mb/gb powers of 1024.
_UNITS = {
    "": 1,
    "b": 1,
    "k": 1000,
    "kb": 1024,
    "m": 1000**2,
    "mb": 1024**2,
    "g": 1000**3,
    "gb": 1024**3,
}
_SIZE_RE = re.compile(r"^\s*(\d+)\s*([a-z]*)\s*$", re.IGNORECASE)


class EvictionPolicy(str, enum.Enum):
    """``maxmemory-policy`` values understood by Redis."""

    NOEVICTION = "noeviction"
    ALLKEYS_LRU = "allkeys-lru"
    ALLKEYS_LFU = "allkeys-lfu"
    ALLKEYS_RANDOM = "allkeys-random"
    VOLATILE_LRU = "volatile-lru"
    VOLATILE_LFU = "volatile-lfu"
    VOLATILE_RANDOM = "volatile-random"
    VOLATILE_TTL = "volatile-ttl"

    @property
    def requires_ttl(self) -> bool:
        """``volatile-*`` policies only evict keys that have an expiry."""
        return self.value.startswith("volatile-")


@dataclass(frozen=True)
class MemoryReport:
    """Memory figures read from ``INFO``."""

    used_memory: int
    maxmemory: int
    policy: str
    evicted_keys: int
    expired_keys: int

    @property
    def usage_ratio(self) -> float | None:
        """``used / max``, or ``None`` when no limit is configured."""
        if self.maxmemory <= 0:
            return None
        return self.used_memory / self.maxmemory


def parse_memory_size(value: str | int) -> int:
    """Convert a Redis memory size (``"256mb"``, ``"1g"``, ``1024``) to bytes.

    Raises:
        ValueError: If the value is not a non-negative size with a known unit.
    """
    if isinstance(value, int):
        if value < 0:
            raise ValueError("memory size must be >= 0")
        return value
    match = _SIZE_RE.match(value)
    if match is None:
        raise ValueError(f"invalid memory size: {value!r}")
    number, unit = match.groups()
    unit = unit.lower()
    if unit not in _UNITS:
        raise ValueError(f"unknown memory unit {unit!r} in {value!r}")
    return int(number) * _UNITS[unit]


async def configure_eviction(
    redis: Any,
    maxmemory: str | int,
    policy: EvictionPolicy | str = EvictionPolicy.ALLKEYS_LRU,
) -> None:
    """Apply ``maxmemory`` and ``maxmemory-policy`` with ``CONFIG SET``.

    Managed Redis offerings often disable ``CONFIG``; the resulting
    ``ResponseError`` is left to the caller.
    """
    size = parse_memory_size(maxmemory)
    policy = EvictionPolicy(policy)
    await redis.config_set("maxmemory", str(size))
    await redis.config_set("maxmemory-policy", policy.value)
    logger.info("eviction_configured", maxmemory=size, policy=policy.value)


async def memory_report(redis: Any) -> MemoryReport:
    """Read memory usage and eviction counters from ``INFO``."""
    memory = await redis.info("memory")
    stats = await redis.info("stats")
    return MemoryReport(
        used_memory=int(memory.get("used_memory", 0)),
        maxmemory=int(memory.get("maxmemory", 0)),
        policy=str(memory.get("maxmemory_policy", "noeviction")),
        evicted_keys=int(stats.get("evicted_keys", 0)),
        expired_keys=int(stats.get("expired_keys", 0)),
    )
