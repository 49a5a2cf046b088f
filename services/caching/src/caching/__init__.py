"""
Caching examples for the stack guide (Redis section).

Cache-aside helpers, the five core Redis data structures applied to
web-app problems, and eviction-policy management.
"""

from caching.cache import CacheManager, CacheStats, cached
from caching.keys import CacheKeyBuilder, InvalidKeyError

__all__ = [
    "CacheKeyBuilder",
    "CacheManager",
    "CacheStats",
    "InvalidKeyError",
    "cached",
]
