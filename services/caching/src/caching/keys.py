"""
Cache key construction for the stack guide.

Keys follow the ``prefix:type:id[:field]`` convention from the guide so
they are greppable with ``SCAN MATCH`` and easy to invalidate by pattern.
"""

from __future__ import annotations


class InvalidKeyError(ValueError):
    """Raised when a key part is empty or contains whitespace."""


class CacheKeyBuilder:
    """Build namespaced Redis keys.

    Args:
        prefix: Namespace prepended to every key (e.g. ``"guide"``).
    """

    separator = ":"

    def __init__(self, prefix: str) -> None:
        self.prefix = self._check(prefix)

    @staticmethod
    def _check(part: object) -> str:
        text = str(part)
        if not text:
            raise InvalidKeyError("key parts must not be empty")
        if any(ch.isspace() for ch in text):
            raise InvalidKeyError(f"key part {text!r} contains whitespace")
        return text

    def build(self, *parts: object) -> str:
        """Join *parts* under the prefix: ``build("user", 1)`` -> ``guide:user:1``."""
        if not parts:
            raise InvalidKeyError("at least one key part is required")
        return self.separator.join([self.prefix, *(self._check(p) for p in parts)])

    def pattern(self, *parts: object) -> str:
        """Return a ``SCAN MATCH`` pattern covering every key below *parts*."""
        if not parts:
            return f"{self.prefix}{self.separator}*"
        return f"{self.build(*parts)}{self.separator}*"
