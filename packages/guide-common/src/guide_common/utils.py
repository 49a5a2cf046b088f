"""
Shared utility functions for the stack guide.

Contains general-purpose helpers used across multiple packages:
identifier generation, UTC timestamps and the exponential back-off
schedule shared by Celery retries and alert redelivery.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

# Back-off defaults: 5 s, 10 s, 20 s … capped at 10 minutes.
DEFAULT_BACKOFF_BASE = 5
DEFAULT_BACKOFF_FACTOR = 2
DEFAULT_BACKOFF_CAP = 600


def utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a random 32-character hex identifier."""
    return uuid4().hex


def backoff_countdown(
    retries: int,
    *,
    base: int = DEFAULT_BACKOFF_BASE,
    factor: int = DEFAULT_BACKOFF_FACTOR,
    cap: int = DEFAULT_BACKOFF_CAP,
) -> int:
    """Return the delay in seconds before retry number ``retries + 1``.

    Args:
        retries: Retries already performed (``task.request.retries``).
        base: Delay before the first retry.
        factor: Multiplier applied per retry.
        cap: Upper bound for the delay.

    Raises:
        ValueError: If *retries* is negative.
    """
    if retries < 0:
        raise ValueError("retries must be >= 0")
    return int(min(cap, base * factor**retries))
