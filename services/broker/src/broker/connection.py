"""
Broker connection helpers for the stack guide.

Several URLs separated by ``;`` give kombu a failover list; heartbeats
let both sides notice a dead TCP connection long before the OS does.
"""

from __future__ import annotations

import structlog
from kombu import Connection

from guide_common.config import get_settings

logger = structlog.get_logger()

_DEFAULT_HEARTBEAT_S = 30
_DEFAULT_CONNECT_TIMEOUT_S = 5.0


def connect(
    url: str | None = None,
    *,
    heartbeat: int = _DEFAULT_HEARTBEAT_S,
    connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT_S,
) -> Connection:
    """Return a lazy kombu ``Connection`` (no socket is opened yet).

    Args:
        url: AMQP URL (or ``;``-separated failover list). Falls back to
             ``Settings.amqp_url``.
        heartbeat: AMQP heartbeat interval in seconds (0 disables).
        connect_timeout: TCP connect timeout in seconds.
    """
    return Connection(
        url or get_settings().amqp_url,
        heartbeat=heartbeat,
        connect_timeout=connect_timeout,
        failover_strategy="round-robin",
    )


def health_check(connection: Connection, *, timeout: float = 2.0) -> bool:
    """Return ``True`` if the broker accepts a connection within *timeout*."""
    try:
        connection.ensure_connection(max_retries=1, timeout=timeout)
        return True
    except Exception as exc:  # noqa: BLE001
        logger.warning("broker_unreachable", error=str(exc))
        return False
