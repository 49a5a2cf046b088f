"""
Alert routing dispatcher.

Flow
----
1. Dedup check on ``(project, issue_id, level)``.
2. Per-project rate limit.
3. Fan-out to every channel whose ``min_level`` the alert meets.
4. Record the alert in the rate-limit window and hand it to the
   optional writer.
5. Channels that return ``False`` (or raise) are queued for retry via
   Celery (see :mod:`monitoring.notifications.retry`). The enqueue runs in a
   worker thread; when the broker is unreachable the channel is marked
   ``retry_unavailable`` and dispatch carries on; if that leaves the alert
   undelivered everywhere, its dedup claim is released.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import structlog
from kombu.exceptions import OperationalError
from prometheus_client import Counter

from guide_common.models.alert import Alert

from .channels.base import AlertChannel
from .throttle import AlertThrottle

logger = structlog.get_logger()

alerts_dispatched_total = Counter(
    "alerts_dispatched_total",
    "Alerts processed by the dispatcher",
    ["outcome"],
)

AlertWriter = Callable[[Alert], Awaitable[None]]
RetryEnqueue = Callable[[Alert, str], Any]


class AlertDispatcher:
    """Orchestrates dedup, throttle, channel fan-out and recording.

    Args:
        throttle: :class:`AlertThrottle` instance.
        channels: :class:`AlertChannel` implementations.
        alert_writer: Optional async callable that stores the alert after
                      dispatch. If *None*, nothing is stored.
        retry_enqueue: Optional callable to enqueue a failed delivery for
                       retry via Celery (``(Alert, channel_name) -> None``).
    """

    def __init__(
        self,
        throttle: AlertThrottle,
        channels: list[AlertChannel],
        *,
        alert_writer: AlertWriter | None = None,
        retry_enqueue: RetryEnqueue | None = None,
    ) -> None:
        self.throttle = throttle
        self.channels = channels
        self._alert_writer = alert_writer
        self._retry_enqueue = retry_enqueue

    async def _enqueue_retry(self, alert: Alert, channel_name: str, status: str) -> str:
        """Queue a redelivery and return the channel's final delivery status."""
        if self._retry_enqueue is None:
            return status
        try:
            await asyncio.to_thread(self._retry_enqueue, alert, channel_name)
        except OperationalError as exc:
            logger.error(
                "alert_retry_enqueue_failed",
                alert_id=alert.alert_id,
                channel=channel_name,
                error=str(exc),
            )
            return "retry_unavailable"
        return status

    async def dispatch(self, alert: Alert) -> bool:
        """Run the full dispatch pipeline for *alert*.

        Returns:
            ``True`` if the alert was delivered to at least one channel.
        """
        log = logger.bind(project=alert.project, issue_id=alert.issue_id, alert_id=alert.alert_id)

        if await self.throttle.is_duplicate(alert.project, alert.issue_id, alert.level.value):
            log.info("alert_suppressed_dedup")
            alert.deduplicated = True
            alerts_dispatched_total.labels(outcome="deduplicated").inc()
            return False

        if await self.throttle.is_throttled(alert.project):
            log.info("alert_suppressed_throttle")
            alerts_dispatched_total.labels(outcome="throttled").inc()
            return False

        delivered_to: list[str] = []
        delivery_status: dict[str, str] = {}

        for ch in self.channels:
            if not ch.accepts(alert):
                continue
            try:
                ok = await ch.send(alert)
            except Exception as exc:  # noqa: BLE001
                log.error("channel_send_error", channel=ch.name, error=str(exc))
                delivery_status[ch.name] = await self._enqueue_retry(alert, ch.name, "error")
                continue
            if ok:
                delivered_to.append(ch.name)
                delivery_status[ch.name] = "delivered"
            else:
                delivery_status[ch.name] = await self._enqueue_retry(alert, ch.name, "failed")

        alert.delivered_to = delivered_to
        alert.delivery_status = delivery_status

        if delivery_status and set(delivery_status.values()) == {"retry_unavailable"}:
            # Nobody got it and nothing is queued: let Sentry's next delivery through.
            await self.throttle.forget(alert.project, alert.issue_id, alert.level.value)

        await self.throttle.record(alert.project)

        if self._alert_writer is not None:
            try:
                await self._alert_writer(alert)
            except Exception as exc:  # noqa: BLE001
                log.error("alert_persist_failed", error=str(exc))

        outcome = "delivered" if delivered_to else ("failed" if delivery_status else "unrouted")
        alerts_dispatched_total.labels(outcome=outcome).inc()
        log.info("alert_dispatched", delivered_to=delivered_to, delivery_status=delivery_status)
        return len(delivered_to) > 0

    async def close(self) -> None:
        for ch in self.channels:
            await ch.close()
