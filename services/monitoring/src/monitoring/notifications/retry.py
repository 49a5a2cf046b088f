"""
Celery retry task for failed alert deliveries.

A channel that fails inside the dispatcher is retried here with
exponential backoff, outside the request that received the Sentry
webhook.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from celery import shared_task

from guide_common.config import get_settings
from guide_common.messaging import celery_app as _celery_app  # noqa: F401
from guide_common.models.alert import Alert
from guide_common.utils import backoff_countdown

from .channels import build_channels

logger = structlog.get_logger()

_MAX_RETRIES = 3


async def _deliver(alert: Alert, channel_name: str) -> bool | None:
    """Send through the named channel; ``None`` when it is not configured."""
    channels = {ch.name: ch for ch in build_channels(get_settings())}
    channel = channels.get(channel_name)
    if channel is None:
        return None
    try:
        return await channel.send(alert)
    finally:
        for ch in channels.values():
            await ch.close()


@shared_task(  # type: ignore[untyped-decorator]
    bind=True,
    name="notifications.retry_failed_alert",
    max_retries=_MAX_RETRIES,
    acks_late=True,
)
def retry_failed_alert(self: Any, alert_json: str, channel_name: str) -> bool:
    """Retry delivering *alert_json* to *channel_name*.

    This is a synchronous Celery task; channel delivery is async, so
    ``asyncio.run()`` bridges the two.

    Returns:
        ``True`` if the delivery succeeded, ``False`` if the alert cannot
        be delivered (bad payload, unknown channel, retries exhausted).
    """
    log = logger.bind(channel=channel_name, attempt=self.request.retries + 1)
    log.info("retry_failed_alert_start")

    try:
        alert = Alert.model_validate_json(alert_json)
    except ValueError as exc:
        log.error("retry_deserialize_failed", error=str(exc))
        return False

    ok = asyncio.run(_deliver(alert, channel_name))
    if ok is None:
        log.error("retry_unknown_channel")
        return False
    if ok:
        log.info("retry_failed_alert_complete", alert_id=alert.alert_id)
        return True
    if self.request.retries >= self.max_retries:
        log.error("retry_failed_alert_exhausted", alert_id=alert.alert_id)
        return False
    raise self.retry(countdown=backoff_countdown(self.request.retries))


def enqueue_retry(alert: Alert, channel_name: str) -> None:
    """Serialise *alert* and schedule the first retry.

    Passed as the ``retry_enqueue`` callback to :class:`AlertDispatcher`.
    """
    retry_failed_alert.apply_async(
        args=(alert.model_dump_json(), channel_name),
        countdown=backoff_countdown(0),
    )
