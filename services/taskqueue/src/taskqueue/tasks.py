"""
Celery tasks for the stack guide.

Two retry styles are shown side by side:

* :func:`send_welcome_email` declares ``autoretry_for`` and lets Celery
  compute an exponential, jittered back-off.
* :func:`fetch_exchange_rates` decides for itself which failures are
  worth retrying and calls ``self.retry`` with an explicit countdown.

The remaining tasks are the building blocks of the canvas examples in
:mod:`taskqueue.workflows` and the two periodic jobs scheduled by beat.
"""

from __future__ import annotations

import json
import smtplib
import time
from typing import Any

import httpx
import redis
import structlog
from celery import shared_task

from caching.keys import CacheKeyBuilder
from guide_common.config import get_settings
from guide_common.utils import backoff_countdown, new_id, utc_now
from taskqueue.mail import deliver_email

logger = structlog.get_logger()

_RATES_TTL_S = 3600
_HTTP_TIMEOUT_S = 10.0
_SCAN_BATCH = 500


class UpstreamUnavailable(Exception):
    """The upstream service failed in a way that is worth retrying."""


def _redis() -> redis.Redis:
    return redis.Redis.from_url(get_settings().redis_url, decode_responses=True)


def _keys() -> CacheKeyBuilder:
    return CacheKeyBuilder(get_settings().cache_key_prefix)


# ── retrying tasks ──


@shared_task(  # type: ignore[untyped-decorator]
    name="taskqueue.send_welcome_email",
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=5,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=get_settings().celery_task_max_retries,
    acks_late=True,
)
def send_welcome_email(user_id: str, email: str) -> dict[str, str]:
    """Send the sign-up mail; SMTP failures are retried by Celery."""
    logger.info("welcome_email_start", user_id=user_id)
    deliver_email(email, "Welcome aboard", f"Hi {user_id}, thanks for signing up.")
    return {"user_id": user_id, "email": email, "status": "sent"}


def _download_rates(url: str, base: str) -> dict[str, float]:
    try:
        response = httpx.get(url, params={"base": base}, timeout=_HTTP_TIMEOUT_S)
    except httpx.TransportError as exc:
        raise UpstreamUnavailable(f"transport error: {exc}") from exc
    if response.status_code >= 500:
        raise UpstreamUnavailable(f"upstream returned {response.status_code}")
    # 4xx means the request itself is wrong; retrying would not help.
    response.raise_for_status()
    return response.json()["rates"]


@shared_task(  # type: ignore[untyped-decorator]
    bind=True,
    name="taskqueue.fetch_exchange_rates",
    max_retries=get_settings().celery_task_max_retries,
    acks_late=True,
)
def fetch_exchange_rates(self: Any, base: str = "EUR") -> dict[str, Any]:
    """Download exchange rates for *base* and cache them in Redis.

    Transport errors and 5xx responses are retried after
    ``backoff_countdown(retries)`` seconds; other HTTP errors fail the task.

    Returns:
        ``{"base", "rates", "cache_key"}``.
    """
    base = base.upper()
    settings = get_settings()
    log = logger.bind(base=base, task_id=self.request.id, attempt=self.request.retries + 1)

    try:
        rates = _download_rates(settings.exchange_rates_url, base)
    except UpstreamUnavailable as exc:
        countdown = backoff_countdown(self.request.retries)
        log.warning("exchange_rates_retry", error=str(exc), countdown=countdown)
        raise self.retry(exc=exc, countdown=countdown)

    key = _keys().build("rates", base)
    _redis().set(key, json.dumps(rates), ex=_RATES_TTL_S)
    log.info("exchange_rates_cached", key=key, currencies=len(rates))
    return {"base": base, "rates": rates, "cache_key": key}


# ── chain: checkout ──


@shared_task(name="taskqueue.fetch_order")  # type: ignore[untyped-decorator]
def fetch_order(order_id: str) -> dict[str, Any]:
    """Load the order hash written by the web app.

    Raises:
        LookupError: If the order does not exist.
    """
    data = _redis().hgetall(_keys().build("order", order_id))
    if not data:
        raise LookupError(f"order {order_id!r} not found")
    return {
        "order_id": order_id,
        "email": data.get("email", ""),
        "amount": float(data.get("amount", 0)),
        "currency": data.get("currency", "EUR"),
    }


@shared_task(name="taskqueue.charge_payment")  # type: ignore[untyped-decorator]
def charge_payment(order: dict[str, Any]) -> dict[str, Any]:
    """Pretend to charge *order* and attach a charge id."""
    if order.get("amount", 0) <= 0:
        raise ValueError(f"order {order.get('order_id')!r} has nothing to charge")
    charged = dict(order, charge_id=new_id(), paid=True)
    logger.info("payment_charged", order_id=order["order_id"], amount=order["amount"])
    return charged


@shared_task(  # type: ignore[untyped-decorator]
    name="taskqueue.send_receipt",
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    max_retries=get_settings().celery_task_max_retries,
)
def send_receipt(order: dict[str, Any]) -> dict[str, Any]:
    if not order.get("email"):
        logger.info("receipt_skipped", order_id=order["order_id"])
        return {"order_id": order["order_id"], "receipt_sent": False}
    deliver_email(
        order["email"],
        f"Receipt for order {order['order_id']}",
        f"We charged {order['amount']:.2f} {order.get('currency', 'EUR')} ({order['charge_id']}).",
    )
    return {"order_id": order["order_id"], "receipt_sent": True}


# ── group: thumbnails ──


@shared_task(name="taskqueue.resize_image")  # type: ignore[untyped-decorator]
def resize_image(image_id: str, width: int) -> dict[str, Any]:
    if width <= 0:
        raise ValueError("width must be positive")
    return {"image_id": image_id, "width": width, "path": f"thumbnails/{image_id}_{width}.jpg"}


# ── chord: totals ──


@shared_task(name="taskqueue.compute_partial_total")  # type: ignore[untyped-decorator]
def compute_partial_total(values: list[float]) -> float:
    return round(sum(values), 2)


@shared_task(name="taskqueue.sum_totals")  # type: ignore[untyped-decorator]
def sum_totals(partials: list[float]) -> float:
    """Chord callback: receives every header result, in header order."""
    return round(sum(partials), 2)


# ── periodic ──


@shared_task(name="taskqueue.cleanup_stale_sessions")  # type: ignore[untyped-decorator]
def cleanup_stale_sessions() -> dict[str, int]:
    """Delete session hashes whose ``last_seen`` is older than ``session_max_age_s``.

    A session without a readable ``last_seen`` counts as stale.
    """
    settings = get_settings()
    client = _redis()
    cutoff = time.time() - settings.session_max_age_s
    scanned = 0
    stale: list[str] = []
    for key in client.scan_iter(match=_keys().pattern("session"), count=_SCAN_BATCH):
        scanned += 1
        try:
            last_seen = float(client.hget(key, "last_seen") or "")
        except ValueError:
            last_seen = 0.0
        if last_seen < cutoff:
            stale.append(key)
    deleted = client.delete(*stale) if stale else 0
    logger.info("stale_sessions_cleaned", scanned=scanned, deleted=deleted)
    return {"scanned": scanned, "deleted": deleted}


@shared_task(name="taskqueue.snapshot_leaderboard")  # type: ignore[untyped-decorator]
def snapshot_leaderboard(board: str, size: int = 10) -> dict[str, Any]:
    """Copy the top *size* entries of *board* into a JSON cache key.

    Raises:
        ValueError: If *size* is below 1; ``ZREVRANGE 0 -1`` would copy the whole board.
    """
    if size < 1:
        raise ValueError(f"snapshot size must be >= 1, got {size}")
    settings = get_settings()
    keys = _keys()
    client = _redis()
    rows = client.zrevrange(keys.build("leaderboard", board), 0, size - 1, withscores=True)
    snapshot = {
        "board": board,
        "taken_at": utc_now().isoformat(),
        "entries": [
            {"rank": rank, "member": member, "score": score}
            for rank, (member, score) in enumerate(rows, start=1)
        ],
    }
    key = keys.build("leaderboard", board, "snapshot")
    client.set(key, json.dumps(snapshot), ex=settings.leaderboard_snapshot_interval_s * 2)
    logger.info("leaderboard_snapshot_taken", board=board, entries=len(rows))
    return {"board": board, "entries": len(rows), "cache_key": key}
