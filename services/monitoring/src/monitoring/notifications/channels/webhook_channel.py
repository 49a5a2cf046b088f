"""
Generic HTTP webhook alert channel.

Posts a compact JSON envelope for each alert, e.g.::

    {"event": "sentry.alert", "sent_at": "...", "alert": {"issue_id": "4509", ...}}

When a signing secret is configured the raw body is signed with
HMAC-SHA256 (the same scheme Sentry uses towards this app) and sent in
``X-Guide-Signature``. Transport errors and 5xx responses are retried with
exponential back-off; a 4xx means the receiver rejected the payload and
is not retried.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from guide_common.models.alert import Alert, AlertLevel
from guide_common.utils import utc_now
from monitoring.webhooks import compute_signature

from .base import AlertChannel

logger = structlog.get_logger()

SIGNATURE_HEADER = "X-Guide-Signature"
EVENT_NAME = "sentry.alert"

_ENVELOPE_FIELDS = (
    "alert_id",
    "issue_id",
    "project",
    "title",
    "culprit",
    "level",
    "environment",
    "url",
    "event_count",
    "triggered_rule",
)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


def build_envelope(alert: Alert) -> dict[str, Any]:
    """JSON body posted for *alert*."""
    data = alert.model_dump(mode="json", include=set(_ENVELOPE_FIELDS))
    return {"event": EVENT_NAME, "sent_at": utc_now().isoformat(), "alert": data}


class WebhookChannel(AlertChannel):
    """POST alerts to an arbitrary HTTP endpoint.

    Args:
        url: Receiver URL.
        secret: Optional HMAC key; adds ``X-Guide-Signature`` when set.
        max_attempts: Delivery attempts for retryable failures.
        timeout: Per-request timeout in seconds.
        headers: Extra headers sent on every request (auth tokens etc.).
        min_level: Lowest level forwarded.
    """

    name: str = "webhook"

    def __init__(
        self,
        url: str,
        *,
        secret: str = "",
        max_attempts: int = 3,
        timeout: float = 10.0,
        headers: dict[str, str] | None = None,
        min_level: AlertLevel = AlertLevel.WARNING,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.url = url
        self.secret = secret
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.headers = headers or {}
        self.min_level = min_level
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _request_headers(self, body: bytes) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self.headers}
        if self.secret:
            headers[SIGNATURE_HEADER] = f"sha256={compute_signature(body, self.secret)}"
        return headers

    async def _post(self, body: bytes) -> httpx.Response:
        client = await self._get_client()
        response = await client.post(self.url, content=body, headers=self._request_headers(body))
        response.raise_for_status()
        return response

    async def send(self, alert: Alert) -> bool:
        body = json.dumps(build_envelope(alert), separators=(",", ":")).encode()
        log = logger.bind(webhook_url=self.url, alert_id=alert.alert_id)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(_is_retryable),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._post(body)
        except RetryError as exc:
            log.error(
                "webhook_delivery_failed",
                attempts=self.max_attempts,
                error=str(exc.last_attempt.exception()),
            )
            return False
        except httpx.HTTPStatusError as exc:
            log.error("webhook_rejected", status=exc.response.status_code)
            return False
        log.info("webhook_delivered", status=response.status_code, attempts=attempt.retry_state.attempt_number)
        return True

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
