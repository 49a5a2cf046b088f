"""
Sentry webhook receiver.

Verifies the ``Sentry-Hook-Signature`` HMAC, turns the payload into an
``Alert`` and hands it to the notification dispatcher.
"""

from __future__ import annotations

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from guide_common.config import Settings
from monitoring.notifications.dispatcher import AlertDispatcher
from monitoring.webhooks import (
    RESOURCE_HEADER,
    SIGNATURE_HEADER,
    WebhookPayloadError,
    parse_sentry_webhook,
    verify_signature,
)
from webapp.dependencies import get_dispatcher, get_settings

logger = structlog.get_logger()

router = APIRouter(prefix="/hooks", tags=["hooks"])


class WebhookResult(BaseModel):
    status: str
    alert_id: Optional[str] = None
    delivered_to: list[str] = []


@router.post("/sentry", status_code=202, response_model=WebhookResult)
async def sentry_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> WebhookResult:
    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.sentry_webhook_secret):
        logger.warning("sentry_webhook_bad_signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    resource = request.headers.get(RESOURCE_HEADER, "")
    try:
        payload = json.loads(body)
        alert = parse_sentry_webhook(resource, payload)
    except (ValueError, WebhookPayloadError) as exc:
        logger.warning("sentry_webhook_unparseable", resource=resource, error=str(exc))
        raise HTTPException(status_code=400, detail="Unparseable webhook payload") from exc

    if alert is None:
        return WebhookResult(status="ignored")

    delivered = await dispatcher.dispatch(alert)
    return WebhookResult(
        status="dispatched" if delivered else "suppressed",
        alert_id=alert.alert_id,
        delivered_to=alert.delivered_to,
    )
