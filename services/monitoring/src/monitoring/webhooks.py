"""
Inbound Sentry webhooks.

Sentry's internal integrations sign each request body with the client
secret (``Sentry-Hook-Signature``: hex HMAC-SHA256) and name the payload
type in ``Sentry-Hook-Resource``. Only the resources that describe a
problem worth notifying about are turned into :class:`Alert` objects.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

import structlog

from guide_common.models.alert import Alert, AlertLevel

logger = structlog.get_logger()

SIGNATURE_HEADER = "Sentry-Hook-Signature"
RESOURCE_HEADER = "Sentry-Hook-Resource"

# Issue actions that mean "something is newly broken".
_ALERTING_ISSUE_ACTIONS = frozenset({"created", "unresolved"})


class WebhookPayloadError(ValueError):
    """The payload does not have the shape Sentry documents for its resource."""


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of *signature* against the HMAC of *body*.

    An empty secret or missing signature never verifies.
    """
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip().lower())


def _project_slug(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("slug") or value.get("name") or value.get("id") or "unknown")
    return str(value) if value not in (None, "") else "unknown"


def _from_event_alert(payload: dict[str, Any]) -> Alert:
    data = payload.get("data") or {}
    event = data.get("event")
    if not isinstance(event, dict):
        raise WebhookPayloadError("event_alert payload without data.event")
    issue_id = event.get("issue_id") or event.get("group_id")
    if issue_id is None:
        raise WebhookPayloadError("event without issue_id")
    return Alert(
        issue_id=str(issue_id),
        project=_project_slug(event.get("project_slug") or event.get("project")),
        title=event.get("title") or event.get("message") or "Untitled event",
        culprit=event.get("culprit"),
        level=AlertLevel.parse(event.get("level")),
        environment=event.get("environment"),
        url=event.get("web_url") or event.get("url"),
        triggered_rule=data.get("triggered_rule"),
    )


def _from_issue(payload: dict[str, Any]) -> Alert | None:
    action = payload.get("action")
    if action not in _ALERTING_ISSUE_ACTIONS:
        logger.debug("sentry_issue_ignored", action=action)
        return None
    issue = (payload.get("data") or {}).get("issue")
    if not isinstance(issue, dict) or "id" not in issue:
        raise WebhookPayloadError("issue payload without data.issue.id")
    return Alert(
        issue_id=str(issue["id"]),
        project=_project_slug(issue.get("project")),
        title=issue.get("title") or "Untitled issue",
        culprit=issue.get("culprit"),
        level=AlertLevel.parse(issue.get("level")),
        url=issue.get("web_url") or issue.get("permalink"),
        event_count=int(issue.get("count") or 1),
    )


def parse_sentry_webhook(resource: str, payload: dict[str, Any]) -> Alert | None:
    """Build an :class:`Alert` from a Sentry webhook.

    Args:
        resource: Value of the ``Sentry-Hook-Resource`` header.
        payload: Decoded JSON body.

    Returns:
        An ``Alert`` for ``event_alert`` and new/regressed ``issue``
        payloads, ``None`` for everything else (installation, comments,
        resolved issues…).

    Raises:
        WebhookPayloadError: If a supported resource has a malformed body.
    """
    if resource == "event_alert":
        return _from_event_alert(payload)
    if resource == "issue":
        return _from_issue(payload)
    logger.debug("sentry_webhook_ignored", resource=resource)
    return None
