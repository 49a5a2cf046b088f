"""Tests for Sentry webhook signature checks and payload parsing."""

from __future__ import annotations

import pytest

from guide_common.models.alert import AlertLevel
from monitoring.webhooks import (
    WebhookPayloadError,
    compute_signature,
    parse_sentry_webhook,
    verify_signature,
)

_SECRET = "s3cr3t"


class TestSignature:

    def test_valid(self) -> None:
        body = b'{"action": "triggered"}'
        assert verify_signature(body, compute_signature(body, _SECRET), _SECRET)

    def test_tampered_body(self) -> None:
        sig = compute_signature(b"original", _SECRET)
        assert not verify_signature(b"tampered", sig, _SECRET)

    def test_missing_signature_or_secret(self) -> None:
        body = b"{}"
        assert not verify_signature(body, None, _SECRET)
        assert not verify_signature(body, compute_signature(body, _SECRET), "")

    def test_uppercase_hex_accepted(self) -> None:
        body = b"{}"
        assert verify_signature(body, compute_signature(body, _SECRET).upper(), _SECRET)


class TestParse:

    def test_event_alert(self) -> None:
        payload = {
            "action": "triggered",
            "data": {
                "event": {
                    "issue_id": 1170,
                    "title": "KeyError: 'user'",
                    "culprit": "webapp.routers.users",
                    "level": "fatal",
                    "environment": "production",
                    "web_url": "https://sentry.example.com/issues/1170/",
                    "project": 5,
                },
                "triggered_rule": "Page on fatal",
            },
        }
        alert = parse_sentry_webhook("event_alert", payload)
        assert alert.issue_id == "1170"
        assert alert.level is AlertLevel.FATAL
        assert alert.triggered_rule == "Page on fatal"
        assert alert.project == "5"

    def test_issue_created(self) -> None:
        payload = {
            "action": "created",
            "data": {
                "issue": {
                    "id": "88",
                    "title": "TimeoutError",
                    "level": "warning",
                    "count": "12",
                    "project": {"slug": "worker"},
                    "web_url": "https://sentry.example.com/issues/88/",
                },
            },
        }
        alert = parse_sentry_webhook("issue", payload)
        assert alert.project == "worker"
        assert alert.level is AlertLevel.WARNING
        assert alert.event_count == 12

    def test_resolved_issue_ignored(self) -> None:
        payload = {"action": "resolved", "data": {"issue": {"id": "88", "title": "x"}}}
        assert parse_sentry_webhook("issue", payload) is None

    def test_other_resource_ignored(self) -> None:
        assert parse_sentry_webhook("installation", {"action": "created"}) is None

    @pytest.mark.parametrize(
        "resource,payload",
        [
            ("event_alert", {"data": {}}),
            ("event_alert", {"data": {"event": {"title": "no issue id"}}}),
            ("issue", {"action": "created", "data": {"issue": {"title": "no id"}}}),
        ],
    )
    def test_malformed(self, resource, payload) -> None:
        with pytest.raises(WebhookPayloadError):
            parse_sentry_webhook(resource, payload)
