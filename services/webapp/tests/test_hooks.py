"""Tests for the Sentry webhook receiver."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from monitoring.webhooks import RESOURCE_HEADER, SIGNATURE_HEADER, compute_signature

WEBHOOK_SECRET = "s3cr3t"

_EVENT_ALERT = {
    "action": "triggered",
    "data": {
        "event": {
            "issue_id": 1170,
            "title": "KeyError: 'user'",
            "culprit": "webapp.routers.users",
            "level": "error",
            "project": "web",
        },
        "triggered_rule": "New errors",
    },
}


def _post(client: TestClient, payload, resource: str = "event_alert", secret: str = WEBHOOK_SECRET):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return client.post(
        "/hooks/sentry",
        content=body,
        headers={
            SIGNATURE_HEADER: compute_signature(body, secret),
            RESOURCE_HEADER: resource,
            "Content-Type": "application/json",
        },
    )


class TestSentryWebhook:

    def test_dispatched(self, client: TestClient, mock_dispatcher: AsyncMock) -> None:
        resp = _post(client, _EVENT_ALERT)
        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "dispatched"
        assert data["delivered_to"] == ["slack"]
        alert = mock_dispatcher.dispatch.await_args.args[0]
        assert alert.issue_id == "1170"
        assert alert.alert_id == data["alert_id"]

    def test_suppressed(self, client: TestClient, mock_dispatcher: AsyncMock) -> None:
        mock_dispatcher.dispatch = AsyncMock(return_value=False)
        assert _post(client, _EVENT_ALERT).json()["status"] == "suppressed"

    def test_bad_signature(self, client: TestClient, mock_dispatcher: AsyncMock) -> None:
        resp = _post(client, _EVENT_ALERT, secret="wrong")
        assert resp.status_code == 401
        mock_dispatcher.dispatch.assert_not_awaited()

    def test_missing_signature(self, client: TestClient) -> None:
        resp = client.post("/hooks/sentry", content=b"{}", headers={RESOURCE_HEADER: "event_alert"})
        assert resp.status_code == 401

    def test_invalid_json(self, client: TestClient) -> None:
        assert _post(client, b"{not json").status_code == 400

    def test_malformed_payload(self, client: TestClient) -> None:
        assert _post(client, {"data": {}}).status_code == 400

    def test_ignored_resource(self, client: TestClient, mock_dispatcher: AsyncMock) -> None:
        resp = _post(client, {"action": "created"}, resource="installation")
        assert resp.status_code == 202
        assert resp.json()["status"] == "ignored"
        mock_dispatcher.dispatch.assert_not_awaited()
