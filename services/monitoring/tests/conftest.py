"""Shared fixtures for monitoring tests."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import sentry_sdk
from sentry_sdk.envelope import Envelope
from sentry_sdk.transport import Transport

from guide_common.models.alert import Alert, AlertLevel


@pytest.fixture()
def mock_redis() -> AsyncMock:
    """Async mock standing in for a ``redis.asyncio.Redis`` instance."""
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)  # NX set succeeded

    # Pipeline mock: commands are queued synchronously, execute() is awaited.
    pipe = AsyncMock()
    pipe.zadd = MagicMock(return_value=pipe)
    pipe.zcard = MagicMock(return_value=pipe)
    pipe.zremrangebyscore = MagicMock(return_value=pipe)
    pipe.expire = MagicMock(return_value=pipe)
    pipe.execute = AsyncMock(return_value=[0, 0])  # [zremrangebyscore, zcard]
    redis.pipeline = MagicMock(return_value=pipe)
    return redis


@pytest.fixture()
def sample_alert() -> Alert:
    return Alert(
        issue_id="4509",
        project="web",
        title="ZeroDivisionError: division by zero",
        culprit="webapp.routers.orders in create_order",
        level=AlertLevel.ERROR,
        environment="production",
        url="https://sentry.example.com/issues/4509/",
        event_count=3,
        triggered_rule="New errors",
    )


class CapturingTransport(Transport):
    """Keeps envelopes in memory instead of sending them."""

    def __init__(self) -> None:
        super().__init__()
        self.envelopes: list[Envelope] = []

    def capture_envelope(self, envelope: Envelope) -> None:
        self.envelopes.append(envelope)

    @property
    def events(self) -> list[dict]:
        return [e.get_event() for e in self.envelopes if e.get_event() is not None]


@pytest.fixture()
def sentry_events() -> Iterator[CapturingTransport]:
    """Initialise a real Sentry client whose events stay in memory."""
    from monitoring.scrubbing import before_breadcrumb, before_send

    transport = CapturingTransport()
    sentry_sdk.init(
        dsn="https://public@sentry.example.com/1",
        transport=transport,
        before_send=before_send,
        before_breadcrumb=before_breadcrumb,
        default_integrations=False,
        auto_enabling_integrations=False,
    )
    try:
        yield transport
    finally:
        sentry_sdk.get_client().close()
        sentry_sdk.get_global_scope().set_client(None)
