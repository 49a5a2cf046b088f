"""
Tests for the alert dispatcher.

Validates dedup and throttle short-circuits, level-based fan-out, and
retry scheduling for channels that fail.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

from kombu.exceptions import OperationalError

from guide_common.models.alert import AlertLevel
from monitoring.notifications.dispatcher import AlertDispatcher
from monitoring.notifications.throttle import AlertThrottle


def _make_channel(name: str = "test", send_ok: bool = True, min_level=AlertLevel.DEBUG) -> MagicMock:
    ch = AsyncMock()
    ch.name = name
    ch.send = AsyncMock(return_value=send_ok)
    ch.accepts = MagicMock(side_effect=lambda alert: alert.level >= min_level)
    return ch


class TestDispatch:

    async def test_delivers_to_all_channels(self, mock_redis, sample_alert) -> None:
        a, b = _make_channel("slack"), _make_channel("webhook")
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [a, b])

        assert await dispatcher.dispatch(sample_alert) is True
        assert sample_alert.delivered_to == ["slack", "webhook"]
        assert sample_alert.delivery_status == {"slack": "delivered", "webhook": "delivered"}

    async def test_duplicate_short_circuits(self, mock_redis, sample_alert) -> None:
        mock_redis.set = AsyncMock(return_value=None)
        ch = _make_channel()
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [ch])

        assert await dispatcher.dispatch(sample_alert) is False
        assert sample_alert.deduplicated is True
        ch.send.assert_not_awaited()

    async def test_throttled_short_circuits(self, mock_redis, sample_alert) -> None:
        mock_redis.pipeline.return_value.execute = AsyncMock(return_value=[0, 99])
        ch = _make_channel()
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [ch])

        assert await dispatcher.dispatch(sample_alert) is False
        ch.send.assert_not_awaited()

    async def test_level_routing(self, mock_redis, sample_alert) -> None:
        pager = _make_channel("pager", min_level=AlertLevel.FATAL)
        chat = _make_channel("chat", min_level=AlertLevel.WARNING)
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [pager, chat])

        await dispatcher.dispatch(sample_alert)  # level ERROR
        pager.send.assert_not_awaited()
        chat.send.assert_awaited_once()

    async def test_failed_channel_is_retried(self, mock_redis, sample_alert) -> None:
        ok, bad = _make_channel("slack"), _make_channel("webhook", send_ok=False)
        retry = MagicMock()
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [ok, bad], retry_enqueue=retry)

        assert await dispatcher.dispatch(sample_alert) is True
        retry.assert_called_once_with(sample_alert, "webhook")
        assert sample_alert.delivery_status["webhook"] == "failed"
        mock_redis.delete.assert_not_awaited()

    async def test_raising_channel_is_retried(self, mock_redis, sample_alert) -> None:
        boom = _make_channel("webhook")
        boom.send = AsyncMock(side_effect=RuntimeError("boom"))
        retry = MagicMock()
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [boom], retry_enqueue=retry)

        assert await dispatcher.dispatch(sample_alert) is False
        assert sample_alert.delivery_status == {"webhook": "error"}
        retry.assert_called_once_with(sample_alert, "webhook")

    async def test_retry_enqueue_runs_in_a_thread(self, mock_redis, sample_alert) -> None:
        loops: list[bool] = []

        def enqueue(alert, channel):
            try:
                asyncio.get_running_loop()
                loops.append(True)
            except RuntimeError:
                loops.append(False)

        dispatcher = AlertDispatcher(
            AlertThrottle(mock_redis),
            [_make_channel("webhook", send_ok=False)],
            retry_enqueue=enqueue,
        )
        await dispatcher.dispatch(sample_alert)
        assert loops == [False]

    async def test_broker_down_keeps_dispatching(self, mock_redis, sample_alert) -> None:
        slack, webhook = _make_channel("slack", send_ok=False), _make_channel("webhook", send_ok=False)
        retry = MagicMock(side_effect=OperationalError("broker down"))
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [slack, webhook], retry_enqueue=retry)

        assert await dispatcher.dispatch(sample_alert) is False
        webhook.send.assert_awaited_once()
        assert retry.call_count == 2
        assert sample_alert.delivery_status == {"slack": "retry_unavailable", "webhook": "retry_unavailable"}
        mock_redis.pipeline.return_value.zadd.assert_called_once()
        mock_redis.delete.assert_awaited_once_with(
            f"alerts:dedup:{sample_alert.project}:{sample_alert.issue_id}:{sample_alert.level.value}",
        )

    async def test_records_and_writes(self, mock_redis, sample_alert) -> None:
        writer = AsyncMock()
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [_make_channel()], alert_writer=writer)

        await dispatcher.dispatch(sample_alert)
        writer.assert_awaited_once_with(sample_alert)
        mock_redis.pipeline.return_value.zadd.assert_called_once()

    async def test_writer_failure_is_logged_not_raised(self, mock_redis, sample_alert) -> None:
        writer = AsyncMock(side_effect=ConnectionError("redis down"))
        dispatcher = AlertDispatcher(AlertThrottle(mock_redis), [_make_channel()], alert_writer=writer)
        assert await dispatcher.dispatch(sample_alert) is True

    async def test_close_closes_channels(self, mock_redis) -> None:
        ch = _make_channel()
        await AlertDispatcher(AlertThrottle(mock_redis), [ch]).close()
        ch.close.assert_awaited_once()
