"""
Tests for the Celery task bodies.

Tasks are executed through ``.run()`` so no worker or broker is needed;
Redis, HTTP and SMTP are patched at the module boundary.
"""

from __future__ import annotations

import json
import smtplib
import time
from unittest.mock import MagicMock, patch

import httpx
import pytest
from celery.exceptions import Retry

from taskqueue.tasks import (
    UpstreamUnavailable,
    charge_payment,
    cleanup_stale_sessions,
    compute_partial_total,
    fetch_exchange_rates,
    fetch_order,
    resize_image,
    send_receipt,
    send_welcome_email,
    snapshot_leaderboard,
    sum_totals,
)


def _response(status: int, payload: dict | None = None) -> httpx.Response:
    return httpx.Response(
        status,
        json=payload or {},
        request=httpx.Request("GET", "https://rates.test/latest"),
    )


# ── send_welcome_email ──


class TestWelcomeEmail:

    def test_declares_automatic_retries(self) -> None:
        assert OSError in send_welcome_email.autoretry_for
        assert smtplib.SMTPException in send_welcome_email.autoretry_for
        assert send_welcome_email.retry_backoff_max == 600
        assert send_welcome_email.retry_jitter is True

    def test_sends(self) -> None:
        with patch("taskqueue.tasks.deliver_email") as deliver:
            result = send_welcome_email.run("u1", "u1@example.com")
        assert result["status"] == "sent"
        assert deliver.call_args.args[0] == "u1@example.com"

    def test_smtp_failure_triggers_retry(self) -> None:
        with (
            patch("taskqueue.tasks.deliver_email", side_effect=ConnectionRefusedError("relay down")),
            patch.object(send_welcome_email, "retry", side_effect=Retry()) as retry,
        ):
            with pytest.raises(Retry):
                send_welcome_email.run("u1", "u1@example.com")
        kwargs = retry.call_args.kwargs
        assert isinstance(kwargs["exc"], ConnectionRefusedError)
        assert 0 <= kwargs["countdown"] <= 600


# ── fetch_exchange_rates ──


class TestExchangeRates:

    def test_caches_rates(self, sync_redis, keys) -> None:
        with patch("taskqueue.tasks.httpx.get", return_value=_response(200, {"rates": {"USD": 1.1}})):
            result = fetch_exchange_rates.run("eur")

        assert result["base"] == "EUR"
        assert result["cache_key"] == "test:rates:EUR"
        sync_redis.set.assert_called_once_with("test:rates:EUR", json.dumps({"USD": 1.1}), ex=3600)

    def test_server_error_retries_with_countdown(self, sync_redis, keys) -> None:
        with (
            patch("taskqueue.tasks.httpx.get", return_value=_response(503)),
            patch.object(fetch_exchange_rates, "retry", side_effect=Retry()) as retry,
        ):
            with pytest.raises(Retry):
                fetch_exchange_rates.run("EUR")

        kwargs = retry.call_args.kwargs
        assert isinstance(kwargs["exc"], UpstreamUnavailable)
        assert kwargs["countdown"] == 5
        sync_redis.set.assert_not_called()

    def test_transport_error_retries(self, sync_redis, keys) -> None:
        with (
            patch("taskqueue.tasks.httpx.get", side_effect=httpx.ConnectTimeout("slow")),
            patch.object(fetch_exchange_rates, "retry", side_effect=Retry()) as retry,
        ):
            with pytest.raises(Retry):
                fetch_exchange_rates.run("EUR")
        assert isinstance(retry.call_args.kwargs["exc"], UpstreamUnavailable)

    def test_client_error_is_not_retried(self, sync_redis, keys) -> None:
        with (
            patch("taskqueue.tasks.httpx.get", return_value=_response(404)),
            patch.object(fetch_exchange_rates, "retry") as retry,
        ):
            with pytest.raises(httpx.HTTPStatusError):
                fetch_exchange_rates.run("XXX")
        retry.assert_not_called()


# ── canvas steps ──


class TestCheckoutSteps:

    def test_fetch_order(self, sync_redis, keys) -> None:
        sync_redis.hgetall.return_value = {"email": "a@example.com", "amount": "12.5"}
        order = fetch_order.run("o1")
        sync_redis.hgetall.assert_called_once_with("test:order:o1")
        assert order == {"order_id": "o1", "email": "a@example.com", "amount": 12.5, "currency": "EUR"}

    def test_fetch_missing_order(self, sync_redis, keys) -> None:
        sync_redis.hgetall.return_value = {}
        with pytest.raises(LookupError):
            fetch_order.run("nope")

    def test_charge_payment(self) -> None:
        charged = charge_payment.run({"order_id": "o1", "amount": 10.0})
        assert charged["paid"] is True
        assert charged["charge_id"]

    def test_charge_zero_amount(self) -> None:
        with pytest.raises(ValueError):
            charge_payment.run({"order_id": "o1", "amount": 0})

    def test_send_receipt(self) -> None:
        order = {"order_id": "o1", "email": "a@example.com", "amount": 10.0, "charge_id": "c1"}
        with patch("taskqueue.tasks.deliver_email") as deliver:
            assert send_receipt.run(order) == {"order_id": "o1", "receipt_sent": True}
        assert "o1" in deliver.call_args.args[1]

    def test_receipt_without_email(self) -> None:
        with patch("taskqueue.tasks.deliver_email") as deliver:
            result = send_receipt.run({"order_id": "o1", "amount": 1.0, "charge_id": "c"})
        assert result["receipt_sent"] is False
        deliver.assert_not_called()


class TestParallelSteps:

    def test_resize(self) -> None:
        assert resize_image.run("img", 128)["path"] == "thumbnails/img_128.jpg"

    def test_resize_rejects_zero_width(self) -> None:
        with pytest.raises(ValueError):
            resize_image.run("img", 0)

    def test_totals(self) -> None:
        partials = [compute_partial_total.run([1.1, 2.2]), compute_partial_total.run([0.7])]
        assert partials == [3.3, 0.7]
        assert sum_totals.run(partials) == 4.0


# ── periodic ──


class TestPeriodic:

    def test_cleanup_deletes_stale_sessions(self, sync_redis, keys) -> None:
        now = time.time()
        last_seen = {"test:session:a": str(now), "test:session:b": "0", "test:session:c": None}
        sync_redis.scan_iter.return_value = iter(last_seen)
        sync_redis.hget.side_effect = lambda key, field: last_seen[key]
        sync_redis.delete.return_value = 2

        result = cleanup_stale_sessions.run()

        sync_redis.scan_iter.assert_called_once_with(match="test:session:*", count=500)
        sync_redis.delete.assert_called_once_with("test:session:b", "test:session:c")
        assert result == {"scanned": 3, "deleted": 2}

    def test_cleanup_nothing_stale(self, sync_redis, keys) -> None:
        sync_redis.scan_iter.return_value = iter([])
        assert cleanup_stale_sessions.run() == {"scanned": 0, "deleted": 0}
        sync_redis.delete.assert_not_called()

    def test_snapshot_leaderboard(self, sync_redis, keys) -> None:
        sync_redis.zrevrange.return_value = [("alice", 30.0), ("bob", 20.0)]

        result = snapshot_leaderboard.run("global", 2)

        sync_redis.zrevrange.assert_called_once_with("test:leaderboard:global", 0, 1, withscores=True)
        key, payload = sync_redis.set.call_args.args
        assert key == "test:leaderboard:global:snapshot"
        entries = json.loads(payload)["entries"]
        assert entries[0] == {"rank": 1, "member": "alice", "score": 30.0}
        assert result["entries"] == 2

    @pytest.mark.parametrize("size", [0, -3])
    def test_snapshot_rejects_empty_size(self, sync_redis, size) -> None:
        with pytest.raises(ValueError, match="size"):
            snapshot_leaderboard.run("global", size)
        sync_redis.zrevrange.assert_not_called()
        sync_redis.set.assert_not_called()
