"""Tests for order intake: Redis hash, broker event and checkout chain."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from kombu.exceptions import OperationalError

_ORDER = {"email": "ada@example.com", "amount": 19.99, "currency": "eur"}


@pytest.fixture()
def chain():
    with patch("webapp.routers.orders.checkout_chain") as factory:
        factory.return_value.apply_async.return_value = MagicMock(id="chain-1")
        yield factory


class TestCreateOrder:

    def test_accepted(
        self,
        client: TestClient,
        mock_redis_client: AsyncMock,
        mock_publisher: MagicMock,
        chain,
    ) -> None:
        resp = client.post("/orders", json=_ORDER)
        assert resp.status_code == 202
        body = resp.json()
        assert body["message_id"] == "msg-1"
        assert body["task_id"] == "chain-1"

        order_id = body["order_id"]
        key = mock_redis_client.hset.await_args.args[0]
        mapping = mock_redis_client.hset.await_args.kwargs["mapping"]
        assert key == f"test:order:{order_id}"
        assert mapping["currency"] == "EUR"
        assert mapping["amount"] == "19.99"

        event, routing_key = mock_publisher.publish.call_args.args
        assert routing_key == "order.created"
        assert event["order_id"] == order_id
        assert mock_publisher.publish.call_args.kwargs["message_id"] == order_id
        chain.assert_called_once_with(order_id)
        mock_redis_client.delete.assert_not_awaited()

    def test_publish_failure_removes_order(
        self,
        client: TestClient,
        mock_redis_client: AsyncMock,
        mock_publisher: MagicMock,
        chain,
    ) -> None:
        mock_publisher.publish.side_effect = OperationalError("connection refused")
        resp = client.post("/orders", json=_ORDER)
        assert resp.status_code == 503
        key = mock_redis_client.hset.await_args.args[0]
        mock_redis_client.delete.assert_awaited_once_with(key)

    def test_chain_failure_removes_order_and_skips_event(
        self,
        client: TestClient,
        mock_redis_client: AsyncMock,
        mock_publisher: MagicMock,
        chain,
    ) -> None:
        chain.return_value.apply_async.side_effect = OperationalError("connection refused")
        resp = client.post("/orders", json=_ORDER)
        assert resp.status_code == 503
        mock_publisher.publish.assert_not_called()
        key = mock_redis_client.hset.await_args.args[0]
        mock_redis_client.delete.assert_awaited_once_with(key)

    def test_no_publisher(self, app, client: TestClient, chain) -> None:
        app.state.publisher = None
        assert client.post("/orders", json=_ORDER).status_code == 503

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, client: TestClient, chain, amount) -> None:
        resp = client.post("/orders", json={**_ORDER, "amount": amount})
        assert resp.status_code == 422
