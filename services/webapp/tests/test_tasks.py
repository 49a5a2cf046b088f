"""Tests for the background-task endpoints."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient
from kombu.exceptions import OperationalError

from guide_common.models.task import TaskStatus


class TestExchangeRates:

    def test_queued(self, client: TestClient) -> None:
        with patch("webapp.routers.tasks.fetch_exchange_rates") as task:
            task.delay.return_value = MagicMock(id="t-1")
            resp = client.post("/reports/exchange-rates", json={"base": "usd"})
        assert resp.status_code == 202
        assert resp.json() == {"task_id": "t-1"}
        task.delay.assert_called_once_with("USD")

    def test_enqueue_runs_off_the_event_loop(self, client: TestClient) -> None:
        loops: list[bool] = []

        def delay(base):
            try:
                asyncio.get_running_loop()
                loops.append(True)
            except RuntimeError:
                loops.append(False)
            return MagicMock(id="t-2")

        with patch("webapp.routers.tasks.fetch_exchange_rates") as task:
            task.delay.side_effect = delay
            assert client.post("/reports/exchange-rates", json={}).status_code == 202
        assert loops == [False]

    def test_broker_down(self, client: TestClient) -> None:
        with patch("webapp.routers.tasks.fetch_exchange_rates") as task:
            task.delay.side_effect = OperationalError("down")
            resp = client.post("/reports/exchange-rates", json={})
        assert resp.status_code == 503


class TestTaskStatus:

    def test_reports_state(self, client: TestClient) -> None:
        status = TaskStatus(task_id="t-1", state="SUCCESS", ready=True, successful=True, result={"ok": 1})
        with patch("webapp.routers.tasks.get_task_status", return_value=status) as lookup:
            resp = client.get("/tasks/t-1")
        lookup.assert_called_once_with("t-1")
        assert resp.json()["state"] == "SUCCESS"
        assert resp.json()["result"] == {"ok": 1}
