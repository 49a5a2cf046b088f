"""Tests for the structlog configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from guide_common.logging import bind_context, clear_context, configure_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    clear_context()
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("LOUD")

    def test_sets_root_level(self) -> None:
        configure_logging("warning")
        assert logging.getLogger().level == logging.WARNING

    def test_json_lines_carry_context(self, capsys) -> None:
        configure_logging("INFO", "json")
        bind_context(request_id="req-1")
        structlog.get_logger("test").info("order_accepted", order_id="o-1")
        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "order_accepted"
        assert record["order_id"] == "o-1"
        assert record["request_id"] == "req-1"
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_clear_context(self, capsys) -> None:
        configure_logging("INFO", "json")
        bind_context(request_id="req-1")
        clear_context()
        structlog.get_logger("test").info("done")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert "request_id" not in record
