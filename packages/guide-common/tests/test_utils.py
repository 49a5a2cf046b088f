"""Tests for the shared helpers."""

from __future__ import annotations

from datetime import timezone

import pytest

from guide_common.utils import backoff_countdown, new_id, utc_now


class TestBackoff:

    @pytest.mark.parametrize("retries,expected", [(0, 5), (1, 10), (2, 20), (3, 40)])
    def test_doubles(self, retries: int, expected: int) -> None:
        assert backoff_countdown(retries) == expected

    def test_capped(self) -> None:
        assert backoff_countdown(20) == 600

    def test_custom(self) -> None:
        assert backoff_countdown(2, base=1, factor=3, cap=100) == 9

    def test_negative(self) -> None:
        with pytest.raises(ValueError):
            backoff_countdown(-1)


def test_new_id_unique() -> None:
    ids = {new_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(i) == 32 for i in ids)


def test_utc_now_aware() -> None:
    assert utc_now().tzinfo is timezone.utc
