"""Tests for CancellationToken."""

from __future__ import annotations

import threading

import pytest

from fanout.core.errors import FetchCancelled
from fanout.execution.cancellation import CancellationToken


class TestCancellationToken:
    def test_initially_active(self):
        token = CancellationToken()
        assert token.cancelled is False
        assert token.reason is None
        token.raise_if_cancelled()
        assert repr(token) == "<CancellationToken active>"

    def test_cancel_keeps_first_reason(self):
        token = CancellationToken()
        token.cancel("deadline exceeded")
        token.cancel("batch cancelled")
        assert token.cancelled is True
        assert token.reason == "deadline exceeded"

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel("deadline exceeded")
        with pytest.raises(FetchCancelled, match="deadline exceeded"):
            token.raise_if_cancelled()

    def test_wait_times_out(self):
        assert CancellationToken().wait(0.01) is False

    def test_wait_wakes_on_cancel_from_other_thread(self):
        token = CancellationToken()
        timer = threading.Timer(0.02, token.cancel)
        timer.start()
        try:
            assert token.wait(2.0) is True
        finally:
            timer.cancel()
        assert token.reason == "cancelled"
