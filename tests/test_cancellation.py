"""Tests for slashkit.core.cancellation."""

import asyncio

import pytest

from slashkit.core.cancellation import CancellationToken, OperationCancelled, is_cancellation


class TestCancellationToken:
    def test_initially_not_cancelled(self):
        token = CancellationToken()
        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancel_sets_reason(self):
        token = CancellationToken()
        token.cancel("stop")
        assert token.cancelled
        assert token.reason == "stop"
        with pytest.raises(OperationCancelled, match="stop"):
            token.raise_if_cancelled()

    def test_second_cancel_keeps_first_reason(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"

    def test_callbacks_run_once(self):
        token = CancellationToken()
        calls = []
        token.on_cancel(lambda: calls.append(1))
        token.cancel()
        token.cancel()
        assert calls == [1]

    def test_callback_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []
        token.on_cancel(lambda: calls.append(1))
        assert calls == [1]

    def test_removed_callback_not_called(self):
        token = CancellationToken()
        calls = []
        remove = token.on_cancel(lambda: calls.append(1))
        remove()
        token.cancel()
        assert calls == []


class TestIsCancellation:
    def test_operation_cancelled(self):
        assert is_cancellation(OperationCancelled())

    def test_asyncio_cancelled(self):
        assert is_cancellation(asyncio.CancelledError())

    def test_other_errors(self):
        assert not is_cancellation(RuntimeError("boom"))
