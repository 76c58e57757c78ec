"""Cooperative cancellation shared across async boundaries."""

from __future__ import annotations

import threading
from typing import Callable


class OperationCancelled(Exception):
    """Raised when work observes a cancelled token."""

    def __init__(self, reason: str = "operation cancelled"):
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """A one-shot cancellation flag with callbacks.

    Safe to cancel from any thread. Work checks ``cancelled`` or calls
    ``raise_if_cancelled()`` at its own checkpoints.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason = ""
        self._callbacks: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "operation cancelled") -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._reason = reason
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancel (immediately if already cancelled).

        Returns a function that removes the callback.
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)

                def _remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return _remove
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self._reason)


def is_cancellation(exc: BaseException) -> bool:
    """True for failures that mean "stopped on request" rather than "broken"."""
    import asyncio

    return isinstance(exc, (OperationCancelled, asyncio.CancelledError))
