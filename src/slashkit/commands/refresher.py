"""Change notification between the extension manager and the command service."""

from __future__ import annotations

from typing import Callable, Protocol


class CustomCommandManager(Protocol):
    def refresh_commands(self) -> None:
        """Called when extensions are installed, updated, toggled or removed."""

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]: ...


class CommandRefresher:
    """Plain callback registry implementing CustomCommandManager."""

    def __init__(self) -> None:
        self._listeners: dict[Callable[[], None], None] = {}

    def refresh_commands(self) -> None:
        for listener in list(self._listeners):
            listener()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners[callback] = None

        def _unsubscribe() -> None:
            self._listeners.pop(callback, None)

        return _unsubscribe
