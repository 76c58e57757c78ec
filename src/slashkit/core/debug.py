"""Developer-facing debug logger.

Messages go to stderr through rich. Set ``SLASHKIT_DEBUG_LOG_FILE`` to also
append every entry to a file, and ``SLASHKIT_DEBUG`` to show debug-level
messages.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from rich.console import Console
from rich.markup import escape

_STYLES = {
    "LOG": "",
    "WARN": "yellow",
    "ERROR": "red",
    "DEBUG": "dim",
}


class Logger(Protocol):
    def log(self, *args: Any) -> None: ...

    def warn(self, *args: Any) -> None: ...

    def error(self, *args: Any) -> None: ...

    def debug(self, *args: Any) -> None: ...


def _format(args: tuple[Any, ...]) -> str:
    parts = []
    for a in args:
        if isinstance(a, BaseException):
            parts.append(f"{type(a).__name__}: {a}")
        else:
            parts.append(str(a))
    return " ".join(parts)


class DebugLogger:
    def __init__(self, console: Console | None = None, log_file: str | None = None):
        self.console = console or Console(stderr=True)
        path = log_file if log_file is not None else os.getenv("SLASHKIT_DEBUG_LOG_FILE")
        self.log_file = Path(path) if path else None
        self.verbose = bool(os.getenv("SLASHKIT_DEBUG"))
        self._delegate: Logger | None = None

    def set_delegate(self, logger: Logger | None) -> None:
        """Route all calls to *logger* instead of the console."""
        self._delegate = logger

    def set_verbose(self, verbose: bool) -> None:
        self.verbose = verbose

    def _write_to_file(self, level: str, message: str) -> None:
        if not self.log_file:
            return
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            with self.log_file.open("a", encoding="utf-8") as fh:
                fh.write(f"[{timestamp}] [{level}] {message}\n")
        except OSError as e:
            self.console.print(f"error writing to debug log: {e}", style="red", markup=False)

    def _emit(self, level: str, args: tuple[Any, ...]) -> None:
        delegate = self._delegate
        if delegate is not None:
            getattr(delegate, level.lower())(*args)
            return
        message = _format(args)
        self._write_to_file(level, message)
        if level == "DEBUG" and not self.verbose:
            return
        style = _STYLES[level]
        self.console.print(escape(message), style=style or None)

    def log(self, *args: Any) -> None:
        self._emit("LOG", args)

    def warn(self, *args: Any) -> None:
        self._emit("WARN", args)

    def error(self, *args: Any) -> None:
        self._emit("ERROR", args)

    def debug(self, *args: Any) -> None:
        self._emit("DEBUG", args)

    def get_logger(self, name: str) -> _PrefixedLogger:
        return _PrefixedLogger(self, name)


class _PrefixedLogger:
    def __init__(self, parent: DebugLogger, name: str):
        self._parent = parent
        self._prefix = f"[{name}]"

    def log(self, *args: Any) -> None:
        self._parent.log(self._prefix, *args)

    def warn(self, *args: Any) -> None:
        self._parent.warn(self._prefix, *args)

    def error(self, *args: Any) -> None:
        self._parent.error(self._prefix, *args)

    def debug(self, *args: Any) -> None:
        self._parent.debug(self._prefix, *args)


debug_logger = DebugLogger()
