"""Trust and consent boundaries consulted during install/update."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Protocol, Union

TRUST_FOLDER = "TRUST_FOLDER"
TRUST_PARENT = "TRUST_PARENT"
DO_NOT_TRUST = "DO_NOT_TRUST"


@dataclass(frozen=True)
class TrustResult:
    trusted: bool | None  # None = no rule matched
    source: str = ""


class TrustOracle(Protocol):
    def is_trusted(self, path: Path) -> TrustResult: ...


ConsentCallback = Callable[[str], Union[bool, Awaitable[bool]]]
SettingCallback = Callable[[str], Union[str, Awaitable[str]]]


class FolderTrust:
    """Trust decisions from a ``{path: rule}`` table.

    The longest matching rule wins. ``TRUST_PARENT`` trusts the parent of the
    listed path (and everything under it).
    """

    def __init__(self, rules: dict[str, str], source: str = "file"):
        self.rules = dict(rules)
        self.source = source

    def is_trusted(self, path: Path) -> TrustResult:
        target = Path(path).resolve()
        best: tuple[int, bool] | None = None
        for raw, rule in self.rules.items():
            root = Path(raw).expanduser().resolve()
            if rule == TRUST_PARENT:
                root = root.parent
            if target != root and root not in target.parents:
                continue
            depth = len(root.parts)
            if best is None or depth > best[0]:
                best = (depth, rule != DO_NOT_TRUST)
        if best is None:
            return TrustResult(trusted=None)
        return TrustResult(trusted=best[1], source=self.source)


class AlwaysTrusted:
    def is_trusted(self, path: Path) -> TrustResult:
        return TrustResult(trusted=True, source="default")
