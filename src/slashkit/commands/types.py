"""Slash command data model and the loader contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping, Protocol, Sequence, Union

if TYPE_CHECKING:
    from slashkit.core.cancellation import CancellationToken
    from slashkit.core.config import Config
    from slashkit.extensions.manager import ExtensionManager

    from .service import CommandService


class CommandKind(str, Enum):
    BUILT_IN = "built-in"
    FILE = "file"
    EXTENSION = "extension"


@dataclass
class CommandContext:
    """What a command action can reach while it runs."""

    config: Config
    service: CommandService | None = None
    extensions: ExtensionManager | None = None
    messages: list[dict] = field(default_factory=list)


CommandAction = Callable[[CommandContext, str], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class SlashCommand:
    """One node of the command tree.

    ``command_map`` is filled in by CommandService when a snapshot is built
    and maps child names and aliases to children.
    """

    name: str
    description: str = ""
    kind: CommandKind = CommandKind.BUILT_IN
    action: CommandAction | None = field(default=None, compare=False, repr=False)
    alt_names: tuple[str, ...] = ()
    extension_name: str | None = None
    sub_commands: tuple[SlashCommand, ...] = ()
    command_map: Mapping[str, SlashCommand] | None = field(default=None, compare=False, repr=False)

    def all_names(self) -> tuple[str, ...]:
        return (self.name, *self.alt_names)


class CommandLoader(Protocol):
    """An independently failing source of commands."""

    async def load_commands(self, signal: CancellationToken) -> Sequence[SlashCommand]: ...
