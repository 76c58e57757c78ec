"""Command loaders: built-in table, user/project command files, extensions."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from slashkit.core.cancellation import CancellationToken, OperationCancelled
from slashkit.core.utils import parse_frontmatter_and_body

from .custom import discover_command_files, expand_custom_command
from .types import CommandContext, CommandKind, SlashCommand

if TYPE_CHECKING:
    from slashkit.core.config import Config
    from slashkit.extensions.manager import ExtensionManager


def _markdown_command(
    name: str,
    path: Path,
    kind: CommandKind,
    extension_name: str | None = None,
) -> SlashCommand:
    meta, _ = parse_frontmatter_and_body(path)
    meta = meta or {}
    description = str(meta.get("description") or f"Custom command from {path.name}")
    if extension_name:
        description = f"[{extension_name}] {description}"

    def _action(context: CommandContext, args: str):
        return expand_custom_command(path, args)

    return SlashCommand(
        name=name,
        description=description,
        kind=kind,
        action=_action,
        alt_names=tuple(meta.get("aliases", ())),
        extension_name=extension_name,
    )


def load_command_dir(
    root: Path,
    kind: CommandKind,
    extension_name: str | None = None,
    signal: CancellationToken | None = None,
) -> list[SlashCommand]:
    commands = []
    for name, path in discover_command_files(root).items():
        if signal is not None and signal.cancelled:
            raise OperationCancelled(signal.reason)
        commands.append(_markdown_command(name, path, kind, extension_name))
    return commands


class BuiltinCommandLoader:
    def __init__(self, commands: Sequence[SlashCommand]):
        self.commands = tuple(commands)

    async def load_commands(self, signal: CancellationToken) -> list[SlashCommand]:
        return list(self.commands)


class FileCommandLoader:
    """Commands from ``~/.slashkit/commands`` then each project ``commands/`` dir.

    A project command replaces a user command with the same name.
    """

    def __init__(self, config: Config):
        self.config = config

    def _load(self, signal: CancellationToken) -> list[SlashCommand]:
        by_name: dict[str, SlashCommand] = {}
        for root in self.config.command_dirs:
            for cmd in load_command_dir(root, CommandKind.FILE, signal=signal):
                by_name[cmd.name] = cmd
        return list(by_name.values())

    async def load_commands(self, signal: CancellationToken) -> list[SlashCommand]:
        return await asyncio.to_thread(self._load, signal)


class ExtensionCommandLoader:
    """Commands from the ``commands/`` directory of every enabled extension."""

    def __init__(self, manager: ExtensionManager):
        self.manager = manager

    def _load(self, signal: CancellationToken) -> list[SlashCommand]:
        commands: list[SlashCommand] = []
        for ext in self.manager.get_extensions():
            if not ext.enabled:
                continue
            commands.extend(
                load_command_dir(ext.path / "commands", CommandKind.EXTENSION, ext.name, signal)
            )
        return commands

    async def load_commands(self, signal: CancellationToken) -> list[SlashCommand]:
        return await asyncio.to_thread(self._load, signal)
