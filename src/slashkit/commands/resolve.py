"""Resolve raw ``/command sub args`` input against a command tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Sequence, Union

if TYPE_CHECKING:
    from .types import SlashCommand

COMMAND_PREFIX = "/"
_TOKEN_RE = re.compile(r"(\S+)(.*)", re.DOTALL)

CommandSource = Union[Mapping[str, "SlashCommand"], Sequence["SlashCommand"]]


@dataclass(frozen=True)
class ParsedSlashCommand:
    command: SlashCommand | None = None
    args: str = ""
    canonical_path: list[str] = field(default_factory=list)


def _find(source: CommandSource, token: str) -> SlashCommand | None:
    if isinstance(source, Mapping):
        return source.get(token)
    for cmd in source:
        if cmd.name == token:
            return cmd
    for cmd in source:
        if token in cmd.alt_names:
            return cmd
    return None


def _children(cmd: SlashCommand) -> CommandSource | None:
    if cmd.command_map:
        return cmd.command_map
    return cmd.sub_commands or None


def parse_slash_command(query: str, commands: CommandSource) -> ParsedSlashCommand:
    """Walk the command tree as far as the tokens of *query* match.

    Returns the deepest matched command, its canonical path and the rest of
    the input as ``args``. If even the first token is unknown, ``args`` is
    the whole input after the prefix.
    """
    trimmed = query.strip()
    if not trimmed.startswith(COMMAND_PREFIX):
        return ParsedSlashCommand()

    rest = trimmed[len(COMMAND_PREFIX) :].strip()
    current: CommandSource | None = commands
    command: SlashCommand | None = None
    path: list[str] = []

    while current is not None:
        m = _TOKEN_RE.match(rest)
        if not m:
            break
        found = _find(current, m.group(1))
        if found is None:
            break
        command = found
        path.append(found.name)
        rest = m.group(2).strip()
        current = _children(found)

    return ParsedSlashCommand(command=command, args=rest, canonical_path=path)
