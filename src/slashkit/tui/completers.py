"""Prompt-toolkit completer for slash commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prompt_toolkit.completion import Completer, Completion

from ..commands.resolve import COMMAND_PREFIX

if TYPE_CHECKING:
    from ..commands.service import CommandService


class SlashCompleter(Completer):
    """Autocomplete command names, aliases and sub-commands from the current snapshot."""

    def __init__(self, service: CommandService):
        self._service = service

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor.lstrip()
        if not text.startswith(COMMAND_PREFIX):
            return
        body = text[len(COMMAND_PREFIX) :]
        tokens = body.split()
        partial = "" if body.endswith(" ") or not tokens else tokens.pop()

        # walk to the command whose children are being completed
        source = self._service.get_command_map()
        for tok in tokens:
            cmd = source.get(tok)
            if cmd is None or not cmd.command_map:
                return
            source = cmd.command_map

        prefix = COMMAND_PREFIX if not tokens else ""
        seen: set[str] = set()
        for key, cmd in source.items():
            if not key.startswith(partial) or key in seen:
                continue
            seen.add(key)
            meta = cmd.description if key == cmd.name else f"alias for {cmd.name}"
            yield Completion(
                prefix + key,
                start_position=-(len(partial) + len(prefix)),
                display_meta=meta,
            )
