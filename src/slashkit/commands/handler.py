"""CommandHandler: dispatch slash commands from the shell to the current snapshot."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from rich.markup import escape

from .resolve import COMMAND_PREFIX
from .types import CommandContext

if TYPE_CHECKING:
    from .service import CommandService


class CommandHandler:
    """Resolve input against a CommandService and run the matched action."""

    def __init__(self, service: CommandService, context: CommandContext):
        self.service = service
        self.context = context
        if context.service is None:
            context.service = service

    def is_command(self, text: str) -> bool:
        return text.strip().startswith(COMMAND_PREFIX)

    async def handle(self, text: str) -> Any:
        """Run the command in *text*; ``None`` if *text* is not a command."""
        if not self.is_command(text):
            return None
        parsed = self.service.resolve(text)
        cmd = parsed.command
        if cmd is None:
            shown = parsed.args.split()[0] if parsed.args else ""
            return (
                f"unknown command: /{escape(shown)}\n[dim]type /help for available commands[/dim]"
            )
        if cmd.action is None:
            subs = ", ".join(c.name for c in cmd.sub_commands)
            return f"[dim]usage: /{' '.join(parsed.canonical_path)} <{subs}>[/dim]"
        result = cmd.action(self.context, parsed.args)
        if inspect.isawaitable(result):
            result = await result
        return result
