"""Interactive REPL loop built on prompt_toolkit."""

from __future__ import annotations

from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from rich.console import Console

from ..commands import CommandResult
from .completers import SlashCompleter

if TYPE_CHECKING:
    from ..app import App

console = Console()


def render_result(result) -> None:
    if result is None or result == "":
        return
    if isinstance(result, CommandResult):
        console.print(result.prompt, markup=False)
        return
    console.print(result)


async def run_repl(app: App) -> None:
    history_path = app.config.global_dir / "history"
    app.config.global_dir.mkdir(parents=True, exist_ok=True)

    session: PromptSession = PromptSession(
        history=FileHistory(str(history_path)),
        multiline=False,
        completer=SlashCompleter(app.commands),
        auto_suggest=AutoSuggestFromHistory(),
    )

    console.print(f"  {len(app.commands.get_commands())} commands  /help for a list", style="dim")
    await _run_repl_loop(session, app)


async def _run_repl_loop(session, app: App) -> None:
    """Read lines from *session* and dispatch slash commands until quit or EOF."""
    while True:
        try:
            text = await session.prompt_async("> ")
        except (EOFError, KeyboardInterrupt):
            break
        text = text.strip()
        if not text:
            continue
        if not app.handler.is_command(text):
            console.print("[dim]only slash commands are handled here; try /help[/dim]")
            continue
        try:
            result = await app.handler.handle(text)
        except Exception as e:
            console.print(f"error: {e}", style="bold", markup=False)
            if app.config.verbose:
                console.print_exception()
            continue
        if result == "quit":
            break
        render_result(result)
        await app.commands.wait_for_pending()
