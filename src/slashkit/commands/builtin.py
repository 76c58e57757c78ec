"""Built-in commands: help, quit, clear and the extensions sub-command tree."""

from __future__ import annotations

from rich.markup import escape

from slashkit.extensions.acquire import infer_source
from slashkit.extensions.errors import ExtensionError

from .types import CommandContext, SlashCommand


def _help(context: CommandContext, args: str) -> str:
    commands = context.service.get_commands() if context.service else ()
    lines = [""]
    for cmd in commands:
        aliases = f" ({', '.join('/' + a for a in cmd.alt_names)})" if cmd.alt_names else ""
        lines.append(f"  [bold]/{cmd.name:<14}[/bold] [dim]{escape(cmd.description)}{aliases}[/dim]")
        for sub in cmd.sub_commands:
            lines.append(f"    [bold]{sub.name:<14}[/bold] [dim]{escape(sub.description)}[/dim]")
    lines.append("")
    return "\n".join(lines)


def _quit(context: CommandContext, args: str) -> str:
    return "quit"


def _clear(context: CommandContext, args: str) -> str:
    context.messages.clear()
    return "context cleared"


# ── /extensions ─────────────────────────────────────────────────────


def _need_manager(context: CommandContext):
    if context.extensions is None:
        raise RuntimeError("extension support is not available")
    return context.extensions


def _ext_list(context: CommandContext, args: str) -> str:
    extensions = _need_manager(context).get_extensions()
    if not extensions:
        return "[dim]no extensions installed[/dim]"
    lines = [""]
    for ext in extensions:
        st = "[green]on[/green]" if ext.enabled else "[dim]off[/dim]"
        lines.append(
            f"  [bold]{ext.name}[/bold]  v{ext.version}  {st}  [dim]{escape(ext.config.description)}[/dim]"
        )
    lines.append("")
    return "\n".join(lines)


async def _ext_install(context: CommandContext, args: str) -> str:
    parts = args.split()
    if not parts:
        return "[dim]usage: /extensions install <path | owner/repo | git-url | archive-url> [--ref REF][/dim]"
    ref = ""
    if "--ref" in parts:
        i = parts.index("--ref")
        ref = parts[i + 1] if i + 1 < len(parts) else ""
    source = infer_source(parts[0], ref, cwd=context.config.cwd)
    try:
        ext = await _need_manager(context).install(source)
    except ExtensionError as e:
        return f"[red]install failed: {escape(str(e))}[/red]"
    return f"installed [bold]{ext.name}[/bold] v{ext.version}"


async def _ext_update(context: CommandContext, args: str) -> str:
    manager = _need_manager(context)
    names = args.split() or [e.name for e in manager.get_extensions()]
    if not names:
        return "[dim]no extensions installed[/dim]"
    lines = []
    for name in names:
        before = manager.get_extension(name)
        try:
            ext = await manager.update_extension(name)
        except ExtensionError as e:
            lines.append(f"[red]{name}: update failed: {escape(str(e))}[/red]")
            continue
        old = before.version if before else "?"
        lines.append(f"updated [bold]{name}[/bold] {old} -> {ext.version}")
    return "\n".join(lines)


async def _ext_uninstall(context: CommandContext, args: str) -> str:
    if not args:
        return "[dim]usage: /extensions uninstall <name>[/dim]"
    name = args.split()[0]
    try:
        await _need_manager(context).uninstall(name)
    except ExtensionError as e:
        return f"[red]{escape(str(e))}[/red]"
    return f"uninstalled [bold]{name}[/bold]"


def _toggle(enabled: bool):
    verb = "enable" if enabled else "disable"

    def _action(context: CommandContext, args: str) -> str:
        if not args:
            return f"[dim]usage: /extensions {verb} <name>[/dim]"
        name = args.split()[0]
        try:
            _need_manager(context).set_enabled(name, enabled)
        except ExtensionError as e:
            return f"[red]{escape(str(e))}[/red]"
        return f"{verb}d [bold]{name}[/bold]"

    return _action


def _ext_usage(context: CommandContext, args: str) -> str:
    return "[dim]usage: /extensions [list|install|uninstall|enable|disable|update][/dim]"


EXTENSIONS_COMMAND = SlashCommand(
    name="extensions",
    description="Manage extensions",
    alt_names=("ext",),
    action=_ext_usage,
    sub_commands=(
        SlashCommand(name="list", description="List installed extensions", action=_ext_list),
        SlashCommand(
            name="install",
            description="Install an extension from a path, git repo or release archive",
            action=_ext_install,
        ),
        SlashCommand(
            name="uninstall",
            description="Remove an installed extension",
            alt_names=("remove", "rm"),
            action=_ext_uninstall,
        ),
        SlashCommand(name="enable", description="Enable an extension", action=_toggle(True)),
        SlashCommand(name="disable", description="Disable an extension", action=_toggle(False)),
        SlashCommand(
            name="update",
            description="Update extensions from their install source",
            action=_ext_update,
        ),
    ),
)


def builtin_commands() -> tuple[SlashCommand, ...]:
    return (
        SlashCommand(name="help", description="Show available commands", alt_names=("?",), action=_help),
        SlashCommand(name="clear", description="Clear the conversation context", action=_clear),
        SlashCommand(name="quit", description="Exit", alt_names=("exit",), action=_quit),
        EXTENSIONS_COMMAND,
    )
