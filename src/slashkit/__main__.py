"""CLI entry point: extension management subcommands + interactive shell."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from .app import App, create_app
from .core.config import load_config
from .core.debug import debug_logger
from .core.utils import short_cwd
from .extensions import ExtensionError, ExtensionSource, infer_source, validate_extension_dir

console = Console()


def _confirm(description: str) -> bool:
    console.print(description, markup=False)
    return click.confirm("Do you want to continue?", default=False)


def _prompt_setting(prompt: str) -> str:
    return click.prompt(prompt, default="", show_default=False)


def _build_app(ctx: click.Context, assume_yes: bool = False) -> App:
    config = ctx.obj["config"]
    return create_app(
        config,
        request_consent=(lambda _text: True) if assume_yes else _confirm,
        request_setting=_prompt_setting,
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except ExtensionError as e:
        console.print(f"error: {escape(str(e))}", style="bold")
        sys.exit(1)


# ── CLI ─────────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """slashkit: extensions and slash commands for interactive agents."""
    config = load_config(verbose=verbose)
    debug_logger.set_verbose(config.verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    if ctx.invoked_subcommand is None:
        ctx.invoke(shell)


@cli.command()
@click.pass_context
def shell(ctx: click.Context):
    """Start the interactive slash-command shell."""
    from .tui.repl import run_repl

    app = _build_app(ctx)
    console.print(f"  slashkit  {short_cwd(app.config.cwd)}", style="bold")

    async def _main():
        await app.start()
        try:
            await run_repl(app)
        finally:
            app.close()

    _run(_main())


@cli.command("commands")
@click.pass_context
def list_commands(ctx: click.Context):
    """List every available slash command."""
    app = _build_app(ctx)

    async def _main():
        await app.start()
        return app.commands.get_commands()

    for cmd in _run(_main()):
        origin = f"  [dim]({cmd.extension_name})[/dim]" if cmd.extension_name else ""
        console.print(f"  [bold]/{cmd.name:<16}[/bold] [dim]{escape(cmd.description)}[/dim]{origin}")


@cli.group()
def extensions():
    """Manage installed extensions."""


@extensions.command("list")
@click.pass_context
def ext_list(ctx: click.Context):
    app = _build_app(ctx)
    installed = _run(app.extensions.load_extensions())
    if not installed:
        console.print("no extensions installed", style="dim")
        console.print("use `slashkit extensions install` to add one", style="dim")
    for ext in installed:
        status = "[green]on[/green]" if ext.enabled else "[dim]off[/dim]"
        src = f"  [dim]{escape(ext.source.source)}[/dim]" if ext.source else ""
        console.print(f"  [bold]{ext.name}[/bold]  v{ext.version}  {status}{src}")
    for path, err in app.extensions.load_errors.items():
        console.print(f"  [red]{escape(path.name)}: {escape(err)}[/red]")


@extensions.command("install")
@click.argument("source")
@click.option("--ref", default="", help="Git branch, tag or commit")
@click.option(
    "--type", "source_type", type=click.Choice(["local", "git", "release"]), default=None
)
@click.option("--sha256", default="", help="Expected checksum of a release archive")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip the consent prompt")
@click.pass_context
def ext_install(ctx, source: str, ref: str, source_type: str | None, sha256: str, assume_yes: bool):
    """Install an extension from a path, owner/repo, git URL or release archive URL."""
    if source_type:
        value = str(Path(source).resolve()) if source_type == "local" else source
        descriptor = ExtensionSource(type=source_type, source=value, ref=ref, sha256=sha256)
    else:
        descriptor = infer_source(source, ref)
        if sha256:
            descriptor = ExtensionSource(descriptor.type, descriptor.source, descriptor.ref, sha256)
    app = _build_app(ctx, assume_yes)

    async def _main():
        await app.extensions.load_extensions()
        return await app.extensions.install(descriptor)

    ext = _run(_main())
    console.print(f"installed [bold]{ext.name}[/bold] v{ext.version}")


@extensions.command("update")
@click.argument("names", nargs=-1)
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip the consent prompt")
@click.pass_context
def ext_update(ctx, names: tuple[str, ...], assume_yes: bool):
    """Update extensions (all of them when no name is given)."""
    app = _build_app(ctx, assume_yes)

    async def _main():
        await app.extensions.load_extensions()
        targets = list(names) or [e.name for e in app.extensions.get_extensions()]
        failed = 0
        for name in targets:
            before = app.extensions.get_extension(name)
            try:
                ext = await app.extensions.update_extension(name)
            except ExtensionError as e:
                failed += 1
                console.print(f"  [red]{escape(name)}: {escape(str(e))}[/red]")
                continue
            old = before.version if before else "?"
            console.print(f"  updated [bold]{name}[/bold] {old} -> {ext.version}")
        return failed

    if _run(_main()):
        sys.exit(1)


@extensions.command("uninstall")
@click.argument("name")
@click.pass_context
def ext_uninstall(ctx, name: str):
    app = _build_app(ctx)

    async def _main():
        await app.extensions.load_extensions()
        await app.extensions.uninstall(name)

    _run(_main())
    console.print(f"uninstalled [bold]{name}[/bold]")


def _toggle(ctx, name: str, enabled: bool) -> None:
    app = _build_app(ctx)
    _run(app.extensions.load_extensions())
    try:
        app.extensions.set_enabled(name, enabled)
    except ExtensionError as e:
        console.print(f"error: {escape(str(e))}", style="bold")
        sys.exit(1)
    console.print(f"{'enabled' if enabled else 'disabled'} [bold]{name}[/bold]")


@extensions.command("enable")
@click.argument("name")
@click.pass_context
def ext_enable(ctx, name: str):
    _toggle(ctx, name, True)


@extensions.command("disable")
@click.argument("name")
@click.pass_context
def ext_disable(ctx, name: str):
    _toggle(ctx, name, False)


@extensions.command("validate")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
def ext_validate(path: str):
    """Validate an extension directory."""
    errors = validate_extension_dir(Path(path).resolve())
    if errors:
        for e in errors:
            console.print(f"  [red]error:[/red] {escape(e)}")
        sys.exit(1)
    console.print("[green]extension is valid[/green]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
