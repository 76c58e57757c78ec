"""Markdown-defined commands: discovery under commands/ and prompt expansion."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from slashkit.core.utils import parse_frontmatter_and_body


@dataclass
class CommandResult:
    """Structured result from expanding a custom command."""

    prompt: str


def discover_command_files(root: Path) -> dict[str, Path]:
    """Map command names to .md files under *root*.

    ``commands/git/commit.md`` becomes ``git:commit``.
    """
    result: dict[str, Path] = {}
    if not root.is_dir():
        return result
    for f in sorted(root.rglob("*.md")):
        if not f.is_file():
            continue
        rel = f.relative_to(root).with_suffix("")
        result[":".join(rel.parts)] = f
    return result


def expand_custom_command(path: Path, arguments: str) -> CommandResult:
    """Read a command .md file and expand it into a CommandResult."""
    _, body = parse_frontmatter_and_body(path)
    body = body.lstrip("\n")

    has_arg_placeholder = "$ARGUMENTS" in body or any(f"${i}" in body for i in range(1, 10))
    body = body.replace("$ARGUMENTS", arguments)
    for i, part in enumerate(arguments.split() if arguments else [], 1):
        body = body.replace(f"${i}", part)

    if not has_arg_placeholder and arguments:
        body = f"{body.rstrip()}\n\nUser request: {arguments}"

    return CommandResult(prompt=body)
