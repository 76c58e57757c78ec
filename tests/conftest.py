"""Shared fixtures: isolated config and on-disk extension builders."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from slashkit.commands import CommandRefresher
from slashkit.core.config import Config
from slashkit.extensions import MANIFEST_FILENAME, ExtensionManager


def write_extension(
    root: Path,
    name: str = "myext",
    version: str = "1.0.0",
    *,
    commands: dict[str, str] | None = None,
    **manifest,
) -> Path:
    """Create an extension source directory under *root* and return it."""
    root.mkdir(parents=True, exist_ok=True)
    data = {"name": name, "version": version, **manifest}
    (root / MANIFEST_FILENAME).write_text(json.dumps(data))
    for cmd_name, body in (commands or {}).items():
        path = root / "commands" / f"{cmd_name}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body)
    return root


@pytest.fixture
def config(tmp_path):
    cwd = tmp_path / "work"
    cwd.mkdir()
    return Config(cwd=cwd, global_dir=tmp_path / "home")


@pytest.fixture
def refresher():
    return CommandRefresher()


@pytest.fixture
def manager(config, refresher):
    return ExtensionManager(config, command_manager=refresher)


@pytest.fixture
def make_extension(tmp_path):
    """Build extension source trees under ``tmp_path/src/<dirname>``."""

    def _make(name: str = "myext", version: str = "1.0.0", *, dirname: str = "", **kwargs):
        return write_extension(tmp_path / "src" / (dirname or name), name, version, **kwargs)

    return _make


@pytest.fixture
def extension_writer():
    """Write an extension tree at an explicit path."""
    return write_extension
