"""Tests for the slashkit command line."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from slashkit.__main__ import cli
from slashkit.core.config import read_settings


@pytest.fixture
def run(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("SLASHKIT_HOME", str(tmp_path / "home"))
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(cli, list(args), obj={}, input=input)

    return _run


class TestValidate:
    def test_valid(self, run, make_extension):
        result = run("extensions", "validate", str(make_extension()))
        assert result.exit_code == 0
        assert "extension is valid" in result.output

    def test_invalid(self, run, make_extension):
        src = make_extension(contextFileName="MISSING.md")
        result = run("extensions", "validate", str(src))
        assert result.exit_code == 1
        assert "context file not found" in result.output


class TestExtensionLifecycle:
    def test_install_list_disable_uninstall(self, run, make_extension, tmp_path):
        src = make_extension(commands={"deploy": "Ship $ARGUMENTS"})

        result = run("extensions", "install", str(src), "--yes")
        assert result.exit_code == 0, result.output
        assert "installed myext v1.0.0" in result.output

        result = run("extensions", "list")
        assert "myext" in result.output

        result = run("commands")
        assert "/deploy" in result.output
        assert "/help" in result.output

        result = run("extensions", "disable", "myext")
        assert result.exit_code == 0
        settings = read_settings(tmp_path / "home" / "settings.json")
        assert settings["enabledExtensions"] == {"myext": False}

        result = run("extensions", "uninstall", "myext")
        assert result.exit_code == 0
        assert not (tmp_path / "home" / "extensions" / "myext").exists()

    def test_consent_declined(self, run, make_extension, tmp_path):
        result = run("extensions", "install", str(make_extension()), input="n\n")
        assert result.exit_code == 1
        assert "declined" in result.output
        assert not (tmp_path / "home" / "extensions" / "myext").exists()

    def test_update(self, run, make_extension):
        src = make_extension()
        run("extensions", "install", str(src), "--yes")
        manifest = src / "slashkit-extension.json"
        manifest.write_text(json.dumps({"name": "myext", "version": "1.1.0"}))

        result = run("extensions", "update", "--yes")
        assert result.exit_code == 0, result.output
        assert "1.0.0 -> 1.1.0" in result.output

    def test_uninstall_unknown(self, run):
        result = run("extensions", "uninstall", "ghost")
        assert result.exit_code == 1
        assert "not installed" in result.output

    def test_list_empty(self, run):
        result = run("extensions", "list")
        assert "no extensions installed" in result.output
