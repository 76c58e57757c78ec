"""Configuration: env, paths, settings files."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PROJECT_DIR_NAME = ".slashkit"
SETTINGS_FILE = "settings.json"
LOCAL_SETTINGS_FILE = "settings.local.json"


def _default_global_dir() -> Path:
    if home := os.getenv("SLASHKIT_HOME"):
        return Path(home)
    return Path.home() / ".slashkit"


@dataclass
class Config:
    cwd: Path = field(default_factory=Path.cwd)
    global_dir: Path = field(default_factory=_default_global_dir)
    project_dir: Path | None = None  # explicit override; None = auto-detect from cwd
    verbose: bool = False
    enabled_extensions: dict[str, bool] = field(default_factory=dict)
    # path -> "TRUST_FOLDER" | "DO_NOT_TRUST"
    trusted_folders: dict[str, str] = field(default_factory=dict)
    extension_settings: dict[str, dict] = field(default_factory=dict)

    @property
    def project_dirs(self) -> list[Path]:
        if self.project_dir is not None:
            return [self.project_dir] if self.project_dir.is_dir() else []
        d = self.cwd / PROJECT_DIR_NAME
        return [d] if d.is_dir() else []

    @property
    def primary_project_dir(self) -> Path:
        if self.project_dir is not None:
            return self.project_dir
        return self.cwd / PROJECT_DIR_NAME

    @property
    def extensions_dir(self) -> Path:
        return self.global_dir / "extensions"

    @property
    def settings_path(self) -> Path:
        return self.global_dir / SETTINGS_FILE

    @property
    def command_dirs(self) -> list[Path]:
        """User-level then project-level commands/ directories."""
        return [self.global_dir / "commands"] + [p / "commands" for p in self.project_dirs]


def read_settings(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def write_settings(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")


def update_settings_key(path: Path, section: str, key: str, value) -> None:
    """Set (or with ``None`` remove) ``data[section][key]`` in a settings file."""
    data = read_settings(path)
    entries = data.get(section, {})
    if not isinstance(entries, dict):
        entries = {}
    if value is None:
        entries.pop(key, None)
    else:
        entries[key] = value
    data[section] = entries
    write_settings(path, data)


def _apply_settings(config: Config, path: Path) -> None:
    """Apply a single settings.json file to config."""
    data = read_settings(path)
    if not data:
        return
    if isinstance(data.get("enabledExtensions"), dict):
        config.enabled_extensions.update(data["enabledExtensions"])
    if isinstance(data.get("trustedFolders"), dict):
        config.trusted_folders.update(data["trustedFolders"])
    if isinstance(data.get("extensionSettings"), dict):
        from .merge import deep_merge

        config.extension_settings = deep_merge(
            config.extension_settings, data["extensionSettings"]
        )


def load_config(verbose: bool = False, cwd: Path | None = None) -> Config:
    """Load config with priority: env > .env > settings.local.json > settings.json > defaults."""
    load_dotenv()

    config = Config(cwd=cwd or Path.cwd())
    config.verbose = verbose or bool(os.getenv("SLASHKIT_DEBUG"))

    _apply_settings(config, config.settings_path)

    for pdir in config.project_dirs:
        _apply_settings(config, pdir / SETTINGS_FILE)

    for pdir in config.project_dirs:
        _apply_settings(config, pdir / LOCAL_SETTINGS_FILE)

    return config
