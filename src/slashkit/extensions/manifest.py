"""Manifest loading: load_manifest, validate_extension_dir, install metadata."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from .errors import ValidationError
from .models import (
    INSTALL_METADATA_FILENAME,
    MANIFEST_FILENAME,
    ExtensionManifest,
    ExtensionSetting,
    ExtensionSource,
)

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]+)?$")


def _parse_settings(raw: Any, name: str) -> tuple[ExtensionSetting, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError(f"{MANIFEST_FILENAME}: 'settings' must be a list", name=name)
    settings = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("envVar"):
            raise ValidationError(
                f"{MANIFEST_FILENAME}: settings[{i}] needs 'name' and 'envVar'", name=name
            )
        default = entry.get("default")
        settings.append(
            ExtensionSetting(
                name=str(entry["name"]),
                env_var=str(entry["envVar"]),
                description=str(entry.get("description", "")),
                default=None if default is None else str(default),
                sensitive=bool(entry.get("sensitive", False)),
            )
        )
    return tuple(settings)


def parse_manifest(data: Any) -> ExtensionManifest:
    """Structurally check a decoded manifest and build an ExtensionManifest."""
    if not isinstance(data, dict):
        raise ValidationError(f"{MANIFEST_FILENAME}: expected a JSON object")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError(f"{MANIFEST_FILENAME}: missing required field 'name'")
    if not _NAME_RE.match(name):
        raise ValidationError(
            f"invalid extension name {name!r}: only letters, digits, '-' and '_' allowed",
            name=name,
        )
    version = data.get("version")
    if not isinstance(version, str) or not version:
        raise ValidationError(f"{MANIFEST_FILENAME}: missing required field 'version'", name=name)
    if not _VERSION_RE.match(version):
        raise ValidationError(f"invalid version {version!r} for {name}", name=name)

    trust = data.get("trust", "none") or "none"
    if trust not in ("required", "none"):
        raise ValidationError(f"{MANIFEST_FILENAME}: unknown trust level {trust!r}", name=name)

    mcp = data.get("mcpServers")
    if mcp is None:
        mcp = {}
    if not isinstance(mcp, dict):
        raise ValidationError(f"{MANIFEST_FILENAME}: 'mcpServers' must be an object", name=name)
    exclude = data.get("excludeTools")
    if exclude is None:
        exclude = []
    if not isinstance(exclude, list):
        raise ValidationError(f"{MANIFEST_FILENAME}: 'excludeTools' must be a list", name=name)

    return ExtensionManifest(
        name=name,
        version=version,
        description=str(data.get("description", "")),
        context_file_name=str(data.get("contextFileName", "")),
        settings=_parse_settings(data.get("settings"), name),
        trust=trust,
        mcp_servers=mcp,
        exclude_tools=tuple(str(t) for t in exclude),
        raw=data,
    )


def load_manifest(extension_dir: Path) -> ExtensionManifest:
    """Read and validate the manifest inside *extension_dir*."""
    if not extension_dir.is_dir():
        raise ValidationError(f"extension directory not found: {extension_dir}")
    path = extension_dir / MANIFEST_FILENAME
    if not path.is_file():
        raise ValidationError(f"{MANIFEST_FILENAME} not found in {extension_dir}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"invalid JSON in {MANIFEST_FILENAME}: {e}") from e
    except OSError as e:
        raise ValidationError(f"cannot read {path}: {e}") from e
    return parse_manifest(data)


def validate_extension_dir(path: Path) -> list[str]:
    """Return human readable problems with an extension directory (empty if valid)."""
    errors: list[str] = []
    try:
        manifest = load_manifest(path)
    except ValidationError as e:
        return [str(e)]
    if manifest.context_file_name and not (path / manifest.context_file_name).is_file():
        errors.append(f"context file not found: {manifest.context_file_name}")
    commands = path / "commands"
    if commands.exists() and not commands.is_dir():
        errors.append("'commands' must be a directory")
    return errors


def read_install_metadata(extension_dir: Path) -> ExtensionSource | None:
    path = extension_dir / INSTALL_METADATA_FILENAME
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return None
    if not isinstance(data, dict) or not data.get("type"):
        return None
    return ExtensionSource.from_dict(data)


def write_install_metadata(extension_dir: Path, source: ExtensionSource) -> None:
    path = extension_dir / INSTALL_METADATA_FILENAME
    path.write_text(json.dumps(source.to_dict(), indent=2) + "\n")
