"""Extension data models: ExtensionSource, ExtensionManifest, Extension."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

MANIFEST_FILENAME = "slashkit-extension.json"
INSTALL_METADATA_FILENAME = ".slashkit-install.json"
SOURCE_TYPES = ("local", "git", "release")


@dataclass(frozen=True)
class ExtensionSource:
    """Where an extension comes from: a local path, a git repo or a release archive."""

    type: str
    source: str
    ref: str = ""
    sha256: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"type": self.type, "source": self.source}
        if self.ref:
            data["ref"] = self.ref
        if self.sha256:
            data["sha256"] = self.sha256
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtensionSource:
        return cls(
            type=str(data.get("type", "")),
            source=str(data.get("source", "")),
            ref=str(data.get("ref", "") or ""),
            sha256=str(data.get("sha256", "") or ""),
        )


@dataclass(frozen=True)
class ExtensionSetting:
    name: str
    env_var: str
    description: str = ""
    default: str | None = None
    sensitive: bool = False


@dataclass(frozen=True)
class ExtensionManifest:
    """Parsed from slashkit-extension.json."""

    name: str
    version: str
    description: str = ""
    context_file_name: str = ""
    settings: tuple[ExtensionSetting, ...] = ()
    trust: str = "none"  # "required" | "none"
    mcp_servers: dict[str, dict] = field(default_factory=dict)
    exclude_tools: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def requires_trust(self) -> bool:
        return self.trust == "required"

    def setting_defaults(self) -> dict[str, str]:
        return {s.env_var: s.default for s in self.settings if s.default is not None}


@dataclass(frozen=True)
class Extension:
    """An installed extension. Replaced, never mutated, when its state changes."""

    name: str
    version: str
    path: Path
    config: ExtensionManifest
    source: ExtensionSource | None = None
    enabled: bool = True
    settings: dict[str, str] = field(default_factory=dict, compare=False)


@dataclass
class InstallTransaction:
    """State captured for one install/update call."""

    extension_name: str
    candidate_path: Path
    previous_path: Path | None = None
    previous_config: ExtensionManifest | None = None
    backup_path: Path | None = None
