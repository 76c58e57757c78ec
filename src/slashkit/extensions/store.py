"""On-disk extension store and its in-memory mirror."""

from __future__ import annotations

import os
import shutil
import threading
import uuid
from pathlib import Path

from .models import Extension

STAGING_DIR_NAME = ".staging"
BACKUP_DIR_NAME = ".backup"
TRASH_DIR_NAME = ".trash"


class ExtensionStore:
    """One directory per extension under ``root``, plus the loaded records.

    The record list is an immutable tuple swapped under a lock, so readers
    always see a complete list. Staging and backup directories live under
    ``root`` so swaps are single renames on the same filesystem.
    """

    def __init__(self, root: Path):
        self.root = root
        self._extensions: tuple[Extension, ...] = ()
        self._lock = threading.Lock()

    # ── paths ──

    @property
    def staging_root(self) -> Path:
        return self.root / STAGING_DIR_NAME

    @property
    def backup_root(self) -> Path:
        return self.root / BACKUP_DIR_NAME

    @property
    def trash_root(self) -> Path:
        return self.root / TRASH_DIR_NAME

    def path_for(self, name: str) -> Path:
        return self.root / name

    def new_backup_path(self, name: str) -> Path:
        self.backup_root.mkdir(parents=True, exist_ok=True)
        return self.backup_root / f"{name}.{uuid.uuid4().hex[:8]}"

    def new_trash_path(self, name: str) -> Path:
        self.trash_root.mkdir(parents=True, exist_ok=True)
        return self.trash_root / f"{name}.{uuid.uuid4().hex[:8]}"

    def iter_extension_dirs(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(
            d for d in self.root.iterdir() if d.is_dir() and not d.name.startswith(".")
        )

    # ── records ──

    def all(self) -> tuple[Extension, ...]:
        return self._extensions

    def get(self, name: str) -> Extension | None:
        for ext in self._extensions:
            if ext.name == name:
                return ext
        return None

    def put(self, extension: Extension) -> None:
        """Insert or replace the record with the same name, keeping order by name."""
        with self._lock:
            others = [e for e in self._extensions if e.name != extension.name]
            others.append(extension)
            self._extensions = tuple(sorted(others, key=lambda e: e.name))

    def discard(self, name: str) -> Extension | None:
        with self._lock:
            found = None
            kept = []
            for e in self._extensions:
                if e.name == name:
                    found = e
                else:
                    kept.append(e)
            self._extensions = tuple(kept)
            return found

    def replace_all(self, extensions: list[Extension]) -> None:
        with self._lock:
            self._extensions = tuple(sorted(extensions, key=lambda e: e.name))

    # ── disk ──

    def recover(self) -> list[str]:
        """Finish or undo interrupted swaps; drop leftover staging content.

        A backup whose live directory is gone is moved back into place.
        Anything under the trash root belongs to an uninstall and is deleted.
        Returns the names that were restored.
        """
        restored: list[str] = []
        if self.backup_root.is_dir():
            for backup in sorted(self.backup_root.iterdir()):
                name = backup.name.rsplit(".", 1)[0]
                live = self.path_for(name)
                if backup.is_dir() and not live.exists():
                    os.replace(backup, live)
                    restored.append(name)
                else:
                    _remove(backup)
            _remove_if_empty(self.backup_root)
        if self.trash_root.is_dir():
            shutil.rmtree(self.trash_root, ignore_errors=True)
        if self.staging_root.is_dir():
            shutil.rmtree(self.staging_root, ignore_errors=True)
        return restored


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)


def _remove_if_empty(path: Path) -> None:
    try:
        path.rmdir()
    except OSError:
        pass
