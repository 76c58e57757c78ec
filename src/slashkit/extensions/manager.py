"""ExtensionManager: install, update, enable/disable and uninstall extensions.

The manager is the only writer of the extension store. Every install or
update is a transaction:

1. acquire the source into a staging directory under the store root
2. validate the staged tree (the same load the CLI performs at startup)
3. gate on trust / consent and resolve settings
4. commit with a rename swap: live -> backup, staged -> live
5. load the live directory and publish the record; only then is the backup
   removed

Any failure before step 5 completes puts the previous directory back and
leaves the in-memory record untouched. Operations on the same extension name
fail fast with BusyError while another one is in flight.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import shutil
import threading
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from dotenv import dotenv_values, set_key

from slashkit.core.cancellation import CancellationToken, OperationCancelled
from slashkit.core.config import update_settings_key
from slashkit.core.debug import debug_logger
from slashkit.core.merge import merge_layers

from .acquire import ExtensionAcquirer, StagedExtension
from .errors import BusyError, ConflictError, NotFoundError, TrustDenied, ValidationError
from .manifest import load_manifest, read_install_metadata, validate_extension_dir, write_install_metadata
from .models import Extension, ExtensionManifest, ExtensionSource, InstallTransaction
from .store import ExtensionStore
from .trust import AlwaysTrusted, ConsentCallback, SettingCallback, TrustOracle

if TYPE_CHECKING:
    from slashkit.commands.refresher import CustomCommandManager
    from slashkit.core.config import Config

log = debug_logger.get_logger("extensions")

ENV_FILENAME = ".env"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _check(token: CancellationToken) -> None:
    if token.cancelled:
        raise OperationCancelled(token.reason)


def _purge(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        log.warn(f"could not remove {path}: {e}")


def describe_install(manifest: ExtensionManifest, source: ExtensionSource, previous=None) -> str:
    """Consent text shown before an install or update proceeds."""
    if previous is not None:
        lines = [
            f'Updating extension "{manifest.name}" from {previous.version} to {manifest.version}.'
        ]
    else:
        lines = [f'Installing extension "{manifest.name}" ({manifest.version}).']
    lines.append(f"Source: {source.source}")
    if manifest.mcp_servers:
        lines.append("This extension will run the following MCP servers:")
        for server, cfg in manifest.mcp_servers.items():
            target = cfg.get("command") or cfg.get("url") or cfg.get("httpUrl") or ""
            lines.append(f"  * {server}: {target}".rstrip(": "))
    if manifest.exclude_tools:
        lines.append("This extension will exclude the following tools: " + ", ".join(manifest.exclude_tools))
    lines.append("Extensions can run code on your machine. Only install extensions you trust.")
    return "\n".join(lines)


class ExtensionManager:
    def __init__(
        self,
        config: Config,
        *,
        acquirer: ExtensionAcquirer | None = None,
        trust: TrustOracle | None = None,
        request_consent: ConsentCallback | None = None,
        request_setting: SettingCallback | None = None,
        command_manager: CustomCommandManager | None = None,
        workspace_dir: Path | None = None,
    ):
        self.config = config
        self.store = ExtensionStore(config.extensions_dir)
        self.acquirer = acquirer or ExtensionAcquirer(self.store.staging_root)
        self.trust = trust or AlwaysTrusted()
        self.request_consent = request_consent
        self.request_setting = request_setting
        self.command_manager = command_manager
        self.workspace_dir = workspace_dir or config.cwd
        self.load_errors: dict[Path, str] = {}
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()
        self._operations = 0

    # ── reading ─────────────────────────────────────────────────────

    def get_extensions(self) -> tuple[Extension, ...]:
        return self.store.all()

    def get_extension(self, name: str) -> Extension | None:
        return self.store.get(name)

    def load_extension_config(self, extension_dir: Path) -> ExtensionManifest:
        return load_manifest(extension_dir)

    def is_enabled(self, name: str) -> bool:
        return self.config.enabled_extensions.get(name, True)

    async def load_extension(self, extension_dir: Path) -> Extension:
        """Load and validate one extension directory. Raises ValidationError."""
        return await asyncio.to_thread(self._load_extension_sync, extension_dir)

    def _load_extension_sync(self, extension_dir: Path) -> Extension:
        manifest = load_manifest(extension_dir)
        problems = validate_extension_dir(extension_dir)
        if problems:
            raise ValidationError("; ".join(problems), name=manifest.name)
        env_path = extension_dir / ENV_FILENAME
        settings: dict[str, str] = {}
        if env_path.exists():
            settings = {k: v for k, v in dotenv_values(env_path).items() if v is not None}
        return Extension(
            name=manifest.name,
            version=manifest.version,
            path=extension_dir,
            config=manifest,
            source=read_install_metadata(extension_dir),
            enabled=self.is_enabled(manifest.name),
            settings=settings,
        )

    async def load_extensions(self) -> tuple[Extension, ...]:
        """Scan the store root and rebuild the in-memory list.

        Directories that fail to load are skipped and recorded in
        ``load_errors``.
        """
        with self._in_flight_lock:
            idle = not self._in_flight and not self._operations
        if idle:
            for name in await asyncio.to_thread(self.store.recover):
                log.warn(f"restored {name} from an interrupted update")

        loaded: list[Extension] = []
        errors: dict[Path, str] = {}
        for d in self.store.iter_extension_dirs():
            try:
                ext = await self.load_extension(d)
            except ValidationError as e:
                errors[d] = str(e)
                log.warn(f"skipping extension at {d}: {e}")
                continue
            if ext.name != d.name:
                errors[d] = f"directory name does not match extension name {ext.name!r}"
                log.warn(f"skipping extension at {d}: {errors[d]}")
                continue
            loaded.append(ext)
        self.load_errors = errors
        self.store.replace_all(loaded)
        self._notify()
        return self.store.all()

    # ── install / update ────────────────────────────────────────────

    @contextmanager
    def _operation(self) -> Iterator[None]:
        # held from before acquisition so a rescan leaves staging alone
        with self._in_flight_lock:
            self._operations += 1
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._operations -= 1

    @contextmanager
    def _claim(self, name: str) -> Iterator[None]:
        with self._in_flight_lock:
            if name in self._in_flight:
                raise BusyError(f"another operation on {name!r} is in progress", name=name)
            self._in_flight.add(name)
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(name)

    async def install(
        self,
        source: ExtensionSource,
        *,
        settings: dict[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> Extension:
        """Install a new extension. Raises ConflictError if it already exists."""
        return await self.install_or_update_extension(source, settings=settings, token=token)

    async def install_or_update_extension(
        self,
        source: ExtensionSource,
        previous_config: ExtensionManifest | None = None,
        *,
        settings: dict[str, str] | None = None,
        token: CancellationToken | None = None,
    ) -> Extension:
        """Install *source*, or update the installed extension described by *previous_config*."""
        token = token or CancellationToken()
        with self._operation():
            if previous_config is not None:
                with self._claim(previous_config.name):
                    staged = await self.acquirer.acquire(source, token)
                    try:
                        return await self._apply(staged, previous_config, settings, token)
                    finally:
                        staged.cleanup()

            staged = await self.acquirer.acquire(source, token)
            try:
                with self._claim(staged.manifest.name):
                    return await self._apply(staged, None, settings, token)
            finally:
                staged.cleanup()

    async def update_extension(
        self, name: str, *, token: CancellationToken | None = None
    ) -> Extension:
        """Re-acquire an installed extension from the source it was installed from."""
        existing = self.store.get(name)
        if existing is None:
            raise NotFoundError(f"extension {name!r} is not installed", name=name)
        source = existing.source or read_install_metadata(existing.path)
        if source is None:
            raise NotFoundError(f"no install source recorded for {name!r}", name=name)
        return await self.install_or_update_extension(source, existing.config, token=token)

    async def _apply(
        self,
        staged: StagedExtension,
        previous_config: ExtensionManifest | None,
        settings: dict[str, str] | None,
        token: CancellationToken,
    ) -> Extension:
        manifest = staged.manifest
        name = manifest.name
        live = self.store.path_for(name)
        existing = self.store.get(name)

        if previous_config is None:
            if existing is not None or live.exists():
                raise ConflictError(
                    f"extension {name!r} is already installed; update it instead", name=name
                )
        else:
            if name != previous_config.name:
                raise ValidationError(
                    f"new version is named {name!r}, expected {previous_config.name!r}", name=name
                )
            if existing is None or not live.is_dir():
                raise NotFoundError(f"extension {name!r} is not installed", name=name)

        await self._check_trust(staged, existing)
        _check(token)
        resolved = await self._resolve_settings(manifest, existing, settings)
        _check(token)

        await asyncio.to_thread(self._write_payload_metadata, staged, resolved)
        # validation of the new content; the only trigger for rollback
        await self.load_extension(staged.path)
        _check(token)

        txn = InstallTransaction(
            extension_name=name,
            candidate_path=staged.path,
            previous_path=live if existing is not None else None,
            previous_config=previous_config,
        )
        await asyncio.to_thread(self._commit, txn)
        try:
            ext = await self.load_extension(live)
        except BaseException:
            await asyncio.to_thread(self._rollback, txn)
            raise
        # enablement may have been toggled while the new version loaded
        ext = replace(ext, source=staged.source, enabled=self.is_enabled(name))
        self.store.put(ext)
        await asyncio.to_thread(self._discard_backup, txn)

        if existing is None:
            log.debug(f"installed {name}@{ext.version}")
        else:
            log.debug(f"updated {name} {existing.version} -> {ext.version}")
        self._notify()
        return ext

    async def _check_trust(self, staged: StagedExtension, existing: Extension | None) -> None:
        manifest = staged.manifest
        result = self.trust.is_trusted(self.workspace_dir)
        if result.trusted:
            return
        if self.request_consent is not None:
            text = describe_install(manifest, staged.source, existing)
            if not await _maybe_await(self.request_consent(text)):
                raise TrustDenied(f"installation of {manifest.name!r} was declined", name=manifest.name)
            return
        if result.trusted is False or manifest.requires_trust:
            raise TrustDenied(
                f"{manifest.name!r} cannot be installed: workspace {self.workspace_dir} is not trusted",
                name=manifest.name,
            )

    async def _resolve_settings(
        self,
        manifest: ExtensionManifest,
        existing: Extension | None,
        session: dict[str, str] | None,
    ) -> dict[str, str]:
        user = merge_layers(
            self.config.extension_settings.get(manifest.name),
            existing.settings if existing is not None else None,
        )
        resolved = merge_layers(manifest.setting_defaults(), user, session)
        for setting in manifest.settings:
            if setting.env_var in resolved:
                continue
            if self.request_setting is None:
                continue
            prompt = f"{setting.name}: {setting.description}" if setting.description else setting.name
            resolved[setting.env_var] = await _maybe_await(self.request_setting(prompt))
        declared = {s.env_var for s in manifest.settings}
        return {k: str(v) for k, v in resolved.items() if k in declared}

    def _write_payload_metadata(self, staged: StagedExtension, settings: dict[str, str]) -> None:
        write_install_metadata(staged.path, staged.source)
        env_path = staged.path / ENV_FILENAME
        env_path.unlink(missing_ok=True)
        if settings:
            env_path.touch(mode=0o600)
            for key, value in settings.items():
                set_key(str(env_path), key, value, quote_mode="always")

    def _commit(self, txn: InstallTransaction) -> None:
        live = self.store.path_for(txn.extension_name)
        live.parent.mkdir(parents=True, exist_ok=True)
        if txn.previous_path is not None and live.exists():
            txn.backup_path = self.store.new_backup_path(txn.extension_name)
            os.replace(live, txn.backup_path)
        try:
            os.replace(txn.candidate_path, live)
        except OSError:
            if txn.backup_path is not None:
                os.replace(txn.backup_path, live)
                txn.backup_path = None
            raise

    def _rollback(self, txn: InstallTransaction) -> None:
        live = self.store.path_for(txn.extension_name)
        if live.exists():
            shutil.rmtree(live)
        if txn.backup_path is not None:
            os.replace(txn.backup_path, live)
            txn.backup_path = None
        log.warn(f"rolled back {txn.extension_name}")

    def _discard_backup(self, txn: InstallTransaction) -> None:
        if txn.backup_path is not None:
            _purge(txn.backup_path)
            txn.backup_path = None

    # ── uninstall / enable ──────────────────────────────────────────

    async def uninstall(self, name: str) -> None:
        with self._claim(name):
            live = self.store.path_for(name)
            if self.store.get(name) is None and not live.is_dir():
                raise NotFoundError(f"extension {name!r} is not installed", name=name)
            if live.exists():
                trash = self.store.new_trash_path(name)
                await asyncio.to_thread(os.replace, live, trash)
                await asyncio.to_thread(_purge, trash)
            self.store.discard(name)
            update_settings_key(self.config.settings_path, "enabledExtensions", name, None)
            self.config.enabled_extensions.pop(name, None)
        log.debug(f"uninstalled {name}")
        self._notify()

    def set_enabled(self, name: str, enabled: bool) -> Extension:
        ext = self.store.get(name)
        if ext is None:
            raise NotFoundError(f"extension {name!r} is not installed", name=name)
        update_settings_key(self.config.settings_path, "enabledExtensions", name, enabled)
        self.config.enabled_extensions[name] = enabled
        ext = replace(ext, enabled=enabled)
        self.store.put(ext)
        self._notify()
        return ext

    def enable(self, name: str) -> Extension:
        return self.set_enabled(name, True)

    def disable(self, name: str) -> Extension:
        return self.set_enabled(name, False)

    def _notify(self) -> None:
        if self.command_manager is not None:
            self.command_manager.refresh_commands()
