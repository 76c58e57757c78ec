"""Extension acquisition: local copy, git clone, release archive download.

Every source is materialized into a fresh staging directory. The caller
owns the staged tree and either adopts it or calls ``cleanup()``.
"""

from __future__ import annotations

import asyncio
import hashlib
import shutil
import tarfile
import urllib.error
import urllib.request
import uuid
import zipfile
from dataclasses import dataclass
from pathlib import Path

from slashkit.core.cancellation import CancellationToken
from slashkit.core.debug import debug_logger

from .errors import AcquisitionError, AcquisitionErrorKind
from .manifest import load_manifest
from .models import MANIFEST_FILENAME, ExtensionManifest, ExtensionSource

log = debug_logger.get_logger("acquire")

_ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar", ".zip")
_CHUNK = 64 * 1024
GIT_TIMEOUT = 120


@dataclass
class StagedExtension:
    path: Path
    manifest: ExtensionManifest
    source: ExtensionSource

    def cleanup(self) -> None:
        shutil.rmtree(self.path, ignore_errors=True)


# ── Source resolution ───────────────────────────────────────────────


def is_github_ref(source: str) -> bool:
    """Check if source looks like owner/repo (optionally owner/repo#ref)."""
    source = source.split("#", 1)[0]
    parts = source.strip().split("/")
    return (
        len(parts) == 2
        and all(p and not p.startswith("-") for p in parts)
        and not source.startswith(".")
        and not source.startswith("/")
        and ":" not in source
    )


def is_git_url(source: str) -> bool:
    source = source.split("#", 1)[0]
    return (
        source.endswith(".git")
        or source.startswith("git@")
        or source.startswith("git://")
        or source.startswith("ssh://")
    )


def is_archive_url(source: str) -> bool:
    lowered = source.lower()
    return lowered.startswith(("http://", "https://", "file://")) and lowered.endswith(
        _ARCHIVE_SUFFIXES
    )


def infer_source(arg: str, ref: str = "", *, cwd: Path | None = None) -> ExtensionSource:
    """Guess a source descriptor from a command-line argument."""
    arg = arg.strip()
    local = (cwd or Path.cwd()) / arg
    if local.is_dir():
        return ExtensionSource(type="local", source=str(local.resolve()))
    if is_archive_url(arg):
        return ExtensionSource(type="release", source=arg)
    if "#" in arg and not ref:
        arg, ref = arg.rsplit("#", 1)
    if is_github_ref(arg) or is_git_url(arg) or arg.startswith(("http://", "https://")):
        return ExtensionSource(type="git", source=arg, ref=ref)
    return ExtensionSource(type="local", source=str(local.resolve()))


def _git_url(source: str) -> str:
    if is_github_ref(source):
        return f"https://github.com/{source}.git"
    return source


# ── Acquirer ────────────────────────────────────────────────────────


class ExtensionAcquirer:
    """Turn an ExtensionSource into a staged directory with a parsed manifest."""

    def __init__(self, staging_root: Path, git_timeout: float = GIT_TIMEOUT):
        self.staging_root = staging_root
        self.git_timeout = git_timeout

    def _new_staging_dir(self) -> Path:
        self.staging_root.mkdir(parents=True, exist_ok=True)
        return self.staging_root / uuid.uuid4().hex

    async def acquire(
        self, source: ExtensionSource, token: CancellationToken | None = None
    ) -> StagedExtension:
        token = token or CancellationToken()
        _check(token)
        dest = self._new_staging_dir()
        try:
            if source.type == "local":
                await asyncio.to_thread(self._copy_local, source, dest)
            elif source.type == "git":
                await self._clone(source, dest, token)
            elif source.type == "release":
                await self._download_release(source, dest, token)
            else:
                raise AcquisitionError(
                    AcquisitionErrorKind.UNSUPPORTED_SOURCE,
                    f"unsupported extension source type: {source.type!r}",
                )
            _check(token)
            if not (dest / MANIFEST_FILENAME).is_file():
                raise AcquisitionError(
                    AcquisitionErrorKind.NOT_FOUND,
                    f"{MANIFEST_FILENAME} not found in {source.source}",
                )
            manifest = await asyncio.to_thread(load_manifest, dest)
        except BaseException:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        log.debug(f"staged {manifest.name}@{manifest.version} from {source.source}")
        return StagedExtension(path=dest, manifest=manifest, source=source)

    # ── local ──

    def _copy_local(self, source: ExtensionSource, dest: Path) -> None:
        src = Path(source.source).expanduser()
        if not src.is_dir():
            raise AcquisitionError(
                AcquisitionErrorKind.NOT_FOUND, f"source directory not found: {source.source}"
            )
        shutil.copytree(src, dest, symlinks=True)

    # ── git ──

    async def _run_git(self, args: list[str], token: CancellationToken) -> tuple[int, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise AcquisitionError(
                AcquisitionErrorKind.UNSUPPORTED_SOURCE, "git is not installed"
            ) from e

        def _kill() -> None:
            if proc.returncode is None:
                proc.kill()

        remove = token.on_cancel(_kill)
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.git_timeout)
        except asyncio.TimeoutError as e:
            _kill()
            await proc.wait()
            raise AcquisitionError(
                AcquisitionErrorKind.NETWORK_FAILURE, f"git {args[0]} timed out"
            ) from e
        except asyncio.CancelledError:
            _kill()
            raise
        finally:
            remove()
        _check(token)
        return proc.returncode or 0, stderr.decode("utf-8", errors="replace").strip()

    async def _clone(self, source: ExtensionSource, dest: Path, token: CancellationToken) -> None:
        url = _git_url(source.source)
        cmd = ["clone"]
        if not source.ref:
            cmd.extend(["--depth", "1"])
        cmd.extend([url, str(dest)])
        code, err = await self._run_git(cmd, token)
        if code != 0:
            raise AcquisitionError(
                AcquisitionErrorKind.NETWORK_FAILURE, f"failed to clone {url}: {err}"
            )
        if source.ref:
            code, err = await self._run_git(["-C", str(dest), "checkout", source.ref], token)
            if code != 0:
                raise AcquisitionError(
                    AcquisitionErrorKind.NOT_FOUND,
                    f"ref {source.ref!r} not found in {url}: {err}",
                )

    # ── release ──

    async def _download_release(
        self, source: ExtensionSource, dest: Path, token: CancellationToken
    ) -> None:
        archive = dest.with_name(dest.name + ".download")
        try:
            digest = await asyncio.to_thread(_download, source.source, archive, token)
            _check(token)
            if source.sha256 and digest.lower() != source.sha256.lower():
                raise AcquisitionError(
                    AcquisitionErrorKind.CHECKSUM_MISMATCH,
                    f"checksum mismatch for {source.source}: expected {source.sha256}, got {digest}",
                )
            await asyncio.to_thread(extract_archive, archive, dest, source.source)
        finally:
            archive.unlink(missing_ok=True)


def _check(token: CancellationToken) -> None:
    if token.cancelled:
        raise AcquisitionError(AcquisitionErrorKind.CANCELLED, token.reason)


def _download(url: str, target: Path, token: CancellationToken) -> str:
    """Stream *url* to *target*; return the sha256 hex digest."""
    sha = hashlib.sha256()
    req = urllib.request.Request(url, headers={"User-Agent": "slashkit/1.0"})
    try:
        with urllib.request.urlopen(req, timeout=60) as resp, target.open("wb") as fh:
            while chunk := resp.read(_CHUNK):
                if token.cancelled:
                    raise AcquisitionError(AcquisitionErrorKind.CANCELLED, token.reason)
                sha.update(chunk)
                fh.write(chunk)
    except urllib.error.HTTPError as e:
        kind = (
            AcquisitionErrorKind.NOT_FOUND
            if e.code == 404
            else AcquisitionErrorKind.NETWORK_FAILURE
        )
        raise AcquisitionError(kind, f"HTTP {e.code} {e.reason} for {url}") from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, FileNotFoundError):
            raise AcquisitionError(
                AcquisitionErrorKind.NOT_FOUND, f"release archive not found: {url}"
            ) from e
        raise AcquisitionError(
            AcquisitionErrorKind.NETWORK_FAILURE, f"failed to download {url}: {e.reason}"
        ) from e
    except OSError as e:
        raise AcquisitionError(
            AcquisitionErrorKind.NETWORK_FAILURE, f"failed to download {url}: {e}"
        ) from e
    return sha.hexdigest()


def _is_within(root: Path, member: str) -> bool:
    resolved = (root / member).resolve()
    return resolved == root or root in resolved.parents


def extract_archive(archive: Path, dest: Path, label: str = "") -> None:
    """Extract a tar/zip archive into *dest*, unwrapping a lone top-level directory."""
    label = label or str(archive)
    dest.mkdir(parents=True)
    root = dest.resolve()
    try:
        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for name in zf.namelist():
                    if not _is_within(root, name):
                        raise AcquisitionError(
                            AcquisitionErrorKind.NOT_FOUND, f"unsafe path {name!r} in {label}"
                        )
                zf.extractall(dest)
        elif tarfile.is_tarfile(archive):
            with tarfile.open(archive) as tf:
                for member in tf.getmembers():
                    if not _is_within(root, member.name) or member.issym() or member.islnk():
                        raise AcquisitionError(
                            AcquisitionErrorKind.NOT_FOUND,
                            f"unsafe member {member.name!r} in {label}",
                        )
                if hasattr(tarfile, "data_filter"):
                    tf.extractall(dest, filter="data")
                else:
                    tf.extractall(dest)
        else:
            raise AcquisitionError(
                AcquisitionErrorKind.NOT_FOUND, f"unreadable release archive: {label}"
            )
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise AcquisitionError(
            AcquisitionErrorKind.NOT_FOUND, f"unreadable release archive {label}: {e}"
        ) from e

    entries = list(dest.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not (dest / MANIFEST_FILENAME).exists():
        inner = entries[0].rename(dest / f".unwrap-{uuid.uuid4().hex}")
        for child in list(inner.iterdir()):
            child.rename(dest / child.name)
        inner.rmdir()
