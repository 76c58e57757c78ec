"""Tests for extension acquisition: source inference, local, release and git sources."""

from __future__ import annotations

import hashlib
import io
import json
import tarfile
import zipfile
from pathlib import Path

import pytest

from slashkit.extensions import acquire as acquire_mod
from slashkit.extensions import (
    MANIFEST_FILENAME,
    AcquisitionError,
    AcquisitionErrorKind,
    ExtensionAcquirer,
    ExtensionSource,
    infer_source,
)
from slashkit.extensions.acquire import extract_archive


@pytest.fixture
def acquirer(tmp_path):
    return ExtensionAcquirer(tmp_path / "staging")


def _manifest_bytes(name="myext", version="1.0.0"):
    return json.dumps({"name": name, "version": version}).encode()


def _tarball(path, members: dict[str, bytes]):
    with tarfile.open(path, "w:gz") as tf:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return path


class TestInferSource:
    def test_local_directory(self, tmp_path):
        (tmp_path / "ext").mkdir()
        src = infer_source("ext", cwd=tmp_path)
        assert src == ExtensionSource(type="local", source=str((tmp_path / "ext").resolve()))

    def test_github_shorthand(self, tmp_path):
        assert infer_source("owner/repo", cwd=tmp_path) == ExtensionSource("git", "owner/repo")

    def test_github_shorthand_with_ref(self, tmp_path):
        src = infer_source("owner/repo#v1.2.0", cwd=tmp_path)
        assert (src.type, src.source, src.ref) == ("git", "owner/repo", "v1.2.0")

    def test_explicit_ref_wins(self, tmp_path):
        src = infer_source("git@github.com:o/r.git", "main", cwd=tmp_path)
        assert (src.type, src.ref) == ("git", "main")

    def test_archive_url(self, tmp_path):
        src = infer_source("https://example.com/ext-1.0.0.tar.gz", cwd=tmp_path)
        assert src.type == "release"

    def test_git_url(self, tmp_path):
        assert infer_source("https://example.com/o/r.git", cwd=tmp_path).type == "git"


class TestLocal:
    @pytest.mark.asyncio
    async def test_copies_into_staging(self, acquirer, tmp_path):
        src = tmp_path / "ext"
        src.mkdir()
        (src / MANIFEST_FILENAME).write_bytes(_manifest_bytes())
        (src / "commands").mkdir()
        (src / "commands" / "hi.md").write_text("hello")

        staged = await acquirer.acquire(ExtensionSource("local", str(src)))

        assert staged.path.parent == acquirer.staging_root
        assert staged.manifest.name == "myext"
        assert (staged.path / "commands" / "hi.md").read_text() == "hello"
        staged.cleanup()
        assert not staged.path.exists()

    @pytest.mark.asyncio
    async def test_missing_manifest(self, acquirer, tmp_path):
        src = tmp_path / "ext"
        src.mkdir()
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("local", str(src)))
        assert exc.value.kind == AcquisitionErrorKind.NOT_FOUND
        assert list(acquirer.staging_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unsupported_type(self, acquirer):
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("ftp", "ftp://x"))
        assert exc.value.kind == AcquisitionErrorKind.UNSUPPORTED_SOURCE


class TestRelease:
    @pytest.mark.asyncio
    async def test_download_unwraps_top_level_dir(self, acquirer, tmp_path):
        archive = _tarball(
            tmp_path / "ext.tar.gz",
            {"myext-1.0.0/" + MANIFEST_FILENAME: _manifest_bytes(), "myext-1.0.0/README": b"x"},
        )
        digest = hashlib.sha256(archive.read_bytes()).hexdigest()

        staged = await acquirer.acquire(
            ExtensionSource("release", archive.as_uri(), sha256=digest.upper())
        )

        assert staged.manifest.name == "myext"
        assert (staged.path / "README").is_file()
        assert sorted(p.name for p in staged.path.iterdir()) == sorted([MANIFEST_FILENAME, "README"])

    @pytest.mark.asyncio
    async def test_checksum_mismatch(self, acquirer, tmp_path):
        archive = _tarball(tmp_path / "ext.tar.gz", {MANIFEST_FILENAME: _manifest_bytes()})
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("release", archive.as_uri(), sha256="0" * 64))
        assert exc.value.kind == AcquisitionErrorKind.CHECKSUM_MISMATCH
        assert list(acquirer.staging_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_archive(self, acquirer, tmp_path):
        url = (tmp_path / "missing.tar.gz").as_uri()
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("release", url))
        assert exc.value.kind == AcquisitionErrorKind.NOT_FOUND


class TestExtractArchive:
    def test_zip(self, tmp_path):
        archive = tmp_path / "ext.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr(MANIFEST_FILENAME, _manifest_bytes())
        extract_archive(archive, tmp_path / "out")
        assert (tmp_path / "out" / MANIFEST_FILENAME).is_file()

    def test_rejects_path_traversal(self, tmp_path):
        archive = tmp_path / "evil.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("../evil.txt", b"x")
        with pytest.raises(AcquisitionError, match="unsafe"):
            extract_archive(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()

    def test_rejects_garbage(self, tmp_path):
        archive = tmp_path / "ext.tar.gz"
        archive.write_bytes(b"not an archive")
        with pytest.raises(AcquisitionError):
            extract_archive(archive, tmp_path / "out")


class FakeProc:
    def __init__(self, code, stderr=b""):
        self.returncode = None
        self._code = code
        self._stderr = stderr

    async def communicate(self):
        self.returncode = self._code
        return b"", self._stderr

    def kill(self):
        pass

    async def wait(self):
        return self.returncode


class TestGit:
    @pytest.fixture
    def git_calls(self, monkeypatch):
        calls = []
        codes = {"clone": 0, "checkout": 0}

        async def _fake_exec(program, *args, **kwargs):
            calls.append(list(args))
            if "clone" in args:
                dest = args[-1]
                Path(dest).mkdir(parents=True)
                (Path(dest) / MANIFEST_FILENAME).write_bytes(_manifest_bytes())
                return FakeProc(codes["clone"], b"fatal: repository not found")
            return FakeProc(codes["checkout"], b"error: pathspec")

        monkeypatch.setattr(acquire_mod.asyncio, "create_subprocess_exec", _fake_exec)
        return calls, codes

    @pytest.mark.asyncio
    async def test_shallow_clone_without_ref(self, acquirer, git_calls):
        calls, _ = git_calls
        staged = await acquirer.acquire(ExtensionSource("git", "owner/repo"))
        assert staged.manifest.name == "myext"
        assert calls[0][:4] == ["clone", "--depth", "1", "https://github.com/owner/repo.git"]

    @pytest.mark.asyncio
    async def test_checkout_ref(self, acquirer, git_calls):
        calls, _ = git_calls
        await acquirer.acquire(ExtensionSource("git", "owner/repo", ref="v2"))
        assert "--depth" not in calls[0]
        assert calls[1][-2:] == ["checkout", "v2"]

    @pytest.mark.asyncio
    async def test_clone_failure(self, acquirer, git_calls):
        _, codes = git_calls
        codes["clone"] = 128
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("git", "owner/repo"))
        assert exc.value.kind == AcquisitionErrorKind.NETWORK_FAILURE
        assert "repository not found" in str(exc.value)

    @pytest.mark.asyncio
    async def test_unknown_ref(self, acquirer, git_calls):
        _, codes = git_calls
        codes["checkout"] = 1
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("git", "owner/repo", ref="nope"))
        assert exc.value.kind == AcquisitionErrorKind.NOT_FOUND
        assert list(acquirer.staging_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_git_not_installed(self, acquirer, monkeypatch):
        async def _missing(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(acquire_mod.asyncio, "create_subprocess_exec", _missing)
        with pytest.raises(AcquisitionError) as exc:
            await acquirer.acquire(ExtensionSource("git", "owner/repo"))
        assert exc.value.kind == AcquisitionErrorKind.UNSUPPORTED_SOURCE
