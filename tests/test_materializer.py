"""
Tests for git working copies

Uses real git against local repositories (file:// URLs); skipped when git
is not installed.
"""

import asyncio
import hashlib
import os
import shutil
import stat
import subprocess
import sys
from pathlib import Path

import pytest

from copycheck.anti_copying.fingerprint import fingerprint_repository
from copycheck.core.exceptions import CloneError
from copycheck.repository import GitMaterializer

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(*args: str, cwd: Path) -> None:
    subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


def make_repo(path: Path, files: dict[str, bytes]) -> str:
    """Create a committed repository and return its file:// URL."""
    path.mkdir(parents=True)
    git("init", "-q", cwd=path)
    for name, content in files.items():
        file_path = path / name
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)
    git("add", "-A", cwd=path)
    git("commit", "-q", "-m", "initial", cwd=path)
    return path.as_uri()


@pytest.fixture
def workdir(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def materializer(workdir):
    return GitMaterializer(clone_timeout=60, workdir_root=workdir)


@pytest.fixture
def repo_url(tmp_path):
    url = make_repo(
        tmp_path / "origin",
        {
            "zeta.py": b"z = 26\n",
            "alpha.py": b"a = 1\n",
            "pkg/mod.py": b"def f():\n    pass\n",
            ".gitignore": b"build/\n",
        },
    )
    origin = tmp_path / "origin"
    # Untracked and ignored files never reach the listing
    (origin / "scratch.txt").write_bytes(b"untracked")
    (origin / "build").mkdir()
    (origin / "build" / "out.bin").write_bytes(b"artifact")
    return url


class HangingProcess:
    """Stands in for a git process that never finishes."""

    def __init__(self, kill_error: Exception | None = None):
        self.kill_error = kill_error
        self.returncode = None
        self.killed = False
        self.waited = False

    async def communicate(self):
        await asyncio.sleep(30)

    def kill(self):
        self.killed = True
        if self.kill_error is not None:
            raise self.kill_error

    async def wait(self):
        self.waited = True
        return -9


@pytest.fixture
def hanging_process(monkeypatch):
    def _install(kill_error: Exception | None = None) -> HangingProcess:
        process = HangingProcess(kill_error)

        async def fake_exec(*args, **kwargs):
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
        return process
    return _install


class TestCheckout:
    @pytest.mark.asyncio
    async def test_lists_tracked_files_sorted(self, materializer, repo_url):
        async with materializer.checkout(repo_url) as working_copy:
            assert working_copy.files == (".gitignore", "alpha.py", "pkg/mod.py", "zeta.py")
            assert working_copy.file_count == 4
            assert (working_copy.root / "alpha.py").read_bytes() == b"a = 1\n"

    @pytest.mark.asyncio
    async def test_working_area_removed_after_scope(self, materializer, repo_url, workdir):
        async with materializer.checkout(repo_url) as working_copy:
            root = working_copy.root
            assert root.exists()
            assert root.parent == workdir
            assert root.name.startswith("copycheck_")

        assert not root.exists()
        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_working_area_removed_on_error(self, materializer, repo_url, workdir):
        with pytest.raises(RuntimeError):
            async with materializer.checkout(repo_url) as working_copy:
                root = working_copy.root
                raise RuntimeError("boom")

        assert not root.exists()
        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_each_checkout_gets_own_area(self, materializer, repo_url):
        async with materializer.checkout(repo_url) as first:
            async with materializer.checkout(repo_url) as second:
                assert first.root != second.root
                assert first.files == second.files

    @pytest.mark.asyncio
    async def test_materialize_returns_listing(self, materializer, repo_url, workdir):
        repository = await materializer.materialize(repo_url)

        assert repository.file_count == 4
        assert repository.files[1] == "alpha.py"
        assert repository.repo_url == repo_url
        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_fingerprint_of_clones_is_stable(self, materializer, repo_url):
        first = await fingerprint_repository(materializer, repo_url)
        second = await fingerprint_repository(materializer, repo_url)

        assert first.digest == second.digest
        assert first.vector == second.vector

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX symlinks")
    async def test_tracked_symlinks_are_not_followed(self, materializer, tmp_path):
        host_file = tmp_path / "host.txt"
        host_file.write_bytes(b"outside the repository")
        origin = tmp_path / "links"
        url = make_repo(origin, {"a.txt": b"hello"})
        os.symlink(host_file, origin / "host-link")
        os.symlink("/dev/zero", origin / "zero-link")
        git("add", "-A", cwd=origin)
        git("commit", "-q", "-m", "links", cwd=origin)

        first = await fingerprint_repository(materializer, url)
        host_file.write_bytes(b"changed on the host")
        second = await fingerprint_repository(materializer, url)

        expected = hashlib.sha256(b"hello" + os.fsencode(str(host_file)) + b"/dev/zero")
        assert first.digest == expected.digest()
        assert second.digest == first.digest
        assert first.skipped_files == ()
        assert first.file_count == 3


class TestCloneFailures:
    @pytest.mark.asyncio
    async def test_missing_repository(self, materializer, tmp_path, workdir):
        url = (tmp_path / "does-not-exist").as_uri()

        with pytest.raises(CloneError) as exc_info:
            async with materializer.checkout(url):
                pytest.fail("checkout should not yield")

        assert exc_info.value.repo_url == url
        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_empty_url(self, materializer):
        with pytest.raises(CloneError):
            await materializer.materialize("  ")

    @pytest.mark.asyncio
    async def test_option_like_url_is_not_an_option(self, materializer):
        with pytest.raises(CloneError):
            await materializer.materialize("--upload-pack=touch /tmp/pwned")

    @pytest.mark.asyncio
    async def test_missing_git_binary(self, tmp_path, repo_url):
        materializer = GitMaterializer(git_binary=str(tmp_path / "no-git"), workdir_root=tmp_path / "w")

        with pytest.raises(CloneError, match="could not run"):
            await materializer.materialize(repo_url)

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script")
    async def test_timeout(self, tmp_path, repo_url):
        slow_git = tmp_path / "slow-git"
        slow_git.write_text("#!/bin/sh\nexec sleep 5\n")
        slow_git.chmod(slow_git.stat().st_mode | stat.S_IEXEC)
        workdir = tmp_path / "w"
        materializer = GitMaterializer(
            git_binary=str(slow_git), clone_timeout=0.2, workdir_root=workdir
        )

        with pytest.raises(CloneError, match="timed out"):
            await materializer.materialize(repo_url)

        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_no_credential_prompt(self, materializer, monkeypatch):
        """Auth failures fail fast instead of waiting for a terminal prompt."""
        monkeypatch.delenv("GIT_ASKPASS", raising=False)
        monkeypatch.setitem(os.environ, "GIT_TERMINAL_PROMPT", "1")

        with pytest.raises(CloneError):
            await materializer.materialize("http://127.0.0.1:9/private/repo.git")


class TestProcessCleanup:
    @pytest.mark.asyncio
    async def test_timeout_when_process_already_gone(self, hanging_process, tmp_path):
        process = hanging_process(kill_error=ProcessLookupError())
        workdir = tmp_path / "w"
        materializer = GitMaterializer(clone_timeout=0.1, workdir_root=workdir)

        with pytest.raises(CloneError, match="timed out"):
            await materializer.materialize("https://git.example/a")

        assert process.killed
        assert process.waited
        assert list(workdir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_cancelled_clone_is_killed_and_reaped(self, hanging_process, tmp_path):
        process = hanging_process()
        workdir = tmp_path / "w"
        materializer = GitMaterializer(clone_timeout=60, workdir_root=workdir)

        task = asyncio.create_task(materializer.materialize("https://git.example/a"))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert process.killed
        assert process.waited
        assert list(workdir.iterdir()) == []
