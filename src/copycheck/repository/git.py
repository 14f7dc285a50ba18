"""Git working copies for fingerprinting.

Every checkout gets its own temporary directory which is removed on every
exit path. Only a shallow, single-snapshot clone is made; history is
irrelevant for fingerprinting.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from pathlib import Path

from ..core.exceptions import CloneError
from ..core.protocols import MaterializedRepository, WorkingCopy

logger = logging.getLogger(__name__)


class GitMaterializer:
    """Clones repositories into isolated, ephemeral working areas.

    Example:
        materializer = GitMaterializer(clone_timeout=60)
        async with materializer.checkout(url) as working_copy:
            for path in working_copy.files:
                ...
    """

    def __init__(
        self,
        git_binary: str = "git",
        clone_timeout: float = 120.0,
        workdir_root: str | Path | None = None,
        workdir_prefix: str = "copycheck_",
    ):
        """Initialize the materializer.

        Args:
            git_binary: git executable to run
            clone_timeout: Seconds allowed for each git command
            workdir_root: Parent directory for working areas (system temp if None)
            workdir_prefix: Prefix of each working area directory name
        """
        self.git_binary = git_binary
        self.clone_timeout = clone_timeout
        self.workdir_root = Path(workdir_root) if workdir_root else None
        self.workdir_prefix = workdir_prefix

    @asynccontextmanager
    async def checkout(self, repo_url: str) -> AsyncIterator[WorkingCopy]:
        """Clone the repository and yield its tracked files in canonical order.

        Raises:
            CloneError: If the repository cannot be fetched or listed
        """
        if not repo_url or not repo_url.strip():
            raise CloneError(repo_url, "empty repository URL")

        if self.workdir_root is not None:
            self.workdir_root.mkdir(parents=True, exist_ok=True)
        temp_dir = Path(tempfile.mkdtemp(prefix=self.workdir_prefix, dir=self.workdir_root))

        try:
            await self._clone(repo_url, temp_dir)
            files = await self._list_tracked_files(repo_url, temp_dir)
            logger.debug(f"Checked out {repo_url}: {len(files)} tracked files")
            yield WorkingCopy(repo_url=repo_url, root=temp_dir, files=tuple(files))
        finally:
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: shutil.rmtree(temp_dir, ignore_errors=True)
            )

    async def materialize(self, repo_url: str) -> MaterializedRepository:
        """Fetch a repository and return its ordered file listing.

        The working area is already released when this returns.
        """
        async with self.checkout(repo_url) as working_copy:
            return MaterializedRepository(
                repo_url=repo_url,
                file_count=working_copy.file_count,
                files=working_copy.files,
            )

    async def _clone(self, repo_url: str, target_dir: Path) -> None:
        await self._run_git(
            repo_url,
            "clone",
            "--depth", "1",
            "--single-branch",
            "--no-tags",
            "--quiet",
            "--",
            repo_url,
            str(target_dir),
        )

    async def _list_tracked_files(self, repo_url: str, repo_dir: Path) -> list[str]:
        stdout = await self._run_git(repo_url, "ls-files", "-z", cwd=repo_dir)
        files = [os.fsdecode(entry) for entry in stdout.split(b"\0") if entry]
        return sorted(files)

    async def _run_git(self, repo_url: str, *args: str, cwd: Path | None = None) -> bytes:
        """Run a git command with a timeout, returning stdout.

        Raises:
            CloneError: On timeout, non-zero exit or missing git binary
        """
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

        try:
            process = await asyncio.create_subprocess_exec(
                self.git_binary,
                *args,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CloneError(repo_url, f"could not run {self.git_binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.clone_timeout,
            )
        except asyncio.TimeoutError:
            await _kill(process)
            raise CloneError(repo_url, f"git {args[0]} timed out after {self.clone_timeout}s")
        except asyncio.CancelledError:
            await _kill(process)
            raise

        if process.returncode != 0:
            stderr_text = stderr.decode(errors="replace").strip() if stderr else ""
            error_msg = stderr_text[:500] if stderr_text else f"exit code {process.returncode}"
            raise CloneError(repo_url, error_msg)

        return stdout


async def _kill(process: asyncio.subprocess.Process) -> None:
    # The process may have exited on its own since the last check
    with suppress(ProcessLookupError):
        process.kill()
    await process.wait()
