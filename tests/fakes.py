"""Test doubles shared by the test modules."""

import asyncio
import hashlib
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

from copycheck.anti_copying.fingerprint import digest_to_vector
from copycheck.core.exceptions import CloneError
from copycheck.core.protocols import WorkingCopy


class FakeFetcher:
    """In-memory RepositoryFetcher.

    repos maps a URL to {path: content}; a content of None lists the path
    without writing it (an unreadable tracked file). Unknown URLs fail with
    CloneError.
    """

    def __init__(self, base_dir: Path, repos: dict[str, dict[str, bytes | None]] | None = None):
        self.base_dir = base_dir
        self.repos = dict(repos or {})
        self.calls: list[str] = []
        self.roots: list[Path] = []
        self.active = 0
        self.max_active = 0

    @asynccontextmanager
    async def checkout(self, repo_url: str):
        self.calls.append(repo_url)
        if repo_url not in self.repos:
            raise CloneError(repo_url, "repository not found")

        files = self.repos[repo_url]
        root = Path(tempfile.mkdtemp(dir=self.base_dir))
        self.roots.append(root)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for path, content in files.items():
                if content is None:
                    continue
                file_path = root / path
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_bytes(content)
            await asyncio.sleep(0.01)
            yield WorkingCopy(repo_url=repo_url, root=root, files=tuple(sorted(files)))
        finally:
            self.active -= 1
            shutil.rmtree(root, ignore_errors=True)


def expected_vector(*contents: bytes, dims: int = 64) -> list[float]:
    """Vector of a repository whose sorted files hold these contents."""
    return digest_to_vector(hashlib.sha256(b"".join(contents)).digest(), dims)
