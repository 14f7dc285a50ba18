"""Content fingerprinting of repository snapshots.

A repository is reduced to a single SHA-256 digest over the bytes of its
tracked files (in canonical path order), which is then folded into a small
fixed-size vector for cheap vector-space comparison. Identical content gives
an identical digest and therefore an identical vector; the vector carries no
notion of partial similarity.
"""

import asyncio
import hashlib
import logging
import os
import stat
from collections.abc import Iterable
from pathlib import Path

from ..core.exceptions import FingerprintError
from ..core.protocols import Fingerprint, RepositoryFetcher, WorkingCopy

logger = logging.getLogger(__name__)

DEFAULT_DIMS = 64
READ_CHUNK_SIZE = 1024 * 1024


def compute_digest(root: Path, files: Iterable[str]) -> tuple[bytes, list[str]]:
    """Hash the raw bytes of every file, in the given order, into one context.

    Files that cannot be read are skipped rather than failing the digest.
    Symlinks contribute their target path, as stored by git, and are never
    followed. Anything else that is not a regular file is skipped.

    Args:
        root: Directory the paths are relative to
        files: Relative paths in canonical order

    Returns:
        (digest, skipped paths)
    """
    hasher = hashlib.sha256()
    skipped: list[str] = []

    for relative_path in files:
        path = root / relative_path
        try:
            mode = os.lstat(path).st_mode
            if stat.S_ISLNK(mode):
                hasher.update(os.fsencode(os.readlink(path)))
                continue
            if not stat.S_ISREG(mode):
                logger.debug(f"Skipping non-regular file {relative_path}")
                skipped.append(relative_path)
                continue
            with open(path, "rb") as f:
                while chunk := f.read(READ_CHUNK_SIZE):
                    hasher.update(chunk)
        except OSError as e:
            logger.debug(f"Skipping unreadable file {relative_path}: {e}")
            skipped.append(relative_path)

    return hasher.digest(), skipped


def digest_to_vector(digest: bytes, dims: int = DEFAULT_DIMS) -> list[float]:
    """Fold a digest into a `dims`-dimensional vector.

    Byte i contributes byte/255 to dimension i % dims; each dimension is then
    divided by the number of folding passes (len(digest) / dims, or 1 if that
    is zero).
    """
    if dims <= 0:
        raise ValueError(f"dims must be positive, got {dims}")

    vector = [0.0] * dims
    for index, byte_value in enumerate(digest):
        vector[index % dims] += byte_value / 255

    passes = len(digest) / dims or 1
    return [value / passes for value in vector]


def compute_fingerprint(working_copy: WorkingCopy, dims: int = DEFAULT_DIMS) -> Fingerprint:
    """Fingerprint a checked-out repository (blocking file I/O).

    Raises:
        FingerprintError: If the working copy root is gone
    """
    if not working_copy.root.is_dir():
        raise FingerprintError(
            f"Working copy of {working_copy.repo_url} not found at {working_copy.root}"
        )

    digest, skipped = compute_digest(working_copy.root, working_copy.files)

    if skipped:
        logger.warning(
            f"Skipped {len(skipped)}/{working_copy.file_count} unreadable files "
            f"in {working_copy.repo_url}"
        )

    return Fingerprint(
        digest=digest,
        vector=tuple(digest_to_vector(digest, dims)),
        file_count=working_copy.file_count,
        skipped_files=tuple(skipped),
    )


async def fingerprint_repository(
    fetcher: RepositoryFetcher,
    repo_url: str,
    dims: int = DEFAULT_DIMS,
) -> Fingerprint:
    """Check out a repository and fingerprint it before the working copy is released.

    Raises:
        CloneError: If the repository cannot be fetched
    """
    async with fetcher.checkout(repo_url) as working_copy:
        loop = asyncio.get_running_loop()
        fingerprint = await loop.run_in_executor(
            None, compute_fingerprint, working_copy, dims
        )

    logger.debug(f"Fingerprinted {repo_url}: {fingerprint.hexdigest[:16]}...")
    return fingerprint
