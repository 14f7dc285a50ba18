"""Shared value types and collaborator interfaces."""

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol


class ReportStatus(StrEnum):
    """Lifecycle of a plagiarism report: PENDING -> COMPLETED | FAILED."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ReportStatus.PENDING


@dataclass(frozen=True)
class Submission:
    """A submitted repository, owned by the surrounding application."""

    submission_id: str
    event_id: str
    repo_url: str


@dataclass(frozen=True)
class PeerSubmission:
    """Another submission of the same event."""

    submission_id: str
    repo_url: str


@dataclass(frozen=True)
class WorkingCopy:
    """Checked-out repository. Only valid inside the checkout scope.

    Attributes:
        repo_url: Where the repository was fetched from
        root: Temporary directory holding the checkout
        files: Tracked file paths relative to root, sorted
    """

    repo_url: str
    root: Path
    files: tuple[str, ...]

    @property
    def file_count(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class MaterializedRepository:
    """File listing of a repository snapshot (working area already released)."""

    repo_url: str
    file_count: int
    files: tuple[str, ...]


@dataclass(frozen=True)
class Fingerprint:
    """Content fingerprint of a repository snapshot.

    Attributes:
        digest: SHA-256 over all readable tracked files in canonical order
        vector: Fixed-size feature vector expanded from the digest
        file_count: Number of tracked files
        skipped_files: Tracked files that could not be read
    """

    digest: bytes
    vector: tuple[float, ...]
    file_count: int = 0
    skipped_files: tuple[str, ...] = ()

    @property
    def hexdigest(self) -> str:
        return self.digest.hex()

    @property
    def dims(self) -> int:
        return len(self.vector)


@dataclass(frozen=True)
class ProviderScore:
    """Similarity computed by a single provider."""

    similarity: float
    method: str
    details: Any = None


@dataclass
class SimilarityResult:
    """One peer entry of a report."""

    other_submission_id: str
    other_repo_url: str
    similarity: float
    details: Any = None
    method: str = "local"
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON shape."""
        data: dict[str, Any] = {
            "other_submission_id": self.other_submission_id,
            "other_repo_url": self.other_repo_url,
            "similarity": self.similarity,
            "method": self.method,
        }
        if self.details is not None:
            data["details"] = self.details
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimilarityResult":
        """Create from the stored JSON shape."""
        return cls(
            other_submission_id=data["other_submission_id"],
            other_repo_url=data["other_repo_url"],
            similarity=float(data.get("similarity", 0.0)),
            details=data.get("details"),
            method=data.get("method", "local"),
            error=data.get("error"),
        )


class RepositoryFetcher(Protocol):
    """Capability to obtain an isolated, temporary working copy of a repository."""

    def checkout(self, repo_url: str) -> AbstractAsyncContextManager[WorkingCopy]:
        """Fetch the repository; the working copy is removed when the scope exits."""
        ...


class SimilarityProvider(Protocol):
    """Scores a target fingerprint/repository against a peer repository."""

    name: str

    async def compare(
        self, target: Fingerprint, target_url: str, peer_url: str
    ) -> ProviderScore: ...


class SubmissionSource(Protocol):
    """Read access to the surrounding application's submissions."""

    async def get_submission(self, submission_id: str) -> Submission | None: ...

    async def list_peer_submissions(
        self, event_id: str, excluding_id: str
    ) -> list[PeerSubmission]: ...


class ReportStore(Protocol):
    """Persistence of report state transitions."""

    async def create_report(self, event_id: str, submission_id: str, repo_url: str) -> str: ...

    async def complete_report(
        self,
        report_id: str,
        similarities: list[SimilarityResult],
        skipped_files: int = 0,
    ) -> None: ...

    async def fail_report(self, report_id: str, error: str) -> None: ...

