"""Plagiarism check pipeline for one submission against its event peers.

Flow:
1. Look up the target submission (missing -> SubmissionNotFoundError, no report)
2. Create a PENDING report
3. Fingerprint the target (failure -> report FAILED, CheckFailedError)
4. Score every peer concurrently, bounded by max_concurrency
5. Sort by similarity and write the COMPLETED report in one go
"""

import asyncio
import logging

from ..config import get_config
from ..core.exceptions import CheckFailedError, SubmissionNotFoundError
from ..core.protocols import (
    Fingerprint,
    PeerSubmission,
    ReportStore,
    RepositoryFetcher,
    SimilarityResult,
    SubmissionSource,
)
from ..repository import GitMaterializer
from ..storage.database import get_database
from .fingerprint import DEFAULT_DIMS, fingerprint_repository
from .similarity import SimilarityScorer, build_similarity_provider

logger = logging.getLogger(__name__)


def rank_results(results: list[SimilarityResult]) -> list[SimilarityResult]:
    """Sort by similarity, highest first; ties keep their input order."""
    return sorted(results, key=lambda result: result.similarity, reverse=True)


class PlagiarismDetector:
    """Runs plagiarism checks and drives the report lifecycle.

    Each run owns the report it creates; re-running for the same submission
    creates a new, independent report.
    """

    def __init__(
        self,
        submissions: SubmissionSource,
        reports: ReportStore,
        fetcher: RepositoryFetcher,
        scorer: SimilarityScorer,
        dims: int = DEFAULT_DIMS,
        max_concurrency: int = 4,
    ):
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self.submissions = submissions
        self.reports = reports
        self.fetcher = fetcher
        self.scorer = scorer
        self.dims = dims
        self.max_concurrency = max_concurrency

    async def run(self, event_id: str, submission_id: str) -> str:
        """Check one submission against every other submission of its event.

        Returns:
            ID of the COMPLETED report

        Raises:
            SubmissionNotFoundError: Target doesn't exist in the event (no report created)
            CheckFailedError: Target couldn't be fetched/fingerprinted (report FAILED)
            PersistenceError: The report store rejected a write
        """
        submission = await self.submissions.get_submission(submission_id)
        if submission is None or submission.event_id != event_id:
            raise SubmissionNotFoundError(submission_id, event_id)

        report_id = await self.reports.create_report(
            event_id, submission_id, submission.repo_url
        )
        logger.info(f"Plagiarism check {report_id} started for {submission_id} ({event_id})")

        try:
            target = await fingerprint_repository(self.fetcher, submission.repo_url, self.dims)
        except Exception as e:
            logger.error(f"Plagiarism check {report_id}: target {submission.repo_url} failed: {e}")
            await self.reports.fail_report(report_id, str(e))
            raise CheckFailedError(report_id, str(e)) from e

        peers = await self.submissions.list_peer_submissions(event_id, submission_id)
        results = await self.compare_peers(target, submission.repo_url, peers)
        ranked = rank_results(results)

        await self.reports.complete_report(
            report_id, ranked, skipped_files=len(target.skipped_files)
        )

        failed = sum(1 for result in ranked if result.error is not None)
        logger.info(
            f"Plagiarism check {report_id} completed: {len(ranked)} peers, {failed} failed"
        )
        return report_id

    async def compare_peers(
        self,
        target: Fingerprint,
        target_url: str,
        peers: list[PeerSubmission],
    ) -> list[SimilarityResult]:
        """Score all peers concurrently; results are in peer order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def score_peer(peer: PeerSubmission) -> SimilarityResult:
            async with semaphore:
                return await self.scorer.score(target, target_url, peer)

        return list(await asyncio.gather(*(score_peer(peer) for peer in peers)))


# Global detector instance
_detector: PlagiarismDetector | None = None


async def get_detector() -> PlagiarismDetector:
    """Get or create the global detector instance."""
    global _detector
    if _detector is None:
        config = get_config()
        database = await get_database()
        fetcher = GitMaterializer(
            git_binary=config.git_binary,
            clone_timeout=config.clone_timeout,
            workdir_root=config.workdir_root,
            workdir_prefix=config.workdir_prefix,
        )
        _detector = PlagiarismDetector(
            submissions=database,
            reports=database,
            fetcher=fetcher,
            scorer=SimilarityScorer(build_similarity_provider(config, fetcher)),
            dims=config.vector_dims,
            max_concurrency=config.max_concurrency,
        )
    return _detector


async def run_plagiarism_check(event_id: str, submission_id: str) -> str:
    """Run a plagiarism check with the configured detector; returns the report ID."""
    detector = await get_detector()
    return await detector.run(event_id, submission_id)
