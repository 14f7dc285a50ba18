"""Database abstraction layer.

Implements the submission lookup and report persistence used by the
plagiarism detector. A report row is created PENDING and written exactly
once more, to COMPLETED or FAILED.
"""

import logging

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config import get_config
from ..core.exceptions import PersistenceError, ReportStateError
from ..core.protocols import PeerSubmission, ReportStatus, SimilarityResult, Submission
from .models import Base, PlagiarismReportModel, SubmissionModel

logger = logging.getLogger(__name__)


class Database:
    """Async database interface."""

    def __init__(self, url: str | None = None):
        if url is None:
            url = get_config().database_url
        self.engine = create_async_engine(url, echo=False)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()

    # Submission operations

    async def save_submission(
        self,
        event_id: str,
        repo_url: str,
        submission_id: str | None = None,
    ) -> Submission:
        """Register a submission."""
        model = SubmissionModel(event_id=event_id, repo_url=repo_url)
        if submission_id is not None:
            model.submission_id = submission_id
        try:
            async with self.session_factory() as session:
                session.add(model)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save submission: {e}") from e
        return Submission(
            submission_id=model.submission_id,
            event_id=model.event_id,
            repo_url=model.repo_url,
        )

    async def get_submission(self, submission_id: str) -> Submission | None:
        """Get submission by ID."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SubmissionModel).where(SubmissionModel.submission_id == submission_id)
            )
            model = result.scalar_one_or_none()
        if model is None:
            return None
        return Submission(
            submission_id=model.submission_id,
            event_id=model.event_id,
            repo_url=model.repo_url,
        )

    async def list_peer_submissions(
        self, event_id: str, excluding_id: str
    ) -> list[PeerSubmission]:
        """All other submissions of an event, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(SubmissionModel.submission_id, SubmissionModel.repo_url)
                .where(
                    SubmissionModel.event_id == event_id,
                    SubmissionModel.submission_id != excluding_id,
                )
                .order_by(SubmissionModel.created_at, SubmissionModel.submission_id)
            )
            return [
                PeerSubmission(submission_id=row.submission_id, repo_url=row.repo_url)
                for row in result.all()
            ]

    # Report operations

    async def create_report(self, event_id: str, submission_id: str, repo_url: str) -> str:
        """Create a PENDING report and return its ID."""
        report = PlagiarismReportModel(
            event_id=event_id,
            submission_id=submission_id,
            repo_url=repo_url,
            status=ReportStatus.PENDING,
            similarities=[],
        )
        try:
            async with self.session_factory() as session:
                session.add(report)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create report: {e}") from e
        return report.report_id

    async def complete_report(
        self,
        report_id: str,
        similarities: list[SimilarityResult],
        skipped_files: int = 0,
    ) -> None:
        """Write the final, sorted similarities and mark the report COMPLETED."""
        await self._finish_report(
            report_id,
            ReportStatus.COMPLETED,
            similarities=[result.to_dict() for result in similarities],
            skipped_files=skipped_files,
        )

    async def fail_report(self, report_id: str, error: str) -> None:
        """Mark the report FAILED with the captured error."""
        await self._finish_report(report_id, ReportStatus.FAILED, error=error)

    async def _finish_report(
        self,
        report_id: str,
        status: ReportStatus,
        similarities: list[dict] | None = None,
        error: str | None = None,
        skipped_files: int = 0,
    ) -> None:
        """Apply the single terminal transition of a report in one commit.

        Raises:
            PersistenceError: If the report doesn't exist or the write fails
            ReportStateError: If the report is already terminal
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(PlagiarismReportModel).where(
                        PlagiarismReportModel.report_id == report_id
                    )
                )
                report = result.scalar_one_or_none()
                if report is None:
                    raise PersistenceError(f"Report not found: {report_id}")
                if report.status.is_terminal:
                    raise ReportStateError(report_id, report.status.value)

                report.status = status
                if similarities is not None:
                    report.similarities = similarities
                if error is not None:
                    report.error = error
                report.skipped_files = skipped_files
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update report {report_id}: {e}") from e

        logger.info(f"Report {report_id} -> {status.value}")

    async def get_report(self, report_id: str) -> PlagiarismReportModel | None:
        """Get report by ID."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlagiarismReportModel).where(PlagiarismReportModel.report_id == report_id)
            )
            return result.scalar_one_or_none()

    async def list_reports(
        self,
        event_id: str | None = None,
        submission_id: str | None = None,
        status: ReportStatus | None = None,
    ) -> list[PlagiarismReportModel]:
        """List reports matching the filters, newest first."""
        async with self.session_factory() as session:
            query = select(PlagiarismReportModel)
            if event_id is not None:
                query = query.where(PlagiarismReportModel.event_id == event_id)
            if submission_id is not None:
                query = query.where(PlagiarismReportModel.submission_id == submission_id)
            if status is not None:
                query = query.where(PlagiarismReportModel.status == status)
            result = await session.execute(query.order_by(desc(PlagiarismReportModel.created_at)))
            return list(result.scalars().all())


# Global instance
_database: Database | None = None


async def get_database() -> Database:
    """Get or create global database instance."""
    global _database
    if _database is None:
        _database = Database()
        await _database.initialize()
    return _database
