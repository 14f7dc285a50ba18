"""SQLAlchemy models for submissions and plagiarism reports."""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..core.protocols import ReportStatus, SimilarityResult


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class SubmissionModel(Base):
    """A submitted repository (mirrors the surrounding application's record)."""

    __tablename__ = "submissions"
    __table_args__ = (Index("ix_submissions_event", "event_id"),)

    submission_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False)
    repo_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class PlagiarismReportModel(Base):
    """One similarity-check run for one target submission."""

    __tablename__ = "plagiarism_reports"
    __table_args__ = (
        Index("ix_reports_event", "event_id"),
        Index("ix_reports_submission", "submission_id"),
    )

    report_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False)
    submission_id: Mapped[str] = mapped_column(String(64), nullable=False)
    repo_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[ReportStatus] = mapped_column(
        Enum(ReportStatus, native_enum=False, length=16),
        default=ReportStatus.PENDING,
        nullable=False,
    )
    # Written once, in full, when the report completes
    similarities: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    skipped_files: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def get_similarities(self) -> list[SimilarityResult]:
        """Stored similarities as value objects, in stored (descending) order."""
        return [SimilarityResult.from_dict(item) for item in self.similarities or []]

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_id": self.report_id,
            "event_id": self.event_id,
            "submission_id": self.submission_id,
            "repo_url": self.repo_url,
            "status": self.status.value,
            "similarities": list(self.similarities or []),
            "error": self.error,
            "skipped_files": self.skipped_files,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
