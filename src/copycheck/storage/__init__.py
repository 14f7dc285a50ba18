"""Report and submission storage."""

from .database import Database, get_database
from .models import PlagiarismReportModel, SubmissionModel

__all__ = ["Database", "get_database", "PlagiarismReportModel", "SubmissionModel"]
