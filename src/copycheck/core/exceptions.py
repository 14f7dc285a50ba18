"""Error types raised by the similarity pipeline."""


class CopyCheckError(Exception):
    """Base error for copycheck."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class SubmissionNotFoundError(CopyCheckError, LookupError):
    """Target submission does not exist (no report is created)."""

    def __init__(self, submission_id: str, event_id: str | None = None):
        self.submission_id = submission_id
        self.event_id = event_id
        if event_id is None:
            message = f"Submission not found: {submission_id}"
        else:
            message = f"Submission not found in event {event_id}: {submission_id}"
        super().__init__(message)


class CloneError(CopyCheckError):
    """Repository fetch failed (unreachable, auth failure, timeout)."""

    def __init__(self, repo_url: str, reason: str):
        self.repo_url = repo_url
        self.reason = reason
        super().__init__(f"Failed to clone {repo_url}: {reason}")


class OracleError(CopyCheckError):
    """External similarity service failed or returned an invalid payload."""


class FingerprintError(CopyCheckError):
    """Working copy could not be fingerprinted."""


class PersistenceError(CopyCheckError):
    """The report store rejected a read or write."""


class ReportStateError(PersistenceError):
    """Attempt to write a report that already reached a terminal state."""

    def __init__(self, report_id: str, status: str):
        self.report_id = report_id
        self.status = status
        super().__init__(f"Report {report_id} is already {status}")


class CheckFailedError(CopyCheckError):
    """The target submission could not be fingerprinted; its report is FAILED."""

    def __init__(self, report_id: str, reason: str):
        self.report_id = report_id
        self.reason = reason
        super().__init__(f"Plagiarism check {report_id} failed: {reason}")
