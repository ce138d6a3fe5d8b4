"""Exception types shared across the analysis pipeline."""
from typing import Optional


class PerfReportError(Exception):
    """Base class for all pipeline errors."""


class AuditEngineError(PerfReportError):
    """The audit engine could not produce a measurement run. Always fatal."""


class TextServiceError(PerfReportError):
    """A text-service call failed. Recoverable per finding."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(TextServiceError):
    """The text service answered HTTP 429; the call may be retried."""

    def __init__(self, message: str = "Rate limit reached", status_code: int = 429):
        super().__init__(message, status_code=status_code)


class StorageError(PerfReportError):
    """Persisting the final report failed. Always fatal."""


class PipelineCancelled(PerfReportError):
    """The caller cancelled the run (deadline or explicit signal)."""
