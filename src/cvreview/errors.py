"""Exception hierarchy for the review pipeline."""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for pipeline failures."""


class ConfigurationError(ReviewError):
    """Raised for invalid settings or missing external credentials."""


class JobSpecError(ConfigurationError, ValueError):
    """Raised when a job specification cannot be parsed."""


class SourcingError(ReviewError):
    """Raised when applicant documents cannot be obtained."""


class NoDocumentsError(SourcingError):
    """Raised when sourcing produced no applicant records."""


class NoMatchingMessagesError(SourcingError):
    """Raised when a mailbox search matched no messages at all."""

    def __init__(self, query: str):
        super().__init__(f"No messages found for query: {query}")
        self.query = query


class DocumentStoreError(SourcingError):
    """Raised when the document store cannot be read or cleared."""

    def __init__(self, message: str, failures: list[str] | None = None):
        super().__init__(message)
        self.failures = failures or []

    def __str__(self) -> str:
        if not self.failures:
            return self.args[0]
        return f"{self.args[0]}: {'; '.join(self.failures)}"


class EvaluationError(ReviewError):
    """Raised when a single applicant could not be evaluated."""


class EvaluatorCallError(EvaluationError):
    """Raised when the external evaluator call itself failed."""


class ResponseDecodeError(EvaluationError):
    """Raised when no score could be recovered from an evaluator response."""

    def __init__(self, message: str, response: str):
        super().__init__(f"{message}: {response}")
        self.response = response


class RunInProgressError(ReviewError):
    """Raised when a run is requested while another one is in flight."""


class NoResultsError(ReviewError):
    """Raised when results are requested before any run has completed."""


class RunCancelled(Exception):
    """Raised when the caller cancelled the run.

    Deliberately not a ``ReviewError`` so callers can tell a cancelled run
    apart from a failed one.
    """


__all__ = [
    "ReviewError",
    "ConfigurationError",
    "JobSpecError",
    "SourcingError",
    "NoDocumentsError",
    "NoMatchingMessagesError",
    "DocumentStoreError",
    "EvaluationError",
    "EvaluatorCallError",
    "ResponseDecodeError",
    "RunInProgressError",
    "NoResultsError",
    "RunCancelled",
]
