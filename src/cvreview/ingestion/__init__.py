"""Applicant record sources."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..runtime import CancellationToken, ProgressListener
from ..schemas import ApplicantRecord
from .remote import (
    AttachmentRef,
    FetchSummary,
    MailboxClient,
    MailboxSource,
    MailMessage,
    MessagePage,
    RemoteSource,
)
from .store import DocumentStore


@runtime_checkable
class RecordSource(Protocol):
    """Source of applicant records for one pipeline run.

    Implementations may block on network or disk, must check ``token``
    between units of work, and report progress through ``progress`` on a
    ``(current, total, message)`` basis.
    """

    def load_records(
        self,
        token: CancellationToken,
        progress: ProgressListener | None = None,
    ) -> list[ApplicantRecord]:
        """Return the applicant records to evaluate, in evaluation order."""

    def describe(self) -> str:
        """Return a short label used in logs."""


__all__ = [
    "AttachmentRef",
    "DocumentStore",
    "FetchSummary",
    "MailMessage",
    "MailboxClient",
    "MailboxSource",
    "MessagePage",
    "RecordSource",
    "RemoteSource",
]
