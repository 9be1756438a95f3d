"""Remote mailbox sourcing of applicant documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from ..errors import NoMatchingMessagesError, RunCancelled, SourcingError
from ..retry import call_with_retry, linear_backoff
from ..runtime import CancellationToken, ProgressListener
from ..schemas import ApplicantRecord
from .store import DocumentStore

UNKNOWN_SENDER = "Unknown"

LISTING_SHARE = 20


@dataclass(frozen=True)
class MessagePage:
    message_ids: list[str]
    next_page_token: str | None = None


@dataclass(frozen=True)
class AttachmentRef:
    filename: str
    attachment_id: str


@dataclass(frozen=True)
class MailMessage:
    message_id: str
    sender: str | None
    attachments: list[AttachmentRef] = field(default_factory=list)


@runtime_checkable
class MailboxClient(Protocol):
    """Paginated search-and-fetch API of a remote mailbox."""

    def list_messages(
        self,
        query: str,
        *,
        page_token: str | None = None,
        max_results: int = 100,
    ) -> MessagePage:
        """Return one page of message ids matching ``query``."""

    def get_message(self, message_id: str) -> MailMessage:
        """Return sender and attachment references of a message."""

    def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Return the decoded attachment payload."""


@dataclass
class FetchSummary:
    """Outcome of one mailbox fetch."""

    messages: int = 0
    processed: int = 0
    files: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _clean_name(value: str) -> str:
    return "".join(ch for ch in value if ch.isalnum() or ch in "-.").strip(".")


def parse_sender_name(header: str | None) -> str:
    """Derive a filename-safe sender name from a ``From`` header.

    ``"Jane Doe <jane@example.com>"`` gives ``JaneDoe``; a bare address
    gives its local part; anything else gives ``Unknown``.
    """
    if not header:
        return UNKNOWN_SENDER
    value = header.strip()
    address = value
    bracket = value.find("<")
    if bracket >= 0:
        display = _clean_name(value[:bracket])
        if display:
            return display
        address = value[bracket + 1 :].rstrip(">")
    local, at, _ = address.partition("@")
    if at and local:
        cleaned = _clean_name(local)
        if cleaned:
            return cleaned
    return UNKNOWN_SENDER


def rename_attachment(sender: str, filename: str) -> str:
    """Rename an attachment to the ``<Sender>_<Kind><ext>`` store convention."""
    original = Path(filename)
    stem = original.stem.lower()
    ext = original.suffix
    if "cv" in stem or "resume" in stem:
        return f"{sender}_CV{ext}"
    if "cover" in stem or "letter" in stem:
        return f"{sender}_CoverLetter{ext}"
    return f"{sender}_{original.name}"


def subject_query(subject: str) -> str:
    """Build the mailbox query for messages with attachments by subject."""
    cleaned = subject.strip().replace('"', "")
    return f'subject:"{cleaned}" has:attachment'


class RemoteSource:
    """Download applicant attachments from a mailbox into a DocumentStore."""

    def __init__(
        self,
        client: MailboxClient,
        store: DocumentStore,
        *,
        page_size: int = 100,
        max_attempts: int = 3,
        backoff_unit_seconds: float = 1.0,
    ) -> None:
        self._client = client
        self._store = store
        self._page_size = page_size
        self._max_attempts = max_attempts
        self._backoff_unit = backoff_unit_seconds
        self._logger = structlog.get_logger(__name__)

    def fetch(
        self,
        query: str,
        token: CancellationToken,
        progress: ProgressListener | None = None,
    ) -> FetchSummary:
        report = progress or _ignore_progress
        report(0, 100, "Listing emails...")

        message_ids = self._list_all(query, token, report)
        if not message_ids:
            raise NoMatchingMessagesError(query)

        summary = FetchSummary(messages=len(message_ids))
        self._logger.info("remote.listed", query=query, messages=len(message_ids))
        report(LISTING_SHARE, 100, f"Processing {len(message_ids)} emails...")

        total = len(message_ids)
        for index, message_id in enumerate(message_ids):
            token.raise_if_cancelled()
            report(
                LISTING_SHARE + (100 - LISTING_SHARE) * index // total,
                100,
                f"Processing email {index + 1}/{total}",
            )
            try:
                files = call_with_retry(
                    lambda: self._process_message(message_id),
                    attempts=self._max_attempts,
                    wait=linear_backoff(self._backoff_unit),
                    token=token,
                    on_retry=lambda attempt, exc, delay: self._logger.info(
                        "remote.message_retry",
                        message_id=message_id,
                        attempt=attempt,
                        delay=delay,
                        error=str(exc),
                    ),
                )
            except RunCancelled:
                raise
            except Exception as exc:  # noqa: BLE001 - one bad message must not abort the fetch
                self._logger.warning(
                    "remote.message_failed",
                    message_id=message_id,
                    attempts=self._max_attempts,
                    error=str(exc),
                )
                summary.skipped.append(message_id)
                continue
            summary.processed += 1
            summary.files.extend(files)

        report(100, 100, f"Downloaded {len(summary.files)} attachments")
        self._logger.info(
            "remote.fetched",
            messages=summary.messages,
            processed=summary.processed,
            files=len(summary.files),
            skipped=len(summary.skipped),
        )
        return summary

    def _list_all(
        self,
        query: str,
        token: CancellationToken,
        report: ProgressListener,
    ) -> list[str]:
        message_ids: list[str] = []
        page_token: str | None = None
        while True:
            token.raise_if_cancelled()
            try:
                page = self._client.list_messages(
                    query,
                    page_token=page_token,
                    max_results=self._page_size,
                )
            except Exception as exc:  # noqa: BLE001
                raise SourcingError(f"Unable to retrieve messages: {exc}") from exc

            message_ids.extend(page.message_ids)
            if not page.next_page_token:
                return message_ids
            page_token = page.next_page_token

            # Estimate only: the number of pages is unknown until listing ends.
            listed = len(message_ids)
            report(
                LISTING_SHARE * listed // (listed + self._page_size),
                100,
                f"Listed {listed} emails...",
            )

    def _process_message(self, message_id: str) -> list[Path]:
        message = self._client.get_message(message_id)
        sender = parse_sender_name(message.sender)
        written: list[Path] = []
        for attachment in message.attachments:
            if not attachment.filename or not attachment.attachment_id:
                continue
            payload = self._client.get_attachment(message_id, attachment.attachment_id)
            filename = rename_attachment(sender, attachment.filename)
            written.append(self._store.save(filename, payload))
            self._logger.info("remote.downloaded", message_id=message_id, filename=filename)
        if not written:
            self._logger.info("remote.no_attachments", message_id=message_id)
        return written


class MailboxSource:
    """Record source that refreshes the store from a mailbox subject search."""

    def __init__(self, remote: RemoteSource, store: DocumentStore, subject: str):
        self._remote = remote
        self._store = store
        self._subject = subject

    @property
    def query(self) -> str:
        return subject_query(self._subject)

    def load_records(
        self,
        token: CancellationToken,
        progress: ProgressListener | None = None,
    ) -> list[ApplicantRecord]:
        token.raise_if_cancelled()
        self._store.clear()
        self._remote.fetch(self.query, token, progress)
        token.raise_if_cancelled()
        return self._store.list_records()

    def describe(self) -> str:
        return f"mailbox:{self.query}"


def _ignore_progress(current: int, total: int, message: str) -> None:
    return None


__all__ = [
    "AttachmentRef",
    "FetchSummary",
    "MailMessage",
    "MailboxClient",
    "MailboxSource",
    "MessagePage",
    "RemoteSource",
    "parse_sender_name",
    "rename_attachment",
    "subject_query",
]
