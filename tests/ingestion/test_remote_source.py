from __future__ import annotations

from pathlib import Path

import pytest

from cvreview.errors import NoMatchingMessagesError, RunCancelled, SourcingError
from cvreview.ingestion import (
    AttachmentRef,
    DocumentStore,
    MailboxSource,
    MailMessage,
    MessagePage,
    RemoteSource,
)
from cvreview.ingestion.remote import parse_sender_name, rename_attachment, subject_query
from cvreview.runtime import CancellationToken


class FakeMailbox:
    """In-memory mailbox with paged listing and scripted failures."""

    def __init__(self, messages: dict[str, MailMessage], payloads: dict[str, bytes], *, page_size: int = 2) -> None:
        self._messages = messages
        self._payloads = payloads
        self._page_size = page_size
        self.failures: dict[str, int] = {}
        self.list_calls: list[str | None] = []
        self.get_calls: list[str] = []

    def list_messages(self, query: str, *, page_token: str | None = None, max_results: int = 100) -> MessagePage:
        self.list_calls.append(page_token)
        ids = sorted(self._messages)
        start = int(page_token or 0)
        end = start + self._page_size
        next_token = str(end) if end < len(ids) else None
        return MessagePage(message_ids=ids[start:end], next_page_token=next_token)

    def get_message(self, message_id: str) -> MailMessage:
        self.get_calls.append(message_id)
        remaining = self.failures.get(message_id, 0)
        if remaining:
            self.failures[message_id] = remaining - 1
            raise ConnectionError("transient failure")
        return self._messages[message_id]

    def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        return self._payloads[attachment_id]


def message(message_id: str, sender: str, *attachments: tuple[str, str]) -> MailMessage:
    return MailMessage(
        message_id=message_id,
        sender=sender,
        attachments=[AttachmentRef(filename=name, attachment_id=ref) for name, ref in attachments],
    )


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(tmp_path / "uploads")


def make_source(mailbox: FakeMailbox, store: DocumentStore) -> RemoteSource:
    return RemoteSource(mailbox, store, page_size=2, max_attempts=3, backoff_unit_seconds=0)


def test_parse_sender_name():
    assert parse_sender_name("Jane Doe <jane@example.com>") == "JaneDoe"
    assert parse_sender_name('"O\'Brien, Pat" <pat@example.com>') == "OBrienPat"
    assert parse_sender_name("<john.smith@example.com>") == "john.smith"
    assert parse_sender_name("john_smith@example.com") == "johnsmith"
    assert parse_sender_name("not an address") == "Unknown"
    assert parse_sender_name(None) == "Unknown"


def test_rename_attachment():
    assert rename_attachment("Jane", "My Resume.pdf") == "Jane_CV.pdf"
    assert rename_attachment("Jane", "cv-final.txt") == "Jane_CV.txt"
    assert rename_attachment("Jane", "CoverLetter.md") == "Jane_CoverLetter.md"
    assert rename_attachment("Jane", "portfolio.pdf") == "Jane_portfolio.pdf"


def test_subject_query():
    assert subject_query("Job Application") == 'subject:"Job Application" has:attachment'
    assert subject_query("Backend") == 'subject:"Backend" has:attachment'
    assert subject_query(' Say "hi" ') == 'subject:"Say hi" has:attachment'


def test_fetch_paginates_and_downloads_attachments(store: DocumentStore):
    mailbox = FakeMailbox(
        {
            "m1": message("m1", "Alice Smith <alice@example.com>", ("resume.txt", "a1"), ("cover.txt", "a2")),
            "m2": message("m2", "bob@example.com", ("CV.txt", "b1")),
            "m3": message("m3", "Carol <carol@example.com>", ("cv.txt", "c1")),
        },
        {"a1": b"Alice CV", "a2": b"Alice letter", "b1": b"Bob CV", "c1": b"Carol CV"},
    )
    events: list[int] = []

    summary = make_source(mailbox, store).fetch(
        "subject:x has:attachment",
        CancellationToken(),
        lambda current, total, text: events.append(current),
    )

    assert mailbox.list_calls == [None, "2"]
    assert summary.messages == 3
    assert summary.processed == 3
    assert sorted(path.name for path in summary.files) == [
        "AliceSmith_CV.txt",
        "AliceSmith_CoverLetter.txt",
        "Carol_CV.txt",
        "bob_CV.txt",
    ]
    assert events == sorted(events)
    assert events[-1] == 100

    records = store.list_records()
    assert [record.name for record in records] == ["AliceSmith", "Carol", "bob"]
    assert records[0].cover_letter_text == "Alice letter"


def test_message_without_attachments_is_not_an_error(store: DocumentStore):
    mailbox = FakeMailbox({"m1": message("m1", "Dan <dan@example.com>")}, {})

    summary = make_source(mailbox, store).fetch("q", CancellationToken())

    assert summary.processed == 1
    assert summary.files == []
    assert mailbox.get_calls == ["m1"]


def test_zero_messages_is_terminal(store: DocumentStore):
    mailbox = FakeMailbox({}, {})

    with pytest.raises(NoMatchingMessagesError) as excinfo:
        make_source(mailbox, store).fetch("subject:nothing has:attachment", CancellationToken())

    assert excinfo.value.query == "subject:nothing has:attachment"


def test_listing_failure_is_sourcing_error(store: DocumentStore):
    class BrokenMailbox(FakeMailbox):
        def list_messages(self, query, *, page_token=None, max_results=100):
            raise ConnectionError("offline")

    with pytest.raises(SourcingError, match="offline"):
        make_source(BrokenMailbox({}, {}), store).fetch("q", CancellationToken())


def test_transient_message_failures_are_retried(store: DocumentStore):
    mailbox = FakeMailbox({"m1": message("m1", "Eve <eve@example.com>", ("cv.txt", "e1"))}, {"e1": b"Eve CV"})
    mailbox.failures["m1"] = 2

    summary = make_source(mailbox, store).fetch("q", CancellationToken())

    assert mailbox.get_calls == ["m1", "m1", "m1"]
    assert summary.processed == 1
    assert [path.name for path in summary.files] == ["Eve_CV.txt"]


def test_message_failing_every_attempt_is_skipped(store: DocumentStore):
    mailbox = FakeMailbox(
        {
            "m1": message("m1", "Fay <fay@example.com>", ("cv.txt", "f1")),
            "m2": message("m2", "Gus <gus@example.com>", ("cv.txt", "g1")),
        },
        {"f1": b"Fay CV", "g1": b"Gus CV"},
    )
    mailbox.failures["m1"] = 5

    summary = make_source(mailbox, store).fetch("q", CancellationToken())

    assert summary.skipped == ["m1"]
    assert summary.processed == 1
    assert mailbox.get_calls.count("m1") == 3


def test_cancellation_stops_processing(store: DocumentStore):
    mailbox = FakeMailbox({"m1": message("m1", "Hal <hal@example.com>", ("cv.txt", "h1"))}, {"h1": b"Hal CV"})
    token = CancellationToken()
    token.cancel()

    with pytest.raises(RunCancelled):
        make_source(mailbox, store).fetch("q", token)

    assert mailbox.get_calls == []


def test_mailbox_source_clears_store_before_fetch(store: DocumentStore):
    store.save("Stale_CV.txt", "left over from an earlier run")
    mailbox = FakeMailbox({"m1": message("m1", "Ivy <ivy@example.com>", ("resume.txt", "i1"))}, {"i1": b"Ivy CV"})
    source = MailboxSource(make_source(mailbox, store), store, "Job Application")

    records = source.load_records(CancellationToken())

    assert [record.name for record in records] == ["Ivy"]
    assert source.describe() == 'mailbox:subject:"Job Application" has:attachment'
