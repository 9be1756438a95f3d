"""Local document store grouping files into applicant records."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import structlog

from ..errors import DocumentStoreError
from ..runtime import CancellationToken, ProgressListener
from ..schemas import ApplicantRecord
from .extract import ExtractionError, extract_text, is_supported

DocumentKind = Literal["cv", "cover_letter"]

NAME_SEPARATOR = "_"
CV_KEYWORDS: tuple[str, ...] = ("cv", "resume")
COVER_LETTER_KEYWORDS: tuple[str, ...] = ("cover", "letter", "cl")


def split_filename(filename: str) -> tuple[str, str] | None:
    """Split ``Name_CV.pdf`` into ``("Name", "cv")``.

    Returns None when the stem has no separator or an empty name part.
    """
    stem = Path(filename).stem
    name, sep, remainder = stem.partition(NAME_SEPARATOR)
    if not sep or not name:
        return None
    return name, remainder.lower()


def classify_document(remainder: str) -> DocumentKind | None:
    """Classify a filename remainder; CV keywords are checked first."""
    lowered = remainder.lower()
    if any(keyword in lowered for keyword in CV_KEYWORDS):
        return "cv"
    if any(keyword in lowered for keyword in COVER_LETTER_KEYWORDS):
        return "cover_letter"
    return None


@dataclass
class _PendingRecord:
    name: str
    cv_text: str | None = None
    cv_path: str | None = None
    cover_letter_text: str | None = None
    cover_letter_path: str | None = None


class DocumentStore:
    """Directory of uploaded CVs and cover letters."""

    def __init__(self, root: str | Path):
        self._root = Path(root)
        self._logger = structlog.get_logger(__name__)

    @property
    def root(self) -> Path:
        return self._root

    def save(self, name: str, content: bytes | str) -> Path:
        filename = Path(name).name
        if filename in {"", ".", ".."}:
            raise DocumentStoreError(f"Invalid document name: {name!r}")
        data = content.encode("utf-8") if isinstance(content, str) else content
        path = self._root / filename
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise DocumentStoreError(f"Failed to write {filename}: {exc}") from exc
        self._logger.debug("store.saved", path=str(path), size=len(data))
        return path

    def list_records(self) -> list[ApplicantRecord]:
        """Group stored files by applicant; applicants without a CV are dropped."""
        if not self._root.exists():
            return []
        try:
            entries = sorted(self._root.iterdir())
        except OSError as exc:
            raise DocumentStoreError(f"Failed to read {self._root}: {exc}") from exc

        pending: dict[str, _PendingRecord] = {}
        for path in entries:
            if not path.is_file() or not is_supported(path):
                continue
            parts = split_filename(path.name)
            if parts is None:
                continue
            name, remainder = parts
            kind = classify_document(remainder)
            if kind is None:
                continue

            try:
                text = extract_text(path)
            except ExtractionError as exc:
                self._logger.warning("store.document_skipped", path=str(path), error=str(exc))
                continue
            except OSError as exc:
                raise DocumentStoreError(f"Failed to read {path.name}: {exc}") from exc

            record = pending.setdefault(name, _PendingRecord(name=name))
            if kind == "cv":
                record.cv_text, record.cv_path = text, str(path)
            else:
                record.cover_letter_text, record.cover_letter_path = text, str(path)

        records: list[ApplicantRecord] = []
        for item in pending.values():
            if not item.cv_text or item.cv_path is None:
                self._logger.info("store.record_without_cv", applicant=item.name)
                continue
            records.append(
                ApplicantRecord(
                    name=item.name,
                    cv_text=item.cv_text,
                    cv_path=item.cv_path,
                    cover_letter_text=item.cover_letter_text or None,
                    cover_letter_path=item.cover_letter_path if item.cover_letter_text else None,
                )
            )
        return records

    def clear(self) -> None:
        """Remove every stored document, raising if anything is left behind."""
        failures: list[str] = []
        if self._root.exists():
            for entry in sorted(self._root.iterdir()):
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                except OSError as exc:
                    failures.append(f"{entry.name}: {exc}")
        if failures:
            raise DocumentStoreError(f"Failed to clear {self._root}", failures)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DocumentStoreError(f"Failed to recreate {self._root}: {exc}") from exc
        self._logger.info("store.cleared", root=str(self._root))

    def load_records(
        self,
        token: CancellationToken,
        progress: ProgressListener | None = None,
    ) -> list[ApplicantRecord]:
        token.raise_if_cancelled()
        if progress:
            progress(0, 1, "Loading documents...")
        records = self.list_records()
        if progress:
            progress(1, 1, f"Loaded {len(records)} applicants")
        return records

    def describe(self) -> str:
        return f"upload:{self._root}"


__all__ = [
    "DocumentStore",
    "classify_document",
    "split_filename",
]
