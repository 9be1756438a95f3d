"""Text extraction for applicant documents."""

from __future__ import annotations

from pathlib import Path

import pymupdf4llm

TEXT_EXTENSIONS: tuple[str, ...] = (".txt", ".md")
PDF_EXTENSIONS: tuple[str, ...] = (".pdf",)
SUPPORTED_EXTENSIONS: tuple[str, ...] = TEXT_EXTENSIONS + PDF_EXTENSIONS

MIN_EXTRACTED_TEXT_LENGTH = 50
BINARY_SAMPLE_SIZE = 1000
BINARY_THRESHOLD = 0.3


class ExtractionError(ValueError):
    """Raised when a document yields no usable text."""


def is_supported(path: str | Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def extract_text(path: str | Path) -> str:
    """Return the text content of a supported document.

    Parameters
    ----------
    path:
        Document path. ``.txt``/``.md`` files are decoded as UTF-8 with
        invalid bytes replaced; ``.pdf`` files are converted to markdown.

    Raises
    ------
    ExtractionError
        For unsupported types, binary payloads or PDFs without a text layer.
    OSError
        When the file cannot be read.
    """

    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in TEXT_EXTENSIONS:
        text = decode_text(path.read_bytes())
        if looks_binary(text):
            raise ExtractionError(f"file appears to be binary: {path.name}")
        return text
    if suffix in PDF_EXTENSIONS:
        return extract_pdf_text(path)
    raise ExtractionError(f"unsupported file type: {suffix or '<none>'}")


def extract_pdf_text(path: str | Path) -> str:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        markdown = pymupdf4llm.to_markdown(str(path))
    except Exception as exc:  # noqa: BLE001 - pymupdf raises several types
        raise ExtractionError(f"failed to read PDF {path.name}: {exc}") from exc

    text = markdown.strip()
    # Scanned PDFs come back with little or no text layer.
    if len(text) < MIN_EXTRACTED_TEXT_LENGTH:
        raise ExtractionError(f"extracted text is too short from: {path.name}")
    return text


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def sanitize_text(text: str) -> str:
    """Replace lone surrogates and other unencodable fragments."""
    return text.encode("utf-8", errors="surrogatepass").decode("utf-8", errors="replace")


def looks_binary(content: str) -> bool:
    """Heuristically detect PDF/ZIP payloads or control-character noise."""
    if not content:
        return False
    if content.startswith("%PDF-") or content.startswith("PK"):
        return True

    sample = content[:BINARY_SAMPLE_SIZE]
    non_printable = sum(
        1 for ch in sample if ord(ch) < 32 and ch not in "\n\r\t"
    )
    return non_printable / len(sample) > BINARY_THRESHOLD


__all__ = [
    "ExtractionError",
    "SUPPORTED_EXTENSIONS",
    "decode_text",
    "extract_pdf_text",
    "extract_text",
    "is_supported",
    "looks_binary",
    "sanitize_text",
]
