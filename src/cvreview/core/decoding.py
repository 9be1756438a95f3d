"""Recovery of structured scores from loosely formatted evaluator output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import structlog
from pydantic import ValidationError

from ..errors import ResponseDecodeError
from ..schemas import Score

PREVIEW_LENGTH = 200

_FENCE_RE = re.compile(r"```[\w-]*[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)


class DecodeStatus(str, Enum):
    DECODED = "decoded"
    CONTINUE = "continue"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Tagged outcome of one decoding strategy."""

    status: DecodeStatus
    score: Score | None = None
    error: str | None = None

    @classmethod
    def decoded(cls, score: Score) -> "DecodeResult":
        return cls(DecodeStatus.DECODED, score=score)

    @classmethod
    def skip(cls, error: str) -> "DecodeResult":
        return cls(DecodeStatus.CONTINUE, error=error)

    @classmethod
    def fatal(cls, error: str) -> "DecodeResult":
        return cls(DecodeStatus.FATAL, error=error)


DecodeStrategy = Callable[[str], DecodeResult]


def preview(text: str, max_len: int = PREVIEW_LENGTH) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _decode_object(text: str) -> DecodeResult:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        return DecodeResult.skip(f"invalid JSON: {exc}")
    if not isinstance(data, dict):
        return DecodeResult.skip("JSON value is not an object")
    try:
        return DecodeResult.decoded(Score.model_validate(data))
    except ValidationError as exc:
        # A JSON object was found; later strategies would only find it again.
        return DecodeResult.fatal(f"invalid score fields: {exc.error_count()} error(s): {exc}")


def parse_direct(response: str) -> DecodeResult:
    return _decode_object(response.strip())


def parse_fenced(response: str) -> DecodeResult:
    match = _FENCE_RE.search(response)
    if match is None:
        return DecodeResult.skip("no fenced code block")
    return _decode_object(match.group(1).strip())


def parse_embedded(response: str) -> DecodeResult:
    start = response.find("{")
    end = response.rfind("}")
    if start == -1 or end == -1 or start >= end:
        return DecodeResult.skip("no JSON object found")
    return _decode_object(response[start : end + 1])


DEFAULT_STRATEGIES: tuple[tuple[str, DecodeStrategy], ...] = (
    ("direct", parse_direct),
    ("fenced", parse_fenced),
    ("embedded", parse_embedded),
)


class ResponseDecoder:
    """Try each strategy in order until one decodes or one is fatal."""

    def __init__(self, strategies: Sequence[tuple[str, DecodeStrategy]] = DEFAULT_STRATEGIES):
        self._strategies = tuple(strategies)
        self._logger = structlog.get_logger(__name__)

    def decode(self, response: str) -> Score:
        attempts: list[str] = []
        for name, strategy in self._strategies:
            result = strategy(response)
            if result.status is DecodeStatus.DECODED and result.score is not None:
                self._logger.debug("decoder.decoded", strategy=name, tried=attempts)
                return result.score
            attempts.append(f"{name}: {result.error}")
            if result.status is DecodeStatus.FATAL:
                raise ResponseDecodeError(
                    f"Failed to decode evaluator response ({name}: {result.error})",
                    preview(response),
                )
        self._logger.debug("decoder.failed", tried=attempts)
        raise ResponseDecodeError("No JSON found in response", preview(response))


__all__ = [
    "DEFAULT_STRATEGIES",
    "DecodeResult",
    "DecodeStatus",
    "ResponseDecoder",
    "parse_direct",
    "parse_embedded",
    "parse_fenced",
    "preview",
]
