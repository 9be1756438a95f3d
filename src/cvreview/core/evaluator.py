"""Single-applicant evaluation against the external evaluator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from ..errors import EvaluatorCallError
from ..runtime import CancellationToken
from ..schemas import ApplicantRecord, JobSpecification, Score
from .decoding import ResponseDecoder
from .prompt import RequestBuilder

RATE_LIMIT_MARKERS: tuple[str, ...] = (
    "resourceexhausted",
    "resource_exhausted",
    "resource exhausted",
    "429",
    "rate limit",
    "quota",
)


@runtime_checkable
class EvaluatorClient(Protocol):
    """Opaque text-in/text-out scoring service."""

    def complete(self, prompt: str) -> str:
        """Return the raw response text for ``prompt``."""


def is_rate_limited(exc: BaseException) -> bool:
    """Classify an error chain as request-rate throttling."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = f"{type(current).__name__} {current}".lower()
        if any(marker in text for marker in RATE_LIMIT_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def is_retryable_failure(exc: BaseException) -> bool:
    """True only for a failed evaluator call that was throttled.

    Decode failures never qualify, whatever the response text says.
    """
    return isinstance(exc, EvaluatorCallError) and is_rate_limited(exc)


class Evaluator:
    """Score one applicant record through an ``EvaluatorClient``."""

    def __init__(
        self,
        client: EvaluatorClient,
        *,
        builder: RequestBuilder | None = None,
        decoder: ResponseDecoder | None = None,
    ) -> None:
        self._client = client
        self._builder = builder or RequestBuilder()
        self._decoder = decoder or ResponseDecoder()
        self._logger = structlog.get_logger(__name__)

    def evaluate(
        self,
        record: ApplicantRecord,
        job: JobSpecification,
        token: CancellationToken | None = None,
    ) -> Score:
        if token is not None:
            token.raise_if_cancelled()

        prompt = self._builder.build(record, job)
        try:
            response = self._client.complete(prompt)
        except Exception as exc:  # noqa: BLE001 - client errors are provider specific
            raise EvaluatorCallError(f"Failed to get evaluator response: {exc}") from exc

        self._logger.debug(
            "evaluator.response_received",
            applicant=record.name,
            response_chars=len(response or ""),
        )
        score = self._decoder.decode(response or "")
        self._logger.info(
            "evaluator.scored",
            applicant=record.name,
            total=score.total_score,
            experience=score.experience_score,
            education=score.education_score,
            duties=score.duties_score,
            cover_letter=score.cover_letter_score,
        )
        return score
