"""Core evaluation and ranking components."""

from __future__ import annotations

from .decoding import DecodeResult, DecodeStatus, ResponseDecoder
from .evaluator import Evaluator, EvaluatorClient, is_rate_limited, is_retryable_failure
from .prompt import RequestBuilder, condense_requirements
from .ranking import rank, ranking_key

__all__ = [
    "DecodeResult",
    "DecodeStatus",
    "Evaluator",
    "EvaluatorClient",
    "RequestBuilder",
    "ResponseDecoder",
    "condense_requirements",
    "is_rate_limited",
    "is_retryable_failure",
    "rank",
    "ranking_key",
]
