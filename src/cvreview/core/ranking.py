"""Deterministic ranking of scored applicants."""

from __future__ import annotations

from typing import Iterable

from ..schemas import RankedResult, ScoredApplicant


def ranking_key(item: ScoredApplicant) -> tuple[float, float, float, float, float]:
    """Sort key: total, then experience, duties, education, cover letter; all descending."""
    score = item.score
    return (
        -score.total_score,
        -score.experience_score,
        -score.duties_score,
        -score.education_score,
        -score.cover_letter_score,
    )


def rank(results: Iterable[ScoredApplicant]) -> list[RankedResult]:
    """Order ``results`` and assign consecutive 1-based ranks.

    The sort is stable, so exact ties keep their input order and repeated
    calls give the same ranking. Ranks are never shared.
    """
    ordered = sorted(results, key=ranking_key)
    return [
        RankedResult(
            name=item.name,
            score=item.score,
            cv_path=item.cv_path,
            cover_letter_path=item.cover_letter_path,
            rank=position,
        )
        for position, item in enumerate(ordered, start=1)
    ]
