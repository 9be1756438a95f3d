from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, computed_field, field_validator

SCORE_LIMITS: dict[str, float] = {
    "experience_score": 50.0,
    "education_score": 20.0,
    "duties_score": 20.0,
    "cover_letter_score": 10.0,
}

REASONING_FIELDS: tuple[str, ...] = (
    "experience_reasoning",
    "education_reasoning",
    "duties_reasoning",
    "cover_letter_reasoning",
)


class Score(BaseModel):
    """Evaluation outcome for one applicant.

    ``total_score`` is derived from the four sub-scores; any total supplied
    by the evaluator is ignored.
    """

    experience_score: float
    education_score: float
    duties_score: float
    cover_letter_score: float
    experience_reasoning: str = ""
    education_reasoning: str = ""
    duties_reasoning: str = ""
    cover_letter_reasoning: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)

    @field_validator(*SCORE_LIMITS)
    @classmethod
    def _clamp(cls, value: float, info: ValidationInfo) -> float:
        return min(max(value, 0.0), SCORE_LIMITS[info.field_name])

    @field_validator(*REASONING_FIELDS, mode="before")
    @classmethod
    def _reasoning_text(cls, value: object) -> object:
        return "" if value is None else value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_score(self) -> float:
        return (
            self.experience_score
            + self.education_score
            + self.duties_score
            + self.cover_letter_score
        )


class ScoredApplicant(BaseModel):
    """Applicant name and score collected during a run."""

    name: str
    score: Score
    cv_path: str | None = None
    cover_letter_path: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class RankedResult(ScoredApplicant):
    """Scored applicant with its final 1-based rank."""

    rank: int = Field(ge=1)


class ReportSummary(BaseModel):
    """Score distribution over a ranked report."""

    candidates: int
    excellent: int = 0
    good: int = 0
    fair: int = 0
    poor: int = 0
    average_score: float | None = None
    highest_score: float | None = None
    lowest_score: float | None = None
    score_range: float | None = None
    with_cover_letter: int = 0
    without_cover_letter: int = 0


def summarize(applicants: Sequence[ScoredApplicant]) -> ReportSummary:
    """Bucket totals into excellent/good/fair/poor and compute spread."""
    totals = [item.score.total_score for item in applicants]
    summary = ReportSummary(candidates=len(applicants))
    if not totals:
        return summary

    for total in totals:
        if total >= 90:
            summary.excellent += 1
        elif total >= 70:
            summary.good += 1
        elif total >= 50:
            summary.fair += 1
        else:
            summary.poor += 1

    summary.average_score = sum(totals) / len(totals)
    summary.highest_score = max(totals)
    summary.lowest_score = min(totals)
    summary.score_range = summary.highest_score - summary.lowest_score
    summary.with_cover_letter = sum(1 for item in applicants if item.cover_letter_path)
    summary.without_cover_letter = len(applicants) - summary.with_cover_letter
    return summary


class Report(BaseModel):
    """Durable snapshot published at the end of a successful run."""

    applicants: list[RankedResult] = Field(default_factory=list)
    job_title: str
    timestamp: str

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def summary(self) -> ReportSummary:
        return summarize(self.applicants)
