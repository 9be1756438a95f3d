"""Pydantic schema definitions for pipeline data structures."""

from __future__ import annotations

from .applicant import ApplicantRecord
from .job import REQUIREMENT_FIELDS, JobSpecification
from .score import (
    RankedResult,
    Report,
    ReportSummary,
    Score,
    ScoredApplicant,
    summarize,
)

__all__ = [
    "ApplicantRecord",
    "JobSpecification",
    "REQUIREMENT_FIELDS",
    "RankedResult",
    "Report",
    "ReportSummary",
    "Score",
    "ScoredApplicant",
    "summarize",
]
