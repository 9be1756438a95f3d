from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class ApplicantRecord(BaseModel):
    """One candidate's matched CV and optional cover letter."""

    name: str
    cv_text: str
    cv_path: str
    cover_letter_text: str | None = None
    cover_letter_path: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("cv_text")
    @classmethod
    def _cv_required(cls, value: str) -> str:
        if not value:
            raise ValueError("cv_text must not be empty")
        return value

    @property
    def has_cover_letter(self) -> bool:
        return bool(self.cover_letter_text)
