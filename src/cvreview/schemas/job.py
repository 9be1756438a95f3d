from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

REQUIREMENT_FIELDS: tuple[str, ...] = (
    "required_experience",
    "required_education",
    "required_duties",
    "nice_to_have_experience",
    "nice_to_have_education",
    "nice_to_have_duties",
)


class JobSpecification(BaseModel):
    """Role description applicants are scored against.

    Requirement lists keep authoring order; it is used as priority when a
    consumer condenses them.
    """

    title: str
    description: str = ""
    required_experience: list[str] = Field(default_factory=list)
    required_education: list[str] = Field(default_factory=list)
    required_duties: list[str] = Field(default_factory=list)
    nice_to_have_experience: list[str] = Field(default_factory=list)
    nice_to_have_education: list[str] = Field(default_factory=list)
    nice_to_have_duties: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator(*REQUIREMENT_FIELDS, mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: object) -> object:
        return "" if value is None else value
