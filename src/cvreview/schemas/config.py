"""Pydantic configuration schema for YAML settings."""

from __future__ import annotations

import os
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class StoreConfig(BaseModel):
    uploads_dir: str = "uploads"

    model_config = ConfigDict(extra="forbid")


class EvaluatorConfig(BaseModel):
    provider: Literal["gemini", "http"] = "gemini"
    model: str = "gemini-2.5-flash"
    api_key: str | None = None
    project: str | None = None
    location: str = "us-central1"
    endpoint: str | None = None
    timeout_seconds: float = Field(default=60.0, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    top_k: int = Field(default=40, ge=1)
    top_p: float = Field(default=0.95, gt=0.0, le=1.0)
    max_output_tokens: int = Field(default=2048, ge=1)
    cv_max_bytes: int = Field(default=15_000, ge=1)
    cover_letter_max_bytes: int = Field(default=5_000, ge=1)
    max_requirements: int = Field(default=5, ge=1)

    model_config = ConfigDict(extra="forbid")


class PipelineConfig(BaseModel):
    request_delay_seconds: float = Field(default=4.0, ge=0.0)
    max_attempts: int = Field(default=3, ge=1)
    rate_limit_backoff_seconds: float = Field(default=10.0, ge=0.0)
    max_records: int = Field(default=500, ge=1)

    model_config = ConfigDict(extra="forbid")


class MailboxConfig(BaseModel):
    token_path: str = "token.json"
    user_id: str = "me"
    page_size: int = Field(default=100, ge=1, le=500)
    max_attempts: int = Field(default=3, ge=1)
    backoff_unit_seconds: float = Field(default=1.0, ge=0.0)

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    evaluator: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    mailbox: MailboxConfig = Field(default_factory=MailboxConfig)

    model_config = ConfigDict(extra="forbid")

    def with_environment(self, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Fill unset evaluator credentials from the environment."""
        env = os.environ if environ is None else environ
        updates: dict[str, Any] = {}
        if self.evaluator.api_key is None and env.get("GOOGLE_API_KEY"):
            updates["api_key"] = env["GOOGLE_API_KEY"]
        if self.evaluator.project is None and env.get("GOOGLE_CLOUD_PROJECT"):
            updates["project"] = env["GOOGLE_CLOUD_PROJECT"]
        if "location" not in self.evaluator.model_fields_set and env.get("GOOGLE_CLOUD_LOCATION"):
            updates["location"] = env["GOOGLE_CLOUD_LOCATION"]
        if not updates:
            return self
        return self.model_copy(
            update={"evaluator": self.evaluator.model_copy(update=updates)}
        )

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="python")


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
