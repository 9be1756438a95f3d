"""Configuration management utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigurationError
from ..schemas.config import AppConfig, load_config


class ConfigManager:
    """YAML-backed configuration loader."""

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name without file extension."""
        path = self._base_path / f"{name}.yaml"
        return read_yaml(path)

    def load_app_config(self, name: str = "cvreview") -> AppConfig:
        path = self._base_path / f"{name}.yaml"
        if not path.exists():
            return AppConfig().with_environment()
        return load_app_config(path)


def read_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file must be a YAML mapping: {path}")
    return loaded


def load_app_config(path: Path | None = None) -> AppConfig:
    """Read, validate and environment-complete the application settings."""
    raw = read_yaml(path) if path is not None else {}
    try:
        config = load_config(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
    return config.with_environment()


__all__ = ["ConfigManager", "load_app_config", "read_yaml"]
