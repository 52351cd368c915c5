"""Centralized configuration using Pydantic Settings.

All settings can be overridden via environment variables. Groups are
env-prefixed (`SCORING_`, `PROGRESSION_`, `LOG_`); a `.env` file in the
working directory is read unless `TESTING` is set.
"""

from __future__ import annotations

import os
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from household_checkup.domain.enums import SkipPolicy

# Skip reading .env file during testing to use code defaults
ENV_FILE = None if os.environ.get("TESTING") else ".env"
ENV_FILE_ENCODING = "utf-8"


class ScoringSettings(BaseSettings):
    """Scoring engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    skip_policy: SkipPolicy = Field(
        default=SkipPolicy.ZERO,
        description="How skipped answers enter a domain: zero or exclude",
    )
    cutoffs_path: Path | None = Field(
        default=None,
        description="YAML cutoff table. None uses the packaged provisional table.",
    )

    @field_validator("cutoffs_path", mode="after")
    @classmethod
    def warn_if_file_missing(cls, v: Path | None) -> Path | None:
        """Warn if the cutoff file doesn't exist (loading will fail later)."""
        if v is not None and not v.exists():
            warnings.warn(f"Cutoff table does not exist: {v}", stacklevel=2)
        return v


class ProgressionSettings(BaseSettings):
    """Questionnaire progression configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSION_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    drain_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Max wait for pending answer saves before completion",
    )
    abandon_after_days: int = Field(
        default=0,
        ge=0,
        description="Mark in-progress assessments abandoned after N idle days (0 = disabled)",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(default=True)
    include_caller: bool = Field(default=True)


class Settings(BaseSettings):
    """Root settings combining all configuration groups."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        env_nested_delimiter="__",
        extra="ignore",
    )

    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    progression: ProgressionSettings = Field(default_factory=ProgressionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()


def get_scoring_settings() -> ScoringSettings:
    """Get scoring settings."""
    return get_settings().scoring


def get_progression_settings() -> ProgressionSettings:
    """Get progression settings."""
    return get_settings().progression
