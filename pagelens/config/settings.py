"""pagelens configuration settings and per-extractor parameters."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


# Environment values arrive as strings and are validated like explicit input.


class PollingConfig(BaseModel):
    """Readiness polling cadence."""

    poll_interval_ms: int = Field(
        default_factory=lambda: os.getenv("PAGELENS_POLL_INTERVAL_MS", "200"),
        ge=1,
        validate_default=True,
    )
    stabilization_ms: int = Field(
        default_factory=lambda: os.getenv("PAGELENS_STABILIZATION_MS", "500"),
        ge=0,
        validate_default=True,
    )


class PacingConfig(BaseModel):
    """Human-like pauses between extraction passes."""

    enabled: bool = Field(
        default_factory=lambda: os.getenv("PAGELENS_HUMAN_PACING", "true").lower() != "false"
    )
    scale: float = Field(
        default_factory=lambda: os.getenv("PAGELENS_PACING_SCALE", "1.0"),
        ge=0.0,
        validate_default=True,
    )


class BrowserConfig(BaseModel):
    """Browser layer configuration."""

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str | None = None
    locale: str = "en-US"
    navigation_timeout_ms: int = 30000


class Settings(BaseModel):
    """Root configuration for an extraction host."""

    polling: PollingConfig = Field(default_factory=PollingConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("PAGELENS_LOG_LEVEL", "INFO"))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


# --- Extractor parameters ---
#
# Hosts pass camelCase keys (maxRecords, waitForLoad, ...); Python callers may
# use the field names directly.


class ExtractorParams(BaseModel):
    """Common base for per-invocation extractor parameters."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    wait_for_load: int = Field(default=3000, ge=0)


class AirtableParams(ExtractorParams):
    max_records: int = Field(default=100, ge=0)
    include_field_types: bool = True
    include_formatted_values: bool = True


class RepositoryParams(ExtractorParams):
    include_files: bool = False
    include_languages: bool = False
    include_readme: bool = False
    max_files: int = Field(default=50, ge=0)


SearchSort = Literal["best-match", "stars", "forks", "updated", "created"]


class RepositorySearchParams(ExtractorParams):
    query: str = ""
    language: str | None = None
    sort: SearchSort = "best-match"
    max_results: int = Field(default=10, ge=0)


class GoogleDocsParams(ExtractorParams):
    wait_for_load: int = Field(default=5000, ge=0)
    max_blocks: int = Field(default=100, ge=0)
    include_formatting: bool = False
    include_structure: bool = True
    include_comments: bool = False


class LarkDocsParams(ExtractorParams):
    wait_for_load: int = Field(default=5000, ge=0)
    max_blocks: int = Field(default=200, ge=0)
    include_tables: bool = True
    include_images: bool = False
    include_comments: bool = False


class ProfileParams(ExtractorParams):
    include_experience: bool = True
    include_education: bool = True
    include_skills: bool = False
    max_experience: int = Field(default=10, ge=0)


class CompanyParams(ExtractorParams):
    include_employees: bool = False
    include_updates: bool = True
    include_media: bool = False
    respect_privacy: bool = True
    max_updates: int = Field(default=5, ge=0)
    max_employees: int = Field(default=10, ge=0)
