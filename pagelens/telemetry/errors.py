"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SITE_EXTRACTION_FAILED = "SITE_EXTRACTION_FAILED"
    PARAMS_INVALID = "PARAMS_INVALID"
    SETTINGS_INVALID = "SETTINGS_INVALID"
    BROWSER_LAUNCH_FAILED = "BROWSER_LAUNCH_FAILED"
    BROWSER_NAVIGATION_FAILED = "BROWSER_NAVIGATION_FAILED"
    BROWSER_CLEANUP_FAILED = "BROWSER_CLEANUP_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    url: str | None = None,
    stage: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "pagelens_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "url": url,
            "stage": stage,
            "details": details or {},
        },
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for a host process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
