"""Extractor registry — named extractors and the host-facing runner."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from pagelens.browser.dom import Document
from pagelens.browser.layer import ActionStatus, BrowserLayer
from pagelens.browser.snapshot import DOMSnapshot
from pagelens.config.settings import (
    AirtableParams,
    CompanyParams,
    ExtractorParams,
    GoogleDocsParams,
    LarkDocsParams,
    ProfileParams,
    RepositoryParams,
    RepositorySearchParams,
    Settings,
)
from pagelens.pipeline.extraction import ExtractionError
from pagelens.sites import airtable, github, google_docs, lark_docs, linkedin
from pagelens.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

Extractor = Callable[..., Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ExtractorEntry:
    """One registered extractor and how to call it."""

    run: Extractor
    params_model: type[ExtractorParams]
    domain: str
    paced: bool = False


EXTRACTORS: dict[str, ExtractorEntry] = {
    "airtable.extract_table_data": ExtractorEntry(airtable.extract_table_data, AirtableParams, "base"),
    "github.extract_repository_info": ExtractorEntry(
        github.extract_repository_info, RepositoryParams, "repository", paced=True
    ),
    "github.search_repositories": ExtractorEntry(
        github.extract_search_results, RepositorySearchParams, "query"
    ),
    "google_docs.extract_document_content": ExtractorEntry(
        google_docs.extract_document_content, GoogleDocsParams, "document"
    ),
    "lark_docs.extract_document_content": ExtractorEntry(
        lark_docs.extract_document_content, LarkDocsParams, "document"
    ),
    "linkedin.extract_profile_info": ExtractorEntry(
        linkedin.extract_profile_info, ProfileParams, "profile", paced=True
    ),
    "linkedin.extract_company_info": ExtractorEntry(
        linkedin.extract_company_info, CompanyParams, "company", paced=True
    ),
}


class UnknownExtractorError(KeyError):
    """Raised when a name is not in ``EXTRACTORS``."""


def get_extractor(name: str) -> ExtractorEntry:
    try:
        return EXTRACTORS[name]
    except KeyError:
        raise UnknownExtractorError(name) from None


def _parse_params(
    entry: ExtractorEntry, params: dict[str, Any] | BaseModel | None
) -> ExtractorParams:
    if params is None:
        return entry.params_model()
    if isinstance(params, entry.params_model):
        return params
    if isinstance(params, BaseModel):
        params = params.model_dump(by_alias=True)
    return entry.params_model.model_validate(params)


def _rejected(
    code: ErrorCode, what: str, error: ValidationError, name: str, domain: str, url: str
) -> dict[str, Any]:
    emit_structured_error(
        logger,
        code=code,
        message=str(error),
        suppressed=True,
        url=url,
        details={"extractor": name, "error_count": error.error_count()},
    )
    return ExtractionError(
        error=f"Invalid {what}: {error.error_count()} error(s)",
        source_metadata={"url": url},
    ).envelope(domain)


async def _stop_browser(browser: BrowserLayer, url: str) -> None:
    try:
        await browser.stop()
    except Exception as e:
        emit_structured_error(
            logger,
            code=ErrorCode.BROWSER_CLEANUP_FAILED,
            message=str(e) or type(e).__name__,
            suppressed=True,
            url=url,
        )


async def _launch(browser: BrowserLayer, url: str, name: str | None = None) -> str | None:
    """Start ``browser``; the failure message when it cannot be launched."""
    try:
        await browser.start()
    except Exception as e:
        message = str(e) or type(e).__name__
        emit_structured_error(
            logger,
            code=ErrorCode.BROWSER_LAUNCH_FAILED,
            message=message,
            suppressed=True,
            url=url,
            details={"extractor": name, "exception_type": type(e).__name__},
        )
        return message
    return None


async def run_extractor(
    name: str,
    document: Document,
    params: dict[str, Any] | BaseModel | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Run the named extractor against ``document`` and return its envelope.

    Invalid settings or parameters produce the extractor's error envelope
    rather than an exception. An unknown name raises ``UnknownExtractorError``.
    """
    entry = get_extractor(name)

    try:
        settings = settings or Settings()
    except ValidationError as e:
        return _rejected(ErrorCode.SETTINGS_INVALID, "settings", e, name, entry.domain, document.url)
    try:
        parsed = _parse_params(entry, params)
    except ValidationError as e:
        return _rejected(ErrorCode.PARAMS_INVALID, "parameters", e, name, entry.domain, document.url)

    kwargs: dict[str, Any] = {"polling": settings.polling}
    if entry.paced:
        kwargs["pacing"] = settings.pacing

    logger.info("Running extractor", extra={"extractor": name, "url": document.url})
    return await entry.run(document, parsed, **kwargs)


async def extract_from_url(
    name: str,
    url: str,
    params: dict[str, Any] | BaseModel | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Open ``url`` in a fresh browser, run the named extractor and close the browser."""
    entry = get_extractor(name)
    try:
        settings = settings or Settings()
    except ValidationError as e:
        return _rejected(ErrorCode.SETTINGS_INVALID, "settings", e, name, entry.domain, url)
    browser = BrowserLayer(settings.browser)

    try:
        launch_error = await _launch(browser, url, name)
        if launch_error is not None:
            return ExtractionError(error=launch_error, source_metadata={"url": url}).envelope(entry.domain)

        result = await browser.navigate(url)
        if result.status != ActionStatus.SUCCESS:
            emit_structured_error(
                logger,
                code=ErrorCode.BROWSER_NAVIGATION_FAILED,
                message=result.detail or "Navigation failed",
                suppressed=True,
                url=url,
                details={"extractor": name},
            )
            return ExtractionError(
                error=result.detail or "Navigation failed", source_metadata={"url": url}
            ).envelope(entry.domain)

        document = browser.document()
        if document is None:
            return ExtractionError(
                error="Browser page unavailable", source_metadata={"url": url}
            ).envelope(entry.domain)
        return await run_extractor(name, document, params, settings)
    finally:
        await _stop_browser(browser, url)


async def capture_snapshot(url: str, settings: Settings | None = None) -> DOMSnapshot | None:
    """Render ``url`` once and keep its DOM for later offline extraction.

    Feed the result to ``SnapshotDocument.from_snapshot`` and ``run_extractor``.
    Returns None when the settings are invalid, the browser cannot be
    launched or navigation fails.
    """
    try:
        settings = settings or Settings()
    except ValidationError as e:
        emit_structured_error(
            logger,
            code=ErrorCode.SETTINGS_INVALID,
            message=str(e),
            suppressed=True,
            url=url,
            details={"error_count": e.error_count()},
        )
        return None
    browser = BrowserLayer(settings.browser)

    try:
        if await _launch(browser, url) is not None:
            return None
        result = await browser.navigate(url)
        if result.status != ActionStatus.SUCCESS:
            emit_structured_error(
                logger,
                code=ErrorCode.BROWSER_NAVIGATION_FAILED,
                message=result.detail or "Navigation failed",
                suppressed=True,
                url=url,
            )
            return None
        return await browser.capture_dom()
    finally:
        await _stop_browser(browser, url)


def render_envelope(envelope: dict[str, Any]) -> str:
    """Serialize an envelope as indented JSON text."""
    return json.dumps(envelope, indent=2, ensure_ascii=False)
