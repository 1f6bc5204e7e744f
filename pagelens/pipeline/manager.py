"""Extraction Pipeline — staged table extraction behind a single error boundary.

Stages:
1. Readiness — poll until headers and rows are rendered (timeout is not fatal)
2. Schema — header elements become an ordered field schema
3. Records — row elements become typed, de-duplicated records
4. Envelope — schema, records, site metadata and stats

Contract: ``run`` never raises. Any fault inside a stage is caught once,
reported through structured telemetry, and returned as an ``ExtractionError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pagelens.browser.dom import Document
from pagelens.config.settings import PollingConfig
from pagelens.pipeline.extraction import (
    ExtractionError,
    ExtractionResult,
    ExtractionStats,
)
from pagelens.pipeline.readiness import wait_until_ready
from pagelens.pipeline.records import RowLayout, extract_records
from pagelens.pipeline.resolver import exists, resolve_all
from pagelens.pipeline.schema import DEFAULT_ID_ATTRIBUTES, DEFAULT_NAME_SELECTORS, build_fields
from pagelens.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

ReadyCheck = Callable[[Document], Awaitable[bool]]
MetadataHook = Callable[[Document], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class TableLayout:
    """Locator chains describing one table-shaped page."""

    header_selectors: tuple[str, ...]
    row_selectors: tuple[str, ...]
    name_selectors: tuple[str, ...] = DEFAULT_NAME_SELECTORS
    field_id_attributes: tuple[str, ...] = DEFAULT_ID_ATTRIBUTES
    rows: RowLayout = field(default_factory=RowLayout)


@dataclass
class ExtractionOptions:
    max_records: int = 100
    infer_types: bool = True
    formatted: bool = True
    wait_for_load_ms: int = 3000


class ExtractionPipeline:
    """Runs the four extraction stages for one document.

    Nothing is kept between runs; every call builds its schema and identity
    set from scratch.
    """

    def __init__(
        self,
        layout: TableLayout,
        ready: ReadyCheck | None = None,
        metadata: MetadataHook | None = None,
        polling: PollingConfig | None = None,
    ) -> None:
        self._layout = layout
        self._ready = ready or self._default_ready
        self._metadata = metadata
        self._polling = polling or PollingConfig()

    async def _default_ready(self, document: Document) -> bool:
        return await exists(self._layout.header_selectors, document) and await exists(
            self._layout.row_selectors, document
        )

    async def run(
        self, document: Document, options: ExtractionOptions | None = None
    ) -> ExtractionResult | ExtractionError:
        options = options or ExtractionOptions()
        source_metadata: dict[str, Any] = {"url": document.url}
        stage = "readiness"

        try:
            ready = await wait_until_ready(
                lambda: self._ready(document),
                options.wait_for_load_ms,
                poll_interval_ms=self._polling.poll_interval_ms,
                stabilization_ms=self._polling.stabilization_ms,
            )
            if not ready:
                logger.info("Extracting from a page that never became ready", extra={"url": source_metadata["url"]})

            stage = "schema"
            headers = await resolve_all(self._layout.header_selectors, document)
            fields = await build_fields(
                headers,
                options.infer_types,
                name_selectors=self._layout.name_selectors,
                id_attributes=self._layout.field_id_attributes,
            )

            stage = "records"
            rows = await resolve_all(self._layout.row_selectors, document)
            records = await extract_records(
                rows,
                fields,
                options.max_records,
                options.formatted,
                layout=self._layout.rows,
                scope=document,
            )

            stage = "metadata"
            if self._metadata is not None:
                source_metadata.update(await self._metadata(document))

            return ExtractionResult(
                source_metadata=source_metadata,
                fields=fields,
                records=records,
                stats=ExtractionStats(total_records=len(records), total_fields=len(fields)),
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            emit_structured_error(
                logger,
                code=ErrorCode.EXTRACTION_FAILED,
                message=message,
                suppressed=True,
                url=source_metadata.get("url"),
                stage=stage,
                details={"exception_type": type(e).__name__},
            )
            return ExtractionError(error=message, source_metadata=source_metadata)


async def guard_extraction(
    document: Document,
    domain: str,
    body: Callable[[], Awaitable[dict[str, Any]]],
    detail: Any = None,
) -> dict[str, Any]:
    """Run a non-table extractor ``body`` behind the same error boundary.

    Returns the body's envelope, or ``{error, <domain>: {url}, extractedAt}``.
    """
    url = document.url
    try:
        return await body()
    except Exception as e:
        message = str(e) or type(e).__name__
        emit_structured_error(
            logger,
            code=ErrorCode.SITE_EXTRACTION_FAILED,
            message=message,
            suppressed=True,
            url=url,
            stage=domain,
            details={"exception_type": type(e).__name__},
        )
        return ExtractionError(error=message, source_metadata={"url": url}).envelope(domain, detail)
