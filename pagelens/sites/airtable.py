"""Airtable grid extraction — fields with inferred types and typed records."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urlparse

from pagelens.browser.dom import Document
from pagelens.config.settings import AirtableParams, PollingConfig
from pagelens.pipeline.extraction import ExtractionError, ExtractionResult
from pagelens.pipeline.manager import ExtractionOptions, ExtractionPipeline, TableLayout
from pagelens.pipeline.records import RowLayout
from pagelens.pipeline.resolver import exists, resolve, resolve_text

logger = logging.getLogger(__name__)

GRID_SELECTORS = (".gridView", '[class*="gridView"]')
READY_HEADER_SELECTORS = (".cell[data-columnid]", '[data-testid="gridHeaderCell"]')
READY_ROW_SELECTORS = ('[data-testid="data-row"]', ".dataRow[data-rowid]")

AIRTABLE_LAYOUT = TableLayout(
    header_selectors=(
        ".headerRow .cell[data-columnid]",
        '[data-testid="gridHeaderCell"]',
        ".cell.header[data-columnid]",
        ".gridHeaderCell[data-columnid]",
        '[class*="header"][data-columnid]',
        "th[data-columnid]",
        ".headerLeftPane .cell[data-columnid]",
        ".headerRightPane .cell[data-columnid]",
    ),
    row_selectors=(
        ".dataRow[data-rowid]:not(.ghost):not(.template)",
        '[data-testid="data-row"]',
        "[data-rowid]:not(.ghost):not(.template)",
    ),
    rows=RowLayout(),
)

TABLE_NAME_SELECTORS = (
    ".tableTab.activeTab .truncate-pre",
    '.activeTab [class*="truncate"]',
    '.tableTab[class*="active"] span',
    '[data-tutorial-selector-id*="tableTab"] .truncate-pre',
    ".table-name",
    ".tableTabLabel.active",
    ".activeTab span:not(:empty)",
    '[class*="active"] .truncate-pre',
)
VIEW_SELECTORS = ('[data-testid="viewName"]', ".viewTab.active", '[aria-selected="true"]')
VIEW_TYPES = ("grid", "form", "calendar", "gallery", "kanban")

_BASE_ID_RE = re.compile(r"/(app[a-zA-Z0-9]+)")
_TABLE_ID_RES = (re.compile(r"/tbl([a-zA-Z0-9]+)"), re.compile(r"table[=/]([a-zA-Z0-9]+)"))


async def grid_ready(document: Document) -> bool:
    if not await exists(GRID_SELECTORS, document):
        return False
    return await exists(READY_HEADER_SELECTORS, document) and await exists(
        READY_ROW_SELECTORS, document
    )


async def table_name(document: Document) -> str:
    name = await resolve_text(TABLE_NAME_SELECTORS, document)
    if name:
        return name
    path = urlparse(document.url).path.rstrip("/")
    last = path.rsplit("/", 1)[-1] if path else ""
    return last or "Unknown Table"


async def view_type(document: Document) -> str:
    url = document.url.lower()
    for kind in VIEW_TYPES:
        if kind in url:
            return kind
    for selector in VIEW_SELECTORS:
        node = await resolve((selector,), document, accept=None)
        if node is None:
            continue
        label = (await node.text()).lower()
        for kind in VIEW_TYPES:
            if kind in label:
                return kind
    return "grid"


def base_id(url: str) -> str | None:
    match = _BASE_ID_RE.search(url)
    return match.group(1) if match else None


def table_id(url: str) -> str | None:
    for pattern in _TABLE_ID_RES:
        match = pattern.search(url)
        if match:
            return f"tbl{match.group(1)}"
    return None


async def _table_metadata(document: Document) -> dict[str, Any]:
    return {
        "tableName": await table_name(document),
        "viewType": await view_type(document),
        "baseId": base_id(document.url),
        "tableId": table_id(document.url),
    }


async def extract_table_data(
    document: Document,
    params: AirtableParams | None = None,
    polling: PollingConfig | None = None,
) -> dict[str, Any]:
    """Extract the visible grid of an Airtable base."""
    params = params or AirtableParams()
    pipeline = ExtractionPipeline(
        AIRTABLE_LAYOUT, ready=grid_ready, metadata=_table_metadata, polling=polling
    )
    outcome = await pipeline.run(
        document,
        ExtractionOptions(
            max_records=params.max_records,
            infer_types=params.include_field_types,
            formatted=params.include_formatted_values,
            wait_for_load_ms=params.wait_for_load,
        ),
    )

    if isinstance(outcome, ExtractionError):
        return outcome.envelope("base", {"url": outcome.source_metadata.get("url", document.url)})
    return _render(outcome)


def _render(result: ExtractionResult) -> dict[str, Any]:
    meta = result.source_metadata
    return {
        "base": {"url": meta["url"]},
        "table": {"name": meta["tableName"]},
        "fields": [field.to_json_dict() for field in result.fields],
        "records": [record.to_json_dict() for record in result.records],
        "metadata": {
            "totalRecords": result.stats.total_records,
            "totalFields": result.stats.total_fields,
            "viewType": meta["viewType"],
            "baseId": meta["baseId"],
            "tableId": meta["tableId"],
        },
        "extractedAt": result.extracted_at_iso,
    }
