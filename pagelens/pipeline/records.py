"""Record extraction — rows to typed records, with identity-based deduplication."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from pagelens.browser.dom import Node
from pagelens.pipeline.coercion import coerce_value
from pagelens.pipeline.extraction import FieldDescriptor, Record
from pagelens.pipeline.resolver import resolve_all
from pagelens.pipeline.schema import native_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowLayout:
    """Where a row keeps its identity and its cells."""

    cell_selectors: tuple[str, ...] = (".cell[data-columnid]", '[data-testid*="gridCell"]')
    row_id_attributes: tuple[str, ...] = ("data-rowid", "data-row-id")
    column_id_attributes: tuple[str, ...] = ("data-columnid", "data-column-id")
    column_index_attribute: str = "data-columnindex"


def _attribute_selector(attribute: str, value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{attribute}="{escaped}"]'


async def _row_cells(row: Node, row_id: str | None, layout: RowLayout, scope: Node | None) -> list[Node]:
    """Cells of a row, including sibling containers that share its native id."""
    containers = [row]
    if scope is not None and row_id is not None:
        for attribute in layout.row_id_attributes:
            if await row.attribute(attribute) == row_id:
                siblings = await scope.query_all(_attribute_selector(attribute, row_id))
                if siblings:
                    containers = siblings
                break

    cells: list[Node] = []
    for container in containers:
        cells.extend(await resolve_all(layout.cell_selectors, container))
    return cells


async def _map_cells(
    cells: list[Node], fields: Sequence[FieldDescriptor], layout: RowLayout
) -> dict[str, Node]:
    """Field id → cell. Native column id first, positional index second."""
    by_id: dict[str, Node] = {}
    by_position: dict[int, Node] = {}
    owned_ids = {field.id for field in fields}

    for position, cell in enumerate(cells):
        column_id = await native_id(cell, layout.column_id_attributes)
        if column_id is not None and column_id not in by_id:
            by_id[column_id] = cell
        if column_id is not None and column_id in owned_ids:
            continue
        raw_index = await cell.attribute(layout.column_index_attribute)
        index = int(raw_index) if raw_index and raw_index.strip().isdecimal() else position
        by_position.setdefault(index, cell)

    mapped: dict[str, Node] = {}
    for field in fields:
        cell = by_id.get(field.id)
        if cell is None:
            cell = by_position.get(field.index)
        if cell is not None:
            mapped[field.id] = cell
    return mapped


async def extract_records(
    rows: Sequence[Node],
    fields: Sequence[FieldDescriptor],
    max_records: int,
    formatted: bool,
    *,
    layout: RowLayout | None = None,
    scope: Node | None = None,
) -> list[Record]:
    """Extract up to ``max_records`` rows in document order.

    A row whose id was already seen in this call is skipped. A row that
    yields no non-empty field is dropped. When ``scope`` is given, cells of
    every element sharing the row's native id are gathered (split panes),
    with earlier cells winning.
    """
    layout = layout or RowLayout()
    records: list[Record] = []
    seen: set[str] = set()
    limit = min(max_records, len(rows))

    for position in range(limit):
        row = rows[position]
        native = await native_id(row, layout.row_id_attributes)
        record_id = native or f"record_{position}"
        if record_id in seen:
            logger.debug("Skipping duplicate row", extra={"record_id": record_id})
            continue
        seen.add(record_id)

        cells = await _row_cells(row, native, layout, scope)
        mapped = await _map_cells(cells, fields, layout)

        values: dict[str, Any] = {}
        for field in fields:
            cell = mapped.get(field.id)
            if cell is None or field.name in values:
                continue
            value = await coerce_value(cell, field.type, formatted)
            if value is not None:
                values[field.name] = value

        if values:
            records.append(Record(id=record_id, fields=values))

    logger.info("Records extracted", extra={"record_count": len(records), "rows_seen": limit})
    return records
