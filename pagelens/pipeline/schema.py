"""Field schema discovery from header elements."""

from __future__ import annotations

import logging
from typing import Sequence

from pagelens.browser.dom import Node
from pagelens.pipeline.extraction import FieldDescriptor
from pagelens.pipeline.field_types import FieldType, infer_field_type
from pagelens.pipeline.resolver import resolve_text

logger = logging.getLogger(__name__)

DEFAULT_NAME_SELECTORS: tuple[str, ...] = (
    ".nameAndDescription .truncate-pre",
    ".name .truncate-pre",
    ".contentWrapper .truncate-pre",
    ".truncate-pre",
    ".name",
    ".contentWrapper",
    'span:not([class*="icon"])',
    'div:not([class*="icon"])',
)
DEFAULT_ID_ATTRIBUTES: tuple[str, ...] = ("data-columnid", "data-column-id")

SORT_GLYPHS = "▼▲▾▴↑↓⌄⌃"


def is_sort_glyph(name: str) -> bool:
    return not name.strip(SORT_GLYPHS + " \t\r\n")


async def header_name(header: Node, name_selectors: Sequence[str] = DEFAULT_NAME_SELECTORS) -> str:
    """Display name of a header: first non-empty label container, else its first text line."""
    name = await resolve_text(name_selectors, header)
    if name:
        return name
    lines = (await header.text()).strip().split("\n")
    return lines[0].strip()


async def native_id(node: Node, attributes: Sequence[str]) -> str | None:
    for attribute in attributes:
        value = await node.attribute(attribute)
        if value:
            return value
    return None


async def build_fields(
    headers: Sequence[Node],
    infer_types: bool,
    *,
    name_selectors: Sequence[str] = DEFAULT_NAME_SELECTORS,
    id_attributes: Sequence[str] = DEFAULT_ID_ATTRIBUTES,
) -> list[FieldDescriptor]:
    """Build the ordered field schema from header elements in document order.

    Headers with an empty or glyph-only name are skipped, as are repeats of a
    native id already accepted (the same column rendered in two panes).
    Indices count accepted headers only.
    """
    fields: list[FieldDescriptor] = []
    seen_ids: set[str] = set()

    for header in headers:
        name = await header_name(header, name_selectors)
        if not name or is_sort_glyph(name):
            continue

        index = len(fields)
        field_id = await native_id(header, id_attributes) or f"field_{index}"
        if field_id in seen_ids:
            logger.debug("Skipping repeated header", extra={"field_id": field_id})
            continue
        seen_ids.add(field_id)

        field_type = await infer_field_type(header) if infer_types else FieldType.SINGLE_LINE_TEXT
        fields.append(FieldDescriptor(id=field_id, name=name, index=index, type=field_type))

    logger.info("Field schema built", extra={"field_count": len(fields)})
    return fields
