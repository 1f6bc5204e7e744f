"""Value coercion — turn a rendered cell into a typed value.

Dispatch is a closed table with exactly one handler per ``FieldType``.
A handler returns ``None`` when the cell holds nothing worth storing; the
record extractor then omits the field instead of storing an empty value.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from pagelens.browser.dom import Node
from pagelens.pipeline.field_types import FieldType
from pagelens.pipeline.resolver import resolve, resolve_all

Coercer = Callable[[Node, str, bool], Awaitable[Any]]

_NUMBER_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?|-?\.\d+")
_COUNT_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")

# (pattern, strptime formats) in priority order
DATE_PATTERNS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = (
    (re.compile(r"\d{1,2}/\d{1,2}/\d{4}"), ("%m/%d/%Y",)),
    (re.compile(r"\d{4}-\d{2}-\d{2}"), ("%Y-%m-%d",)),
    (re.compile(r"[A-Za-z]+\.? \d{1,2}, \d{4}"), ("%B %d, %Y", "%b %d, %Y", "%b. %d, %Y")),
)

CHECKMARK_GLYPHS = frozenset({"✓", "✔", "☑", "✅"})

CHECKED_INDICATORS: tuple[str, ...] = (
    'svg use[href*="Check"]',
    ".checkbox.checked",
    '.checkbox[class*="checked"]',
)
TOKEN_SELECTORS: tuple[str, ...] = (
    ".choiceToken",
    ".cellToken",
    '[class*="pill"]',
    '[class*="token"]',
)
LINKED_RECORD_SELECTORS: tuple[str, ...] = (
    ".foreign-key-blue",
    '[class*="foreign"]',
    '[class*="linked"]',
)
COMPUTED_VALUE_SELECTORS: tuple[str, ...] = (
    ".computed-value",
    '[class*="computed"]',
)


def parse_number(text: str | None) -> float | None:
    """First numeric-looking substring as a float; None when there is none."""
    if not text:
        return None
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def parse_count(text: str | None) -> float:
    """Parse abbreviated counters such as ``1.2k`` or ``3,401``; 0 when absent."""
    if not text:
        return 0.0
    match = _COUNT_RE.search(text)
    if not match:
        return 0.0
    value = float(match.group(0).replace(",", ""))
    tail = text[match.end():match.end() + 2]
    suffix = tail[:1].lower() if not tail[1:].isalpha() else ""
    if suffix == "k":
        return value * 1000
    if suffix == "m":
        return value * 1_000_000
    return value


def parse_date(text: str, formatted: bool) -> str | None:
    """Match ``text`` against ``DATE_PATTERNS``.

    Formatted output keeps the matched text; otherwise the match becomes an
    ISO-8601 instant. Text that matches no pattern, or whose match does not
    parse, is returned unchanged.
    """
    if not text:
        return None
    for pattern, formats in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        matched = match.group(0)
        if formatted:
            return matched
        for fmt in formats:
            try:
                moment = datetime.strptime(matched, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
            return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")
        return text
    return text


async def _texts(nodes: list[Node]) -> list[str]:
    values = []
    for node in nodes:
        value = (await node.text()).strip()
        if value:
            values.append(value)
    return values


# --- Handlers ---


async def _coerce_text(cell: Node, text: str, formatted: bool) -> Any:
    return text or None


async def _coerce_checkbox(cell: Node, text: str, formatted: bool) -> Any:
    explicit = await cell.attribute("aria-checked")
    if explicit is not None:
        return explicit.strip().lower() == "true"
    markers = await cell.query_all("[aria-checked]")
    if markers:
        for marker in markers:
            if (await marker.attribute("aria-checked") or "").strip().lower() == "true":
                return True
        return False
    if await resolve(CHECKED_INDICATORS, cell, accept=None) is not None:
        return True
    return text in CHECKMARK_GLYPHS


async def _coerce_number(cell: Node, text: str, formatted: bool) -> Any:
    return parse_number(text)


async def _coerce_date(cell: Node, text: str, formatted: bool) -> Any:
    return parse_date(text, formatted)


async def _coerce_select(cell: Node, text: str, formatted: bool) -> Any:
    tokens = await resolve_all(TOKEN_SELECTORS, cell)
    if not tokens:
        return text or None
    values = await _texts(tokens)
    return values[0] if values else None


async def _coerce_multiple_select(cell: Node, text: str, formatted: bool) -> Any:
    tokens = await resolve_all(TOKEN_SELECTORS, cell)
    if not tokens:
        return text or None
    return await _texts(tokens) or None


async def _coerce_link(cell: Node, text: str, formatted: bool) -> Any:
    anchor = await cell.query("a[href]")
    if anchor is None:
        return text or None
    href = await anchor.attribute("href") or ""
    if formatted:
        return {"url": href, "label": (await anchor.text()).strip()}
    return href or None


async def _coerce_attachment(cell: Node, text: str, formatted: bool) -> Any:
    attachments: list[dict[str, str]] = []
    for image in await cell.query_all("img"):
        src = await image.attribute("src")
        if src:
            attachments.append(
                {"kind": "image", "url": src, "filename": await image.attribute("alt") or "image"}
            )
    for link in await cell.query_all("a[href]"):
        href = await link.attribute("href") or ""
        if href.startswith("javascript:"):
            continue
        attachments.append(
            {"kind": "file", "url": href, "filename": (await link.text()).strip() or "attachment"}
        )
    if attachments:
        return attachments
    return text or None


async def _coerce_foreign_key(cell: Node, text: str, formatted: bool) -> Any:
    markers = await resolve_all(LINKED_RECORD_SELECTORS, cell)
    if markers:
        return await _texts(markers) or None
    return text or None


async def _coerce_computed(cell: Node, text: str, formatted: bool) -> Any:
    computed = await resolve(COMPUTED_VALUE_SELECTORS, cell, accept=None)
    if computed is not None:
        return (await computed.text()).strip() or None
    return text or None


COERCERS: dict[FieldType, Coercer] = {
    FieldType.SINGLE_LINE_TEXT: _coerce_text,
    FieldType.LONG_TEXT: _coerce_text,
    FieldType.NUMBER: _coerce_number,
    FieldType.DATE: _coerce_date,
    FieldType.CHECKBOX: _coerce_checkbox,
    FieldType.SELECT: _coerce_select,
    FieldType.MULTIPLE_SELECT: _coerce_multiple_select,
    FieldType.URL: _coerce_link,
    FieldType.EMAIL: _coerce_link,
    FieldType.PHONE_NUMBER: _coerce_text,
    FieldType.ATTACHMENT: _coerce_attachment,
    FieldType.FOREIGN_KEY: _coerce_foreign_key,
    FieldType.FORMULA: _coerce_computed,
    FieldType.ROLLUP: _coerce_computed,
    FieldType.CURRENCY: _coerce_number,
    FieldType.PERCENT: _coerce_number,
    FieldType.DURATION: _coerce_text,
    FieldType.RATING: _coerce_text,
}


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


async def coerce_value(cell: Node, field_type: FieldType, formatted: bool) -> Any:
    """Coerce ``cell`` to a value of ``field_type``; None means omit the field."""
    text = (await cell.text()).strip()
    value = await COERCERS[field_type](cell, text, formatted)
    return None if is_empty(value) else value
