"""Field type inference — derive a column's semantic type from header markup.

Markup is the only signal available and no single signal survives every
page revision, so inference walks a fixed priority ladder and stops at the
first hit:

1. explicit machine-readable type attribute on the header
2. icon signature (icon href matched against ``ICON_PATTERNS``)
3. class-name keywords on the icon, then on the header (``CLASS_KEYWORDS``)
4. keywords in the header's visible label (``LABEL_KEYWORDS``)
5. ``FieldType.SINGLE_LINE_TEXT``
"""

from __future__ import annotations

import logging
from enum import Enum

from pagelens.browser.dom import Node, class_tokens
from pagelens.pipeline.resolver import resolve

logger = logging.getLogger(__name__)


class FieldType(str, Enum):
    """Closed set of semantic field types."""

    SINGLE_LINE_TEXT = "singleLineText"
    LONG_TEXT = "longText"
    NUMBER = "number"
    DATE = "date"
    CHECKBOX = "checkbox"
    SELECT = "select"
    MULTIPLE_SELECT = "multipleSelect"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phoneNumber"
    ATTACHMENT = "attachment"
    FOREIGN_KEY = "foreignKey"
    FORMULA = "formula"
    ROLLUP = "rollup"
    CURRENCY = "currency"
    PERCENT = "percent"
    DURATION = "duration"
    RATING = "rating"

    @classmethod
    def parse(cls, value: str | None) -> FieldType | None:
        """Look up a member by its wire value (case-insensitive)."""
        if not value:
            return None
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


TYPE_ATTRIBUTES: tuple[str, ...] = ("data-columntype", "data-column-type", "data-field-type")

ICON_SELECTORS: tuple[str, ...] = (
    'svg use[href*="#"]',
    'svg use[xlink\\:href*="#"]',
    '.icon use[href*="#"]',
    'use[href*="#"]',
    "svg",
    '[class*="icon"]',
)

# Order is load-bearing: the first matching pattern decides.
ICON_PATTERNS: tuple[tuple[tuple[str, ...], FieldType], ...] = (
    (("#SingleLineText", "#Text"), FieldType.SINGLE_LINE_TEXT),
    (("#Number",), FieldType.NUMBER),
    (("#Date", "#Calendar"), FieldType.DATE),
    (("#SingleSelect",), FieldType.SELECT),
    (("#MultipleSelect",), FieldType.MULTIPLE_SELECT),
    (("#Checkbox", "#CheckBold", "#Check"), FieldType.CHECKBOX),
    (("#MultipleAttachment", "#Attachment"), FieldType.ATTACHMENT),
    (("#Url", "#Link"), FieldType.URL),
    (("#Email",), FieldType.EMAIL),
    (("#Phone",), FieldType.PHONE_NUMBER),
    (("#Formula",), FieldType.FORMULA),
    (("#Rollup",), FieldType.ROLLUP),
    (("#ForeignKey", "#LinkedRecord"), FieldType.FOREIGN_KEY),
    (("#LongText", "#RichText"), FieldType.LONG_TEXT),
    (("#Currency",), FieldType.CURRENCY),
    (("#Percent",), FieldType.PERCENT),
    (("#Duration",), FieldType.DURATION),
    (("#Rating",), FieldType.RATING),
)

CLASS_KEYWORDS: tuple[tuple[tuple[str, ...], FieldType], ...] = (
    (("text",), FieldType.SINGLE_LINE_TEXT),
    (("number",), FieldType.NUMBER),
    (("date",), FieldType.DATE),
    (("multipleselect", "multiselect"), FieldType.MULTIPLE_SELECT),
    (("select",), FieldType.SELECT),
    (("checkbox",), FieldType.CHECKBOX),
    (("attachment",), FieldType.ATTACHMENT),
    (("link", "url"), FieldType.URL),
    (("email",), FieldType.EMAIL),
    (("phone",), FieldType.PHONE_NUMBER),
    (("formula",), FieldType.FORMULA),
    (("rollup",), FieldType.ROLLUP),
    (("foreign",), FieldType.FOREIGN_KEY),
    (("currency",), FieldType.CURRENCY),
    (("percent",), FieldType.PERCENT),
    (("duration",), FieldType.DURATION),
    (("rating",), FieldType.RATING),
)

# UI state classes that collide with type keywords ("selected" vs "select").
STATE_CLASSES = frozenset({"selected", "unselected", "active", "focused", "hover"})

LABEL_KEYWORDS: tuple[tuple[tuple[str, ...], FieldType], ...] = (
    (("date",), FieldType.DATE),
    (("quantity", "number", "count"), FieldType.NUMBER),
    (("photo", "image", "attachment"), FieldType.ATTACHMENT),
    (("email",), FieldType.EMAIL),
    (("phone",), FieldType.PHONE_NUMBER),
    (("url", "link"), FieldType.URL),
)


def _match_table(
    haystack: str, table: tuple[tuple[tuple[str, ...], FieldType], ...]
) -> FieldType | None:
    for needles, field_type in table:
        if any(needle in haystack for needle in needles):
            return field_type
    return None


def match_icon_href(href: str) -> FieldType | None:
    return _match_table(href, ICON_PATTERNS) if href else None


def match_class_names(class_names: list[str]) -> FieldType | None:
    for token in class_names:
        if token in STATE_CLASSES:
            continue
        field_type = _match_table(token, CLASS_KEYWORDS)
        if field_type is not None:
            return field_type
    return None


def match_label(label: str) -> FieldType | None:
    return _match_table(label.lower(), LABEL_KEYWORDS)


async def explicit_type(header: Node) -> FieldType | None:
    for attribute in TYPE_ATTRIBUTES:
        raw = await header.attribute(attribute)
        if not raw:
            continue
        field_type = FieldType.parse(raw)
        if field_type is not None:
            return field_type
        logger.debug("Unknown explicit field type", extra={"attribute": attribute, "value": raw})
    return None


async def infer_field_type(header: Node) -> FieldType:
    """Infer the semantic type of the column introduced by ``header``."""
    field_type = await explicit_type(header)
    if field_type is not None:
        return field_type

    icon = await resolve(ICON_SELECTORS, header, accept=None)
    if icon is not None:
        href = await icon.attribute("href") or await icon.attribute("xlink:href") or ""
        field_type = match_icon_href(href)
        if field_type is not None:
            return field_type
        field_type = match_class_names(await class_tokens(icon))
        if field_type is not None:
            return field_type

    field_type = match_class_names(await class_tokens(header))
    if field_type is not None:
        return field_type

    field_type = match_label(await header.text())
    if field_type is not None:
        return field_type

    return FieldType.SINGLE_LINE_TEXT
