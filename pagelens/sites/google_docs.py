"""Google Docs extraction — document blocks from SVG or paragraph rendering.

Docs renders either an SVG canvas (``g[role=paragraph]`` groups carrying
their text in ``rect[aria-label]``) or classic paragraph elements. The SVG
form is tried first; the paragraph form next; the whole container text is
the last resort.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pagelens.browser.dom import Document, Node
from pagelens.config.settings import GoogleDocsParams, PollingConfig
from pagelens.pipeline.coercion import parse_number
from pagelens.pipeline.extraction import isoformat_utc, utc_now
from pagelens.pipeline.manager import guard_extraction
from pagelens.pipeline.readiness import wait_until_ready
from pagelens.pipeline.resolver import exists, resolve, resolve_all, resolve_text

logger = logging.getLogger(__name__)

CONTENT_SELECTORS = (
    ".kix-appview-editor",
    '[role="textbox"]',
    ".docs-texteventtarget-iframe",
    ".kix-page-paginated",
)
SVG_PARAGRAPH_SELECTOR = 'g[data-section-type="body"][role="paragraph"]'
PARAGRAPH_SELECTORS = (
    ".kix-paragraphrenderer",
    '[role="paragraph"]',
    ".kix-lineview-text-block",
)
TITLE_SELECTORS = (".docs-title-input-label-inner", "#docs-title-widget .docs-title-input-label")
COMMENT_SELECTORS = (".docos-anchoreddocoview", ".docos-docoview-rootreply")
COMMENT_AUTHOR_SELECTORS = (".docos-author", ".docos-anchoredreplyview-author")
COMMENT_BODY_SELECTORS = (".docos-replyview-body", ".docos-anchoredreplyview-body")
COMMENT_TIME_SELECTORS = (".docos-replyview-timestamp", ".docos-anchoredreplyview-timestamp")

HEADING_KEYWORDS = re.compile(r"^(Deployment|Frontend|Backend|Introduction|Conclusion)", re.I)
SVG_LIST_MARKERS = (re.compile(r"^\s*[-•*]\s+"), re.compile(r"^\s*\d+[.)]\s+"))
PARAGRAPH_LIST_MARKER = re.compile(r"^\w[.)]\s")
QUOTE_INDENT_PX = 120
QUOTE_MARGIN_PX = 40

_TRANSFORM_X_RE = re.compile(r"matrix\([^,]+,[^,]+,[^,]+,[^,]+,\s*(\d+)")
_FONT_CSS_RE = re.compile(r'(\d+)\s+([\d.]+)px\s+"([^"]+)"')
_TITLE_SUFFIX = " - Google Docs"


def inline_style(declarations: str | None) -> dict[str, str]:
    """Parse an inline ``style`` attribute into a property map."""
    style: dict[str, str] = {}
    for declaration in (declarations or "").split(";"):
        prop, sep, value = declaration.partition(":")
        if sep and prop.strip():
            style[prop.strip().lower()] = value.strip()
    return style


def _px(value: str | None) -> float:
    return parse_number(value) or 0.0


# --- SVG rendering ---


def svg_block_type(text: str, transform: str | None) -> str:
    if HEADING_KEYWORDS.match(text):
        return "heading1"
    if any(marker.match(text) for marker in SVG_LIST_MARKERS):
        return "list_item"
    if transform:
        match = _TRANSFORM_X_RE.search(transform)
        if match and int(match.group(1)) > QUOTE_INDENT_PX:
            return "quote"
    return "paragraph"


async def _svg_formatting(group: Node) -> dict[str, Any]:
    formatting: dict[str, Any] = {
        "bold": False,
        "italic": False,
        "underline": False,
        "fontSize": None,
        "fontFamily": None,
        "color": None,
    }
    rect = await group.query("rect[data-font-css]")
    font_css = await rect.attribute("data-font-css") if rect else None
    match = _FONT_CSS_RE.search(font_css or "")
    if match:
        formatting["bold"] = int(match.group(1)) >= 700
        formatting["fontSize"] = f"{float(match.group(2)):g}px"
        formatting["fontFamily"] = match.group(3)
    return formatting


async def _svg_blocks(container: Node, params: GoogleDocsParams) -> list[dict[str, Any]]:
    groups = await container.query_all(SVG_PARAGRAPH_SELECTOR)
    blocks = []
    for index, group in enumerate(groups[: min(params.max_blocks, len(groups))]):
        parts = []
        for rect in await group.query_all("rect[aria-label]"):
            label = (await rect.attribute("aria-label") or "").strip()
            if label:
                parts.append(label)
        if not parts:
            continue

        text = " ".join(parts)
        block: dict[str, Any] = {
            "index": index,
            "type": svg_block_type(text, await group.attribute("transform"))
            if params.include_structure
            else "paragraph",
            "text": text,
        }
        if params.include_formatting:
            block["formatting"] = await _svg_formatting(group)
        blocks.append(block)
    return blocks


# --- Paragraph rendering ---


async def paragraph_block_type(paragraph: Node, text: str) -> str:
    style = inline_style(await paragraph.attribute("style"))
    font_size = _px(style.get("font-size"))
    if font_size > 20 or style.get("font-weight") == "bold":
        return "heading1"
    if font_size > 16:
        return "heading2"
    if font_size > 14:
        return "heading3"
    if await paragraph.closest("ul, ol") is not None or PARAGRAPH_LIST_MARKER.match(text):
        return "list_item"
    if _px(style.get("margin-left")) > QUOTE_MARGIN_PX:
        return "quote"
    return "paragraph"


def paragraph_formatting(style: dict[str, str]) -> dict[str, Any]:
    weight = style.get("font-weight", "")
    return {
        "fontSize": style.get("font-size"),
        "fontWeight": weight or None,
        "fontStyle": style.get("font-style"),
        "textAlign": style.get("text-align"),
        "color": style.get("color"),
        "bold": weight == "bold" or (weight.isdigit() and int(weight) > 400),
        "italic": style.get("font-style") == "italic",
        "underline": "underline" in style.get("text-decoration", ""),
    }


async def _paragraph_blocks(container: Node, params: GoogleDocsParams) -> list[dict[str, Any]]:
    paragraphs = await resolve_all(PARAGRAPH_SELECTORS, container)
    blocks = []
    for index, paragraph in enumerate(paragraphs[: min(params.max_blocks, len(paragraphs))]):
        text = (await paragraph.text()).strip()
        if not text:
            continue
        block: dict[str, Any] = {
            "index": index,
            "type": await paragraph_block_type(paragraph, text)
            if params.include_structure
            else "paragraph",
            "text": text,
        }
        if params.include_formatting:
            block["formatting"] = paragraph_formatting(inline_style(await paragraph.attribute("style")))
        blocks.append(block)
    return blocks


async def extract_blocks(document: Document, params: GoogleDocsParams) -> list[dict[str, Any]]:
    container = await resolve(CONTENT_SELECTORS, document, accept=None)
    if container is None:
        return []

    blocks = await _svg_blocks(container, params)
    if blocks:
        return blocks

    blocks = await _paragraph_blocks(container, params)
    if blocks:
        return blocks

    text = (await container.text()).strip()
    return [{"index": 0, "type": "paragraph", "text": text}] if text else []


async def _comments(document: Document) -> list[dict[str, Any]]:
    comments = []
    for thread in await resolve_all(COMMENT_SELECTORS, document):
        text = await resolve_text(COMMENT_BODY_SELECTORS, thread)
        if not text:
            continue
        comments.append(
            {
                "author": await resolve_text(COMMENT_AUTHOR_SELECTORS, thread) or "",
                "text": text,
                "timestamp": await resolve_text(COMMENT_TIME_SELECTORS, thread) or "",
            }
        )
    return comments


async def document_title(document: Document) -> str:
    title = await resolve_text(TITLE_SELECTORS, document)
    if title:
        return title
    title = (await document.title()).strip()
    if title.endswith(_TITLE_SUFFIX):
        title = title[: -len(_TITLE_SUFFIX)]
    return title or "Untitled document"


async def extract_document_content(
    document: Document,
    params: GoogleDocsParams | None = None,
    polling: PollingConfig | None = None,
) -> dict[str, Any]:
    """Extract blocks (and optionally comments) from an open Google Doc."""
    params = params or GoogleDocsParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await wait_until_ready(
            lambda: exists(CONTENT_SELECTORS, document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        content = await extract_blocks(document, params)
        comments = await _comments(document) if params.include_comments else []
        word_count = sum(len(block["text"].split()) for block in content)
        logger.info("Document extracted", extra={"block_count": len(content), "word_count": word_count})

        return {
            "document": {"url": document.url, "title": await document_title(document)},
            "content": content,
            "comments": comments,
            "metadata": {"totalBlocks": len(content), "wordCount": word_count},
            "extractedAt": isoformat_utc(utc_now()),
        }

    return await guard_extraction(document, "document", body)
