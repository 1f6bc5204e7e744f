"""Lark wiki extraction — document info, content blocks, tables, images and comments."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urljoin

from pagelens.browser.dom import Document, Node
from pagelens.config.settings import LarkDocsParams, PollingConfig
from pagelens.pipeline.extraction import isoformat_utc, utc_now
from pagelens.pipeline.manager import guard_extraction
from pagelens.pipeline.readiness import wait_until_ready
from pagelens.pipeline.resolver import exists, resolve, resolve_all, resolve_text

logger = logging.getLogger(__name__)

READY_CONTENT_SELECTORS = (".page-block-content", ".text-editor", ".ace-line", ".zone-container")
READY_TITLE_SELECTORS = ("h1.page-block-content", ".page-block-content h1")
TITLE_SELECTORS = (
    "h1.page-block-content .ace-line",
    ".breadcrumb-container-item__value",
    "#ssrHeaderTitle",
    ".note-title__input",
    "h1",
    ".page-block-content",
)
LAST_MODIFIED_SELECTORS = (".note-title__time", '[data-testid="metaTime"]', ".doc-info-time-item")
AUTHOR_SELECTORS = (".docs-info-avatar-name-text", ".note-avatar", ".editor-info")
CONTENT_CONTAINER_SELECTORS = (".page-block-children", ".root-render-unit-container")
TITLE_BLOCK_SELECTOR = "h1.page-block-content .ace-line"
BLOCK_SELECTOR = '.block[data-block-type]:not([data-block-type="page"])'
MENTION_SELECTOR = ".mention-doc-embed-container"
TABLE_SELECTORS = ("table", ".docx-table-block", '[data-block-type="table"]', ".table-block")
IMAGE_AREA_SELECTORS = (".page-block-children", ".editor-container")
IMAGE_CHROME_SELECTOR = ".navigation-bar, .sidebar, .header, .avatar, .icon, .docs-info, .note-avatar"
IMAGE_SKIP_MARKERS = ("data:image", "avatar", "static-resource")
CAPTION_CONTAINER_SELECTOR = "figure, .image-block, .image-container"
CAPTION_SELECTORS = (".image-caption", ".caption", "figcaption")
COMMENT_SELECTORS = (".comment-item", ".docx-comment", '[data-testid*="comment"]')

DOCUMENT_ID_PATTERNS = (
    re.compile(r"wiki/([a-zA-Z0-9]+)"),
    re.compile(r"docx/([a-zA-Z0-9]+)"),
    re.compile(r"/([a-zA-Z0-9]{17,})"),
)
_INVISIBLE_RE = re.compile("[\u200b-\u200d\ufeff]")


def strip_invisible(text: str | None) -> str:
    return _INVISIBLE_RE.sub("", text or "").strip()


def document_id(url: str) -> str | None:
    for pattern in DOCUMENT_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


async def block_text(element: Node) -> str:
    """Visible text of a block line, without zero-width characters."""
    if "ace-line" in (await element.attribute("class") or "").split():
        parts = []
        for span in await element.query_all('span[data-string="true"]'):
            part = strip_invisible(await span.text())
            if part:
                parts.append(part)
        if parts:
            return " ".join(parts)
    return strip_invisible(await element.text())


# --- Document info ---


async def _title(document: Document) -> str:
    for selector in TITLE_SELECTORS:
        node = await resolve((selector,), document, accept=None)
        if node is None:
            continue
        title = strip_invisible(await node.text())
        if title:
            return title
    return (await document.title()) or "Untitled Document"


async def _author(document: Document) -> str | None:
    for selector in AUTHOR_SELECTORS:
        node = await resolve((selector,), document, accept=None)
        if node is None:
            continue
        author = (await node.text()).strip() or await node.attribute("title")
        if author:
            return author
    return None


async def _last_modified(document: Document) -> str | None:
    node = await resolve(LAST_MODIFIED_SELECTORS, document, accept=None)
    return (await node.text()).strip() if node else None


async def document_info(document: Document) -> dict[str, Any]:
    return {
        "url": document.url,
        "title": await _title(document),
        "id": document_id(document.url),
        "lastModified": await _last_modified(document),
        "author": await _author(document),
    }


# --- Content ---


async def _block_content(block: Node, block_type: str, base_url: str) -> tuple[str, str]:
    line = await block.query(".ace-line")
    if line is None:
        return block_type, ""

    text = await block_text(line)
    mention = await line.query(MENTION_SELECTOR)
    if mention is not None:
        link = await mention.query("a")
        if link is not None:
            label = (await link.text()).strip()
            href = urljoin(base_url, await link.attribute("href") or "")
            return "mention", f"[{label}]({href})"
        return "mention", text
    return block_type, text


async def content_blocks(document: Document, max_blocks: int) -> list[dict[str, Any]]:
    """Title block plus each typed content block, de-duplicated by text."""
    container = await resolve(CONTENT_CONTAINER_SELECTORS, document, accept=None)
    if container is None:
        logger.info("No content container found", extra={"url": document.url})
        return []

    blocks: list[dict[str, Any]] = []
    seen: set[str] = set()

    title = await document.query(TITLE_BLOCK_SELECTOR)
    if title is not None:
        text = await block_text(title)
        if text:
            blocks.append(
                {
                    "index": 0,
                    "type": "title",
                    "content": text,
                    "metadata": {
                        "tagName": "h1",
                        "className": "title",
                        "blockType": "title",
                        "blockId": "title",
                    },
                }
            )
            seen.add(text)

    elements = await container.query_all(BLOCK_SELECTOR)
    for element in elements[: min(max_blocks, len(elements))]:
        declared = await element.attribute("data-block-type") or "text"
        if declared == "table":
            continue
        block_type, text = await _block_content(element, declared, document.url)
        if not text or text in seen:
            continue
        seen.add(text)
        blocks.append(
            {
                "index": len(blocks),
                "type": block_type,
                "content": text,
                "metadata": {
                    "tagName": await element.tag_name(),
                    "className": await element.attribute("class") or "",
                    "blockType": declared,
                    "blockId": await element.attribute("data-block-id"),
                },
            }
        )

    logger.info("Content blocks extracted", extra={"block_count": len(blocks)})
    return blocks


async def tables(document: Document) -> list[dict[str, Any]]:
    extracted = []
    for table_index, table in enumerate(await resolve_all(TABLE_SELECTORS, document)):
        rows = await table.query_all("tr")
        data: dict[str, Any] = {
            "index": table_index,
            "rows": [],
            "rowCount": len(rows),
            "columnCount": 0,
        }
        for row_index, row in enumerate(rows):
            cells = await row.query_all("td, th")
            data["columnCount"] = max(data["columnCount"], len(cells))
            data["rows"].append(
                {
                    "index": row_index,
                    "isHeader": row_index == 0 or await row.query("th") is not None,
                    "cells": [(await cell.text()).strip() for cell in cells],
                }
            )
        if data["rows"]:
            extracted.append(data)
    return extracted


async def _caption(image: Node) -> str | None:
    container = await image.closest(CAPTION_CONTAINER_SELECTOR)
    if container is None:
        return None
    caption = await resolve(CAPTION_SELECTORS, container, accept=None)
    return (await caption.text()).strip() if caption else None


async def images(document: Document) -> list[dict[str, Any]]:
    area = await resolve(IMAGE_AREA_SELECTORS, document, accept=None)
    if area is None:
        return []

    extracted: list[dict[str, Any]] = []
    for image in await area.query_all("img[src]"):
        src = await image.attribute("src") or ""
        if not src or any(marker in src for marker in IMAGE_SKIP_MARKERS):
            continue
        if await image.closest(IMAGE_CHROME_SELECTOR) is not None:
            continue
        extracted.append(
            {
                "index": len(extracted),
                "src": urljoin(document.url, src),
                "alt": await image.attribute("alt") or "",
                "width": await image.attribute("width"),
                "height": await image.attribute("height"),
                "caption": await _caption(image),
            }
        )
    return extracted


async def comments(document: Document) -> list[dict[str, Any]]:
    extracted = []
    for index, comment in enumerate(await resolve_all(COMMENT_SELECTORS, document)):
        text = await resolve_text((".comment-text", ".content"), comment)
        if not text:
            continue
        extracted.append(
            {
                "index": index,
                "author": await resolve_text((".comment-author", ".author"), comment) or "Unknown",
                "text": text,
                "timestamp": await resolve_text((".comment-time", ".time"), comment),
            }
        )
    return extracted


def word_count(blocks: list[dict[str, Any]]) -> int:
    return sum(len(block["content"].split()) for block in blocks if block.get("content"))


async def _wiki_ready(document: Document) -> bool:
    return await exists(READY_CONTENT_SELECTORS, document) and await exists(
        READY_TITLE_SELECTORS, document
    )


async def extract_document_content(
    document: Document,
    params: LarkDocsParams | None = None,
    polling: PollingConfig | None = None,
) -> dict[str, Any]:
    """Extract a Lark wiki page."""
    params = params or LarkDocsParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await wait_until_ready(
            lambda: _wiki_ready(document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        content = await content_blocks(document, params.max_blocks)
        table_data = await tables(document) if params.include_tables else []
        image_data = await images(document) if params.include_images else []
        comment_data = await comments(document) if params.include_comments else []

        return {
            "document": await document_info(document),
            "content": content,
            "tables": table_data,
            "images": image_data,
            "comments": comment_data,
            "metadata": {
                "totalBlocks": len(content),
                "totalTables": len(table_data),
                "totalImages": len(image_data),
                "totalComments": len(comment_data),
                "wordCount": word_count(content),
            },
            "extractedAt": isoformat_utc(utc_now()),
        }

    return await guard_extraction(document, "document", body)
