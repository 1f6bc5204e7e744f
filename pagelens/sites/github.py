"""GitHub extraction — repository overview and repository search results."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urljoin, urlparse

from pagelens.browser.dom import Document, Node
from pagelens.config.settings import (
    PacingConfig,
    PollingConfig,
    RepositoryParams,
    RepositorySearchParams,
)
from pagelens.pipeline.coercion import parse_count
from pagelens.pipeline.extraction import isoformat_utc, utc_now
from pagelens.pipeline.manager import guard_extraction
from pagelens.pipeline.pacing import settle
from pagelens.pipeline.readiness import wait_until_ready
from pagelens.pipeline.resolver import exists, has_text_or_href, resolve, resolve_all

logger = logging.getLogger(__name__)

GITHUB_ORIGIN = "https://github.com"
README_LIMIT = 3000
CLICK_SETTLE_MS = 800

REPO_NAME_SELECTORS = (
    'a[data-pjax="#repo-content-pjax-container"][href*="/"]',
    'a[data-turbo-frame="repo-content-turbo-frame"]',
    "h1 strong a",
    "h1 a",
)
DESCRIPTION_SELECTORS = (
    'p[data-pjax="#repo-content-pjax-container"]',
    '[itemprop="about"]',
    ".f4.my-3",
    ".BorderGrid-cell p.f4",
)
STAT_SELECTORS: dict[str, tuple[str, ...]] = {
    "stars": (
        "#repo-stars-counter-star",
        '.js-social-count[href*="stargazers"]',
        'a[href*="/stargazers"] strong',
        'a[href*="/stargazers"] span',
        '.Counter[title*="star"]',
    ),
    "forks": (
        "#repo-network-counter",
        '.js-social-count[href*="forks"]',
        'a[href*="/forks"] strong',
        'a[href*="/forks"] span',
        '.Counter[title*="fork"]',
    ),
    "watchers": (
        "#repo-watchers-counter",
        '.js-social-count[href*="watchers"]',
        'a[href*="/watchers"] strong',
        'a[href*="/watchers"] span',
    ),
}
FILE_ROW_SELECTORS = (
    ".react-directory-row",
    'tr[id^="folder-row-"]',
    'tr[id^="file-row-"]',
    ".js-navigation-item",
    '[data-testid="file-row"]',
)
FILE_LINK_SELECTOR = 'a[href*="/blob/"], a[href*="/tree/"], .Link--primary[href*="/"]'
FILE_TIME_SELECTOR = "relative-time, time-ago, time[datetime]"
DIRECTORY_ICON_SELECTOR = ".octicon-file-directory-fill, .icon-directory"
LANGUAGE_BAR_SELECTORS = (
    ".BorderGrid-row .ml-3 .Progress",
    ".repository-lang-stats-graph",
    '[data-testid="language-stats"]',
)
LANGUAGE_SELECTORS = (
    ".BorderGrid-row .ml-3 .d-flex .text-mono",
    '[data-ga-click*="language"]',
    ".repository-lang-stats .lang",
    ".Progress-item",
)
README_SELECTORS = (
    "article.markdown-body.entry-content.container-lg",
    '[data-testid="readme"] .Box-body',
    "#readme .Box-body",
    ".readme .Box-body",
    'article[itemprop="text"]',
    ".Box .markdown-body",
)
README_LINK_SELECTOR = 'a[href*="README"], a[title*="README"], a[aria-label*="README"]'
README_FILE_LINK_SELECTOR = 'a[href*="/blob/"][href*="README"]'

RESULT_SELECTORS = (
    ".Box-sc-g0xbh4-0.gPrlij",
    ".repo-list-item",
    '[data-testid="results-list"] > div',
    ".search-result-item",
    'article[data-testid*="result"]',
    ".package-list-item",
)
RESULT_NAME_SELECTORS = (
    'a.prc-Link-Link-85e08[href*="/"]',
    ".search-title a",
    "h3 a",
    'a[href*="/"][data-testid*="result"]',
    ".f4 a",
    'a[href^="/"][href*="/"]',
)
RESULT_DESCRIPTION_SELECTORS = (
    ".Box-sc-g0xbh4-0.gKFdvh.search-match.prc-Text-Text-0ima0",
    "span.gKFdvh.search-match",
    ".search-match:not(em):not(.search-title)",
    "p.mb-1",
    ".search-result-description",
    "p.color-text-secondary",
    '[data-testid*="description"]',
)
RESULT_LANGUAGE_SELECTORS = (
    'span[aria-label*="language"]',
    '[itemprop="programmingLanguage"]',
    ".f6 .mr-3",
    ".language",
    'span[aria-label$=" language"]',
)
RESULT_STAR_SELECTORS = (
    'a[href*="/stargazers"] .prc-Text-Text-0ima0',
    'a[href*="/stargazers"]',
    ".octicon-star + span",
    ".octicon-star",
    '[aria-label*="star"]',
)
RESULT_UPDATED_SELECTORS = (
    'span[title*="202"]',
    'span[title*="ago"]',
    ".prc-Truncate-Truncate-A9Wn6 span[title]",
    "relative-time",
    "time-ago",
    "time[datetime]",
    '[title*="Updated"]',
)

_LANGUAGE_SHARE_RE = re.compile(r"(.+?)\s+([\d.]+%)")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str | None) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text.strip())


def normalize_url(href: str | None, base: str = GITHUB_ORIGIN) -> str:
    if not href:
        return ""
    if href.startswith("http"):
        return href
    if href.startswith("/"):
        return f"{GITHUB_ORIGIN}{href}"
    return urljoin(base, href)


# --- Repository page ---


async def _repository_name(document: Document) -> str | None:
    link = await resolve(REPO_NAME_SELECTORS, document, accept=has_text_or_href)
    if link is not None:
        href = await link.attribute("href")
        parts = [part for part in (href or "").split("/") if part]
        if href and len(parts) >= 2:
            return f"{parts[0]}/{parts[1]}"
        return (await link.text()).strip()

    match = re.match(r"/([^/]+/[^/]+)", urlparse(document.url).path)
    return match.group(1) if match else None


async def _files(document: Document, max_files: int) -> list[dict[str, Any]]:
    rows = await resolve_all(FILE_ROW_SELECTORS, document)
    if not rows:
        logger.info("No file rows found", extra={"url": document.url})
        return []

    files = []
    for row in rows[: min(max_files, len(rows))]:
        link = await row.query(FILE_LINK_SELECTOR)
        href = await link.attribute("href") if link else None
        if link is None or not href:
            continue

        aria_label = await link.attribute("aria-label") or ""
        file_name = (
            (await link.text()).strip()
            or await link.attribute("title")
            or aria_label.split(",")[0]
            or href.rstrip("/").rsplit("/", 1)[-1]
        )
        if not file_name:
            continue

        time_node = await row.query(FILE_TIME_SELECTOR)
        is_directory = (
            "/tree/" in href
            or "Directory" in aria_label
            or await row.query(DIRECTORY_ICON_SELECTOR) is not None
        )
        files.append(
            {
                "name": file_name,
                "type": "directory" if is_directory else "file",
                "url": urljoin(document.url, href),
                "lastModified": await time_node.attribute("datetime") if time_node else None,
            }
        )
    return files


async def _languages(document: Document, pacing: PacingConfig | None) -> list[dict[str, str]]:
    bar = await resolve(LANGUAGE_BAR_SELECTORS, document, accept=has_text_or_href)
    if bar is not None:
        await bar.click()
        await settle(CLICK_SETTLE_MS, pacing)

    languages = []
    for node in await resolve_all(LANGUAGE_SELECTORS, document):
        text = (await node.text()).strip()
        if not text:
            continue
        match = _LANGUAGE_SHARE_RE.match(text)
        if match:
            languages.append({"name": match.group(1), "percentage": match.group(2)})
        else:
            languages.append({"name": text, "percentage": "unknown"})
    return languages


async def _readme(document: Document, pacing: PacingConfig | None) -> str:
    body = await resolve(README_SELECTORS, document, accept=has_text_or_href)
    if body is None:
        link = await document.query(README_LINK_SELECTOR)
        if link is not None:
            await link.click()
            await settle(CLICK_SETTLE_MS, pacing)
            body = await resolve(README_SELECTORS, document, accept=has_text_or_href)

    if body is not None:
        return (await body.text()).strip()[:README_LIMIT]
    if await document.query(README_FILE_LINK_SELECTOR) is not None:
        return "README file found but content not accessible from main page"
    return ""


async def extract_repository_info(
    document: Document,
    params: RepositoryParams | None = None,
    polling: PollingConfig | None = None,
    pacing: PacingConfig | None = None,
) -> dict[str, Any]:
    """Extract name, description, counters and optional files/languages/README."""
    params = params or RepositoryParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await wait_until_ready(
            lambda: exists(REPO_NAME_SELECTORS, document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        repository: dict[str, Any] = {"url": document.url}
        name = await _repository_name(document)
        if name:
            repository["name"] = name

        description = await resolve(DESCRIPTION_SELECTORS, document, accept=has_text_or_href)
        if description is not None:
            repository["description"] = (await description.text()).strip()

        for stat, selectors in STAT_SELECTORS.items():
            counter = await resolve(selectors, document, accept=has_text_or_href)
            if counter is not None:
                repository[stat] = parse_count(await counter.text())

        result: dict[str, Any] = {
            "repository": repository,
            "files": await _files(document, params.max_files) if params.include_files else [],
            "languages": await _languages(document, pacing) if params.include_languages else [],
            "readme": await _readme(document, pacing) if params.include_readme else "",
            "extractedAt": isoformat_utc(utc_now()),
        }
        logger.info(
            "Repository extracted",
            extra={"repository": repository.get("name"), "file_count": len(result["files"])},
        )
        return result

    return await guard_extraction(document, "repository", body)


# --- Search results page ---


async def _first_in(item: Node, selectors: tuple[str, ...]) -> Node | None:
    return await resolve(selectors, item, accept=None)


async def _time_value(node: Node) -> str:
    return (
        await node.attribute("title")
        or await node.attribute("datetime")
        or (await node.text()).strip()
    )


async def _star_count(node: Node) -> float:
    text = (await node.text()).strip() or await node.attribute("aria-label") or ""
    if not text:
        parent = await node.closest('a[href*="/stargazers"]')
        if parent is not None:
            text = (await parent.text()).strip() or await parent.attribute("aria-label") or ""
    return parse_count(text)


async def _search_result(item: Node) -> dict[str, Any] | None:
    name_link = await _first_in(item, RESULT_NAME_SELECTORS)
    if name_link is None:
        return None

    description = await _first_in(item, RESULT_DESCRIPTION_SELECTORS)
    language = await _first_in(item, RESULT_LANGUAGE_SELECTORS)
    updated = await _first_in(item, RESULT_UPDATED_SELECTORS)
    stars = await _first_in(item, RESULT_STAR_SELECTORS)

    result: dict[str, Any] = {
        "name": clean_text(await name_link.text()),
        "url": normalize_url(await name_link.attribute("href")),
        "description": clean_text(await description.text()) if description else "",
        "language": clean_text(await language.text()) if language else "",
        "lastUpdated": await _time_value(updated) if updated else "",
    }
    if stars is not None:
        result["stars"] = await _star_count(stars)
    return result


async def extract_search_results(
    document: Document,
    params: RepositorySearchParams | None = None,
    polling: PollingConfig | None = None,
) -> dict[str, Any]:
    """Extract repository hits from an already rendered search results page."""
    params = params or RepositorySearchParams()
    polling = polling or PollingConfig()

    async def body() -> dict[str, Any]:
        await wait_until_ready(
            lambda: exists(RESULT_SELECTORS, document),
            params.wait_for_load,
            poll_interval_ms=polling.poll_interval_ms,
            stabilization_ms=polling.stabilization_ms,
        )

        items = await resolve_all(RESULT_SELECTORS, document)
        results = []
        for item in items[: min(params.max_results, len(items))]:
            result = await _search_result(item)
            if result is not None:
                results.append(result)

        return {
            "query": params.query,
            "language": params.language or "all",
            "sort": params.sort,
            "totalFound": len(results),
            "results": results,
            "extractedAt": isoformat_utc(utc_now()),
        }

    return await guard_extraction(document, "query", body, detail=params.query)
