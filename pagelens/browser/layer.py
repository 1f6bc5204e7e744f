"""Browser Layer — Playwright-based headless browser exposing the live page as a Document.

The Browser Layer has no extraction logic. It renders pages and hands the
extraction engine a read-mostly view of the DOM. Selector failures raised
by Playwright are surfaced as ``LocatorError`` so the resolver can move on
to the next candidate.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Error as PlaywrightError,
    Page,
    async_playwright,
)

from pagelens.browser.dom import LocatorError
from pagelens.browser.snapshot import DOMSnapshot
from pagelens.config.settings import BrowserConfig


class ActionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass
class ActionResult:
    """Result of a browser action."""

    status: ActionStatus
    detail: str = ""


class PlaywrightNode:
    """A ``Node`` over a Playwright element handle."""

    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle

    async def query(self, selector: str) -> PlaywrightNode | None:
        try:
            found = await self._handle.query_selector(selector)
        except PlaywrightError as e:
            raise LocatorError(selector, e.message) from e
        return PlaywrightNode(found) if found else None

    async def query_all(self, selector: str) -> list[PlaywrightNode]:
        try:
            found = await self._handle.query_selector_all(selector)
        except PlaywrightError as e:
            raise LocatorError(selector, e.message) from e
        return [PlaywrightNode(h) for h in found]

    async def text(self) -> str:
        return await self._handle.text_content() or ""

    async def attribute(self, name: str) -> str | None:
        return await self._handle.get_attribute(name)

    async def closest(self, selector: str) -> PlaywrightNode | None:
        try:
            found = await self._handle.evaluate_handle("(el, s) => el.closest(s)", selector)
        except PlaywrightError as e:
            raise LocatorError(selector, e.message) from e
        element = found.as_element()
        return PlaywrightNode(element) if element else None

    async def tag_name(self) -> str:
        return str(await self._handle.evaluate("el => el.tagName.toLowerCase()"))

    async def scroll_into_view(self) -> None:
        await self._handle.scroll_into_view_if_needed()

    async def click(self) -> None:
        # Synthetic click: dispatching avoids actionability waits on offscreen elements
        await self._handle.dispatch_event("click")


class PlaywrightDocument:
    """A ``Document`` over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def title(self) -> str:
        return await self._page.title()

    async def query(self, selector: str) -> PlaywrightNode | None:
        try:
            found = await self._page.query_selector(selector)
        except PlaywrightError as e:
            raise LocatorError(selector, e.message) from e
        return PlaywrightNode(found) if found else None

    async def query_all(self, selector: str) -> list[PlaywrightNode]:
        try:
            found = await self._page.query_selector_all(selector)
        except PlaywrightError as e:
            raise LocatorError(selector, e.message) from e
        return [PlaywrightNode(h) for h in found]

    async def text(self) -> str:
        return str(
            await self._page.evaluate("() => document.body ? document.body.textContent : ''")
        )

    async def attribute(self, name: str) -> str | None:
        return None

    async def closest(self, selector: str) -> PlaywrightNode | None:
        return None

    async def tag_name(self) -> str:
        return "#document"

    async def scroll_into_view(self) -> None:
        return None

    async def click(self) -> None:
        return None


class BrowserLayer:
    """Playwright-based browser layer.

    Contract:
    - Launches an isolated context and a single page
    - Navigates on request; never navigates on its own
    - Exposes the current page as a ``PlaywrightDocument`` for extraction
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page | None:
        return self._page

    async def start(self) -> None:
        """Launch browser and create an isolated context."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self._config.headless,
        )
        self._context = await self._browser.new_context(
            viewport={
                "width": self._config.viewport_width,
                "height": self._config.viewport_height,
            },
            user_agent=self._config.user_agent,
            locale=self._config.locale,
        )
        self._page = await self._context.new_page()

    async def stop(self) -> None:
        """Clean up browser resources."""
        if self._context:
            await self._context.close()
            self._context = None
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        self._page = None

    async def navigate(self, url: str, timeout_ms: int | None = None) -> ActionResult:
        """Navigate to a URL and wait for DOM content to load."""
        if not self._page:
            return ActionResult(status=ActionStatus.FAILURE, detail="Browser not started")
        timeout = timeout_ms if timeout_ms is not None else self._config.navigation_timeout_ms
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout)
            return ActionResult(status=ActionStatus.SUCCESS, detail=f"Navigated to {url}")
        except PlaywrightError as e:
            return ActionResult(status=ActionStatus.FAILURE, detail=e.message)

    def document(self) -> PlaywrightDocument | None:
        """The current page as an extraction document."""
        if not self._page:
            return None
        return PlaywrightDocument(self._page)

    async def capture_dom(self) -> DOMSnapshot | None:
        """Capture a DOM snapshot without scripts and styles."""
        if not self._page:
            return None

        html = await self._page.evaluate("""() => {
            const clone = document.documentElement.cloneNode(true);
            clone.querySelectorAll('script, style, noscript, link[rel=stylesheet]')
                .forEach(el => el.remove());
            return clone.outerHTML;
        }""")

        title = await self._page.title()
        return DOMSnapshot(
            html=html,
            url=self._page.url,
            title=title,
            dom_hash=DOMSnapshot.compute_hash(html),
        )
