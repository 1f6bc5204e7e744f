"""Snapshot DOM — BeautifulSoup-backed document for captured HTML.

Lets every extractor run against a saved page (``DOMSnapshot``) with the
same code path used for a live browser page. Interactions are no-ops:
a snapshot cannot render anything new.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

import soupsieve
from bs4 import BeautifulSoup, Tag

from pagelens.browser.dom import LocatorError

logger = logging.getLogger(__name__)


@dataclass
class DOMSnapshot:
    """Captured DOM of a page."""

    html: str
    url: str
    title: str
    dom_hash: str

    @staticmethod
    def compute_hash(html: str) -> str:
        return hashlib.sha256(html.encode()).hexdigest()[:16]

    @classmethod
    def from_html(cls, html: str, url: str) -> DOMSnapshot:
        soup = BeautifulSoup(html, "html.parser")
        title = soup.title.get_text().strip() if soup.title else ""
        return cls(html=html, url=url, title=title, dom_hash=cls.compute_hash(html))


class SnapshotNode:
    """A ``Node`` over a BeautifulSoup tag."""

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SnapshotNode) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    def __repr__(self) -> str:
        return f"SnapshotNode(<{self._tag.name}>)"

    async def query(self, selector: str) -> SnapshotNode | None:
        try:
            found = self._tag.select_one(selector)
        except soupsieve.SelectorSyntaxError as e:
            raise LocatorError(selector, str(e)) from e
        return SnapshotNode(found) if found is not None else None

    async def query_all(self, selector: str) -> list[SnapshotNode]:
        try:
            found = self._tag.select(selector)
        except soupsieve.SelectorSyntaxError as e:
            raise LocatorError(selector, str(e)) from e
        return [SnapshotNode(tag) for tag in found]

    async def text(self) -> str:
        return self._tag.get_text()

    async def attribute(self, name: str) -> str | None:
        value = self._tag.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def closest(self, selector: str) -> SnapshotNode | None:
        try:
            compiled = soupsieve.compile(selector)
        except soupsieve.SelectorSyntaxError as e:
            raise LocatorError(selector, str(e)) from e
        current: Tag | None = self._tag
        while isinstance(current, Tag) and not isinstance(current, BeautifulSoup):
            if compiled.match(current):
                return SnapshotNode(current)
            current = current.parent
        return None

    async def tag_name(self) -> str:
        return (self._tag.name or "").lower()

    async def scroll_into_view(self) -> None:
        logger.debug("scroll_into_view ignored on snapshot", extra={"tag": self._tag.name})

    async def click(self) -> None:
        logger.debug("click ignored on snapshot", extra={"tag": self._tag.name})


class SnapshotDocument(SnapshotNode):
    """A ``Document`` over a parsed HTML snapshot."""

    def __init__(self, html: str, url: str = "about:blank") -> None:
        self._soup = BeautifulSoup(html, "html.parser")
        super().__init__(self._soup)
        self._url = url

    @classmethod
    def from_snapshot(cls, snapshot: DOMSnapshot) -> SnapshotDocument:
        return cls(snapshot.html, snapshot.url)

    @property
    def url(self) -> str:
        return self._url

    async def title(self) -> str:
        return self._soup.title.get_text().strip() if self._soup.title else ""

    async def text(self) -> str:
        body = self._soup.body
        return body.get_text() if body is not None else self._soup.get_text()

    async def attribute(self, name: str) -> str | None:
        return None

    async def closest(self, selector: str) -> SnapshotNode | None:
        return None

    async def tag_name(self) -> str:
        return "#document"
