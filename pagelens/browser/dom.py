"""DOM access contract — the narrow query capability the extraction engine reads through.

The page being extracted is an external, shared, mutable resource. The
engine never owns it; it only locates elements, reads their text and
attributes, and (in a few explicitly scoped places) scrolls or clicks to
trigger lazy rendering.

Two implementations exist:
- ``pagelens.browser.layer.PlaywrightDocument`` for a live rendered page
- ``pagelens.browser.snapshot.SnapshotDocument`` for a captured HTML snapshot
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class LocatorError(Exception):
    """Raised by a DOM adapter when a selector cannot be evaluated."""

    def __init__(self, selector: str, reason: str = "") -> None:
        self.selector = selector
        self.reason = reason
        super().__init__(f"Invalid selector {selector!r}: {reason}" if reason else selector)


@runtime_checkable
class Node(Protocol):
    """A located element (or the document root) that can be queried further."""

    async def query(self, selector: str) -> Node | None:
        """Return the first descendant matching ``selector``, or None."""
        ...

    async def query_all(self, selector: str) -> list[Node]:
        """Return every descendant matching ``selector`` in document order."""
        ...

    async def text(self) -> str:
        """Return the element's text content (untrimmed, never None)."""
        ...

    async def attribute(self, name: str) -> str | None:
        ...

    async def closest(self, selector: str) -> Node | None:
        """Return the nearest ancestor-or-self matching ``selector``."""
        ...

    async def tag_name(self) -> str:
        ...

    async def scroll_into_view(self) -> None:
        ...

    async def click(self) -> None:
        ...


@runtime_checkable
class Document(Node, Protocol):
    """The page root. Adds the page address and title."""

    @property
    def url(self) -> str:
        ...

    async def title(self) -> str:
        ...


async def class_tokens(node: Node) -> list[str]:
    """Lower-cased class names of ``node``."""
    raw = await node.attribute("class") or ""
    return [token.lower() for token in raw.split() if token]
