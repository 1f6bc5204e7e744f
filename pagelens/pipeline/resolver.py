"""Selector resolution — ordered fallback locator chains.

Every "find this field/row/cell" in pagelens goes through here. Candidates
are evaluated strictly left to right and the first acceptable match wins;
later (possibly more specific) candidates are never consulted once an
earlier one has matched. A candidate that cannot be evaluated is a locator
failure, which is logged and treated as no-match.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from pagelens.browser.dom import LocatorError, Node

logger = logging.getLogger(__name__)

NodePredicate = Callable[[Node], Awaitable[bool]]


async def has_text(node: Node) -> bool:
    return bool((await node.text()).strip())


async def has_text_or_href(node: Node) -> bool:
    if (await node.text()).strip():
        return True
    return bool(await node.attribute("href"))


async def resolve(
    candidates: Sequence[str],
    scope: Node,
    accept: NodePredicate | None = has_text,
) -> Node | None:
    """Return the first candidate's first match that ``accept`` approves.

    ``accept=None`` accepts any element that exists.
    """
    for selector in candidates:
        try:
            node = await scope.query(selector)
        except LocatorError as e:
            logger.debug("Skipping invalid selector", extra={"selector": selector, "reason": e.reason})
            continue
        if node is None:
            continue
        if accept is None or await accept(node):
            return node
    return None


async def resolve_all(candidates: Sequence[str], scope: Node) -> list[Node]:
    """Return the matches of the first candidate that yields any element.

    Matches are never merged across candidates.
    """
    for selector in candidates:
        try:
            nodes = await scope.query_all(selector)
        except LocatorError as e:
            logger.debug("Skipping invalid selector", extra={"selector": selector, "reason": e.reason})
            continue
        if nodes:
            logger.debug("Resolved elements", extra={"selector": selector, "count": len(nodes)})
            return nodes
    return []


async def resolve_text(candidates: Sequence[str], scope: Node) -> str | None:
    """Trimmed text of the first candidate with non-blank text."""
    node = await resolve(candidates, scope)
    if node is None:
        return None
    return (await node.text()).strip()


async def exists(candidates: Sequence[str], scope: Node) -> bool:
    """True when any candidate matches at all."""
    return await resolve(candidates, scope, accept=None) is not None
