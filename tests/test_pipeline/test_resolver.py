"""Tests for ordered-selector resolution."""

import pytest

from pagelens.browser.snapshot import SnapshotDocument
from pagelens.pipeline.resolver import (
    exists,
    has_text_or_href,
    resolve,
    resolve_all,
    resolve_text,
)

HTML = """
<div id="root">
  <span class="empty">   </span>
  <span class="late">Late value</span>
  <p class="early">Early value</p>
  <a class="bare" href="/somewhere"></a>
  <ul>
    <li class="item">one</li>
    <li class="item">two</li>
    <li class="other">three</li>
  </ul>
</div>
"""


@pytest.fixture
def doc():
    return SnapshotDocument(HTML)


class TestResolve:
    @pytest.mark.asyncio
    async def test_first_candidate_wins(self, doc):
        node = await resolve((".early", ".late"), doc)
        assert (await node.text()).strip() == "Early value"

    @pytest.mark.asyncio
    async def test_later_candidate_not_consulted_once_matched(self, doc):
        node = await resolve((".late", ".early"), doc)
        assert (await node.text()).strip() == "Late value"

    @pytest.mark.asyncio
    async def test_blank_text_is_not_accepted(self, doc):
        node = await resolve((".empty", ".late"), doc)
        assert (await node.text()).strip() == "Late value"

    @pytest.mark.asyncio
    async def test_existence_only(self, doc):
        node = await resolve((".empty",), doc, accept=None)
        assert node is not None

    @pytest.mark.asyncio
    async def test_text_or_href(self, doc):
        node = await resolve((".bare",), doc, accept=has_text_or_href)
        assert await node.attribute("href") == "/somewhere"

    @pytest.mark.asyncio
    async def test_invalid_selector_is_skipped(self, doc):
        node = await resolve(("div[[broken", ".early"), doc)
        assert (await node.text()).strip() == "Early value"

    @pytest.mark.asyncio
    async def test_no_match(self, doc):
        assert await resolve((".missing", "div[[broken"), doc) is None


class TestResolveAll:
    @pytest.mark.asyncio
    async def test_first_non_empty_candidate(self, doc):
        nodes = await resolve_all((".missing", "li.item", "li"), doc)
        assert [(await n.text()) for n in nodes] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_never_merges_candidates(self, doc):
        nodes = await resolve_all(("li.other", "li.item"), doc)
        assert len(nodes) == 1

    @pytest.mark.asyncio
    async def test_invalid_selector_then_fallback(self, doc):
        nodes = await resolve_all(("li[[", "li"), doc)
        assert len(nodes) == 3

    @pytest.mark.asyncio
    async def test_empty_when_nothing_matches(self, doc):
        assert await resolve_all((".nope",), doc) == []


class TestHelpers:
    @pytest.mark.asyncio
    async def test_resolve_text_trims(self, doc):
        assert await resolve_text((".late",), doc) == "Late value"

    @pytest.mark.asyncio
    async def test_resolve_text_none(self, doc):
        assert await resolve_text((".nothing",), doc) is None

    @pytest.mark.asyncio
    async def test_exists(self, doc):
        assert await exists((".empty",), doc)
        assert not await exists((".nothing",), doc)
