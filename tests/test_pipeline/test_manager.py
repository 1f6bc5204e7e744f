"""Tests for the extraction pipeline and its error boundary."""

import re

import pytest

from pagelens.browser.snapshot import SnapshotDocument
from pagelens.config.settings import PollingConfig
from pagelens.pipeline.extraction import ExtractionError, ExtractionResult
from pagelens.pipeline.manager import (
    ExtractionOptions,
    ExtractionPipeline,
    TableLayout,
    guard_extraction,
)

ISO_Z = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")

LAYOUT = TableLayout(
    header_selectors=(".headerRow .cell[data-columnid]",),
    row_selectors=(".dataRow[data-rowid]",),
)
FAST = PollingConfig(poll_interval_ms=1, stabilization_ms=0)
OPTIONS = ExtractionOptions(max_records=100, infer_types=True, formatted=True, wait_for_load_ms=50)

GRID = """
<div class="grid">
  <div class="headerRow">
    <div class="cell" data-columnid="c1">Name</div>
    <div class="cell" data-columnid="c2">Count</div>
    <div class="cell" data-columnid="c3" data-columntype="checkbox">Done</div>
  </div>
  <div class="dataRow" data-rowid="r1">
    <div class="cell" data-columnid="c1">Alice</div>
    <div class="cell" data-columnid="c2">10</div>
    <div class="cell" data-columnid="c3"><div aria-checked="true"></div></div>
  </div>
  <div class="dataRow" data-rowid="r1">
    <div class="cell" data-columnid="c1">Alice (pane copy)</div>
  </div>
  <div class="dataRow" data-rowid="r3">
    <div class="cell" data-columnid="c1">Bob</div>
    <div class="cell" data-columnid="c2">n/a</div>
    <div class="cell" data-columnid="c3"><div aria-checked="false">✓</div></div>
  </div>
</div>
"""


class ExplodingDocument(SnapshotDocument):
    """Fails with a non-locator fault once rows are requested."""

    async def query_all(self, selector):
        if "dataRow" in selector:
            raise RuntimeError("row lookup exploded")
        return await super().query_all(selector)


class SilentFailureDocument(SnapshotDocument):
    async def query_all(self, selector):
        if "dataRow" in selector:
            raise ValueError()
        return await super().query_all(selector)


class TestExtractionPipeline:
    @pytest.mark.asyncio
    async def test_end_to_end_grid(self):
        doc = SnapshotDocument(GRID, url="https://example.com/grid")
        result = await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)

        assert isinstance(result, ExtractionResult)
        assert [(r.id, r.fields) for r in result.records] == [
            ("r1", {"Name": "Alice", "Count": 10, "Done": True}),
            ("r3", {"Name": "Bob", "Done": False}),
        ]
        assert result.stats.total_records == 2
        assert result.stats.total_fields == 3
        assert [f.type.value for f in result.fields] == ["singleLineText", "number", "checkbox"]
        assert result.source_metadata == {"url": "https://example.com/grid"}

    @pytest.mark.asyncio
    async def test_serializes_with_camel_case(self):
        doc = SnapshotDocument(GRID)
        result = await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)
        payload = result.to_json_dict()
        assert payload["stats"] == {"totalRecords": 2, "totalFields": 3}
        assert "sourceMetadata" in payload
        assert "extractedAt" in payload

    @pytest.mark.asyncio
    async def test_never_ready_still_extracts(self):
        async def never(_document):
            return False

        doc = SnapshotDocument(GRID)
        result = await ExtractionPipeline(LAYOUT, ready=never, polling=FAST).run(doc, OPTIONS)
        assert isinstance(result, ExtractionResult)
        assert result.stats.total_records == 2

    @pytest.mark.asyncio
    async def test_empty_page_gives_empty_result(self):
        doc = SnapshotDocument("<html><body></body></html>")
        result = await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)
        assert isinstance(result, ExtractionResult)
        assert result.records == []
        assert result.fields == []

    @pytest.mark.asyncio
    async def test_metadata_hook_merged(self):
        async def metadata(_document):
            return {"tableName": "People"}

        doc = SnapshotDocument(GRID, url="https://example.com/t")
        result = await ExtractionPipeline(LAYOUT, metadata=metadata, polling=FAST).run(doc, OPTIONS)
        assert result.source_metadata == {"url": "https://example.com/t", "tableName": "People"}

    @pytest.mark.asyncio
    async def test_internal_fault_becomes_error(self):
        doc = ExplodingDocument(GRID, url="https://example.com/boom")
        result = await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)

        assert isinstance(result, ExtractionError)
        assert result.error == "row lookup exploded"
        assert result.source_metadata["url"] == "https://example.com/boom"
        assert ISO_Z.match(result.extracted_at_iso)

    @pytest.mark.asyncio
    async def test_empty_message_falls_back_to_type(self):
        doc = SilentFailureDocument(GRID)
        result = await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)
        assert isinstance(result, ExtractionError)
        assert result.error == "ValueError"

    @pytest.mark.asyncio
    async def test_fault_is_logged_once(self, caplog):
        doc = ExplodingDocument(GRID)
        with caplog.at_level("ERROR"):
            await ExtractionPipeline(LAYOUT, polling=FAST).run(doc, OPTIONS)
        events = [r for r in caplog.records if r.getMessage() == "pagelens_error"]
        assert len(events) == 1
        assert events[0].stage == "records"
        assert events[0].suppressed is True


class TestGuardExtraction:
    @pytest.mark.asyncio
    async def test_passes_through_success(self):
        doc = SnapshotDocument("<p>x</p>", url="https://example.com")

        async def body():
            return {"ok": True}

        assert await guard_extraction(doc, "document", body) == {"ok": True}

    @pytest.mark.asyncio
    async def test_error_envelope(self):
        doc = SnapshotDocument("<p>x</p>", url="https://example.com/doc")

        async def body():
            raise KeyError("title")

        envelope = await guard_extraction(doc, "document", body)
        assert envelope["error"] == "'title'"
        assert envelope["document"] == {"url": "https://example.com/doc"}
        assert ISO_Z.match(envelope["extractedAt"])

    @pytest.mark.asyncio
    async def test_custom_detail(self):
        doc = SnapshotDocument("<p>x</p>")

        async def body():
            raise RuntimeError("no results")

        envelope = await guard_extraction(doc, "query", body, detail="playwright")
        assert envelope["query"] == "playwright"
        assert list(envelope) == ["error", "query", "extractedAt"]
