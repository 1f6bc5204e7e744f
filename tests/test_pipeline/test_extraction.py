"""Tests for extraction data models and envelopes."""

from datetime import datetime, timezone

import pytest

from pagelens.pipeline.extraction import (
    ExtractionError,
    ExtractionResult,
    ExtractionStats,
    FieldDescriptor,
    Record,
    isoformat_utc,
)
from pagelens.pipeline.field_types import FieldType


class TestFieldDescriptor:
    def test_default_type(self):
        field = FieldDescriptor(id="field_0", name="Name", index=0)
        assert field.type is FieldType.SINGLE_LINE_TEXT

    def test_negative_index_rejected(self):
        with pytest.raises(Exception):
            FieldDescriptor(id="x", name="X", index=-1)

    def test_json_uses_wire_type(self):
        field = FieldDescriptor(id="c1", name="Tags", index=2, type=FieldType.MULTIPLE_SELECT)
        assert field.to_json_dict() == {"id": "c1", "name": "Tags", "index": 2, "type": "multipleSelect"}


class TestEnvelopes:
    def test_isoformat_millis_z(self):
        moment = datetime(2024, 5, 1, 8, 30, 15, 123456, tzinfo=timezone.utc)
        assert isoformat_utc(moment) == "2024-05-01T08:30:15.123Z"

    def test_result_camel_case(self):
        result = ExtractionResult(
            source_metadata={"url": "https://example.com"},
            fields=[FieldDescriptor(id="c1", name="Name", index=0)],
            records=[Record(id="r1", fields={"Name": "Alice"})],
            stats=ExtractionStats(total_records=1, total_fields=1),
        )
        payload = result.to_json_dict()
        assert payload["sourceMetadata"] == {"url": "https://example.com"}
        assert payload["records"] == [{"id": "r1", "fields": {"Name": "Alice"}}]
        assert payload["stats"] == {"totalRecords": 1, "totalFields": 1}

    def test_params_accept_snake_case(self):
        stats = ExtractionStats(total_records=3)
        assert stats.total_records == 3

    def test_error_requires_message(self):
        with pytest.raises(Exception):
            ExtractionError(error="")

    def test_error_envelope_shape(self):
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        error = ExtractionError(
            error="boom", source_metadata={"url": "https://example.com"}, extracted_at=moment
        )
        assert error.envelope("base") == {
            "error": "boom",
            "base": {"url": "https://example.com"},
            "extractedAt": "2024-01-02T03:04:05.000Z",
        }
