"""Extraction data models — field schema, records, and the result/error envelopes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from pagelens.pipeline.field_types import FieldType


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{moment.microsecond // 1000:03d}Z"
    )


class _CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FieldDescriptor(_CamelModel):
    """One discovered column/field of the extracted structure."""

    id: str
    name: str
    index: int = Field(ge=0)
    type: FieldType = FieldType.SINGLE_LINE_TEXT


class Record(_CamelModel):
    """One extracted row. ``fields`` maps field name to its typed value."""

    id: str
    fields: dict[str, Any] = Field(default_factory=dict)


class ExtractionStats(_CamelModel):
    total_records: int = 0
    total_fields: int = 0


class ExtractionResult(_CamelModel):
    """Success envelope of one pipeline run."""

    source_metadata: dict[str, Any] = Field(default_factory=dict)
    fields: list[FieldDescriptor] = Field(default_factory=list)
    records: list[Record] = Field(default_factory=list)
    stats: ExtractionStats = Field(default_factory=ExtractionStats)
    extracted_at: datetime = Field(default_factory=utc_now)

    @property
    def extracted_at_iso(self) -> str:
        return isoformat_utc(self.extracted_at)


class ExtractionError(_CamelModel):
    """Error envelope: what failed and where, never a raised exception."""

    error: str = Field(min_length=1)
    source_metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_at: datetime = Field(default_factory=utc_now)

    @property
    def extracted_at_iso(self) -> str:
        return isoformat_utc(self.extracted_at)

    def envelope(self, domain: str, detail: Any = None) -> dict[str, Any]:
        """Per-site error document: ``{error, <domain>: {url}, extractedAt}``.

        ``detail`` replaces the source metadata under ``domain`` when given.
        """
        return {
            "error": self.error,
            domain: dict(self.source_metadata) if detail is None else detail,
            "extractedAt": self.extracted_at_iso,
        }
