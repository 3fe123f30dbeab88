"""Pydantic value types shared by the processing engines.

Settings objects are stored as JSON on projects and frozen into job
config snapshots, so each accepts both snake_case and the camelCase keys
used by the web client (``allowList``, ``minLength`` ...).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from foundry.core.models import MappingConfidence


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CustomPattern(_CamelModel):
    """User-supplied regex tokenized as ``[<NAME>_0001]``."""

    name: str = Field(..., min_length=1, max_length=100)
    pattern: str = Field(..., min_length=1)


class PiiSettings(_CamelModel):
    allow_list: list[str] = Field(default_factory=list, alias="allowList")
    custom_patterns: list[CustomPattern] = Field(default_factory=list, alias="customPatterns")


class DateRange(_CamelModel):
    start: datetime | None = None
    end: datetime | None = None


class FilterSettings(_CamelModel):
    """Record quality rules. An unset rule never excludes a record."""

    min_length: int | None = Field(default=None, ge=0, alias="minLength")
    date_range: DateRange | None = Field(default=None, alias="dateRange")
    statuses: list[str] | None = None


class FieldMapping(_CamelModel):
    source_field: str = Field(..., min_length=1, max_length=255, alias="sourceField")
    target_field: str = Field(..., min_length=1, max_length=255, alias="targetField")
    confidence: MappingConfidence = MappingConfidence.LOW
    is_pii: bool = Field(default=False, alias="isPii")


class RawSchemaField(_CamelModel):
    """A raw column detected from a source, with up to three sample values."""

    name: str
    type: str = "string"
    sample: list[Any] = Field(default_factory=list)


class ExportOptions(_CamelModel):
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    context_window: int | None = Field(default=None, ge=1, le=10, alias="contextWindow")


class JobConfigSnapshot(_CamelModel):
    """Settings frozen on a job when it starts."""

    pii_settings: PiiSettings = Field(default_factory=PiiSettings, alias="piiSettings")
    filter_settings: FilterSettings = Field(default_factory=FilterSettings, alias="filterSettings")
    source_ids: list[uuid.UUID] = Field(default_factory=list, alias="sourceIds")

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSONB ``config_snapshot`` column."""
        return self.model_dump(mode="json", exclude_none=True)
