"""Mapping detector: raw source fields to the canonical training-data schema.

Auto-detection is a pure function of the raw schema. The pattern table
is ordered and the first matching target wins, so the order below is
part of the contract.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from foundry.core.exceptions import ValidationFailure
from foundry.core.models import MappingConfidence
from foundry.processing.schemas import FieldMapping, RawSchemaField

logger = logging.getLogger(__name__)

IGNORE_TARGET = "ignore"
DEFAULT_TARGET = "metadata"

TARGET_FIELDS: tuple[str, ...] = (
    "content",
    "question",
    "answer",
    "context",
    "system_prompt",
    "user_input",
    "assistant_response",
    "email",
    "phone",
    "name",
    "date",
    "category",
    "status",
    "metadata",
    IGNORE_TARGET,
)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


FIELD_PATTERNS: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = (
    ("email", _compile(r"email", r"e-mail", r"mail")),
    ("phone", _compile(r"phone", r"tel", r"mobile", r"cell")),
    ("name", _compile(r"name", r"^full.?name$", r"^first.?name$", r"^last.?name$")),
    ("date", _compile(r"date", r"time", r"created", r"updated", r"timestamp")),
    ("content", _compile(r"content", r"body", r"message", r"text", r"description")),
    ("question", _compile(r"question", r"query", r"ask", r"inquiry")),
    ("answer", _compile(r"answer", r"response", r"reply", r"solution")),
    ("status", _compile(r"status", r"state")),
    ("category", _compile(r"category", r"type", r"tag", r"label")),
)

PII_INDICATORS: tuple[str, ...] = ("email", "phone", "name", "address", "ssn", "social")

PREVIEW_MAX_ROWS = 3


def _match_target(field_name: str) -> str | None:
    for target, patterns in FIELD_PATTERNS:
        if any(p.search(field_name) for p in patterns):
            return target
    return None


def detect_field(name: str) -> FieldMapping:
    """Detect the mapping for a single raw field name."""
    lowered = name.lower()
    target = _match_target(lowered)
    return FieldMapping(
        source_field=name,
        target_field=target or DEFAULT_TARGET,
        confidence=MappingConfidence.HIGH if target else MappingConfidence.LOW,
        is_pii=any(indicator in lowered for indicator in PII_INDICATORS),
    )


def auto_detect(raw_schema: Iterable[RawSchemaField | dict[str, Any]]) -> list[FieldMapping]:
    """Propose one mapping per raw field.

    Several raw fields may land on the same target; nothing is
    deduplicated.

    Args:
        raw_schema: Fields detected from a source.

    Returns:
        Mappings in input order. Empty for an empty schema.
    """
    fields = [RawSchemaField.model_validate(f) if isinstance(f, dict) else f for f in raw_schema]
    return [detect_field(f.name) for f in fields]


def validate_mappings(mappings: Sequence[FieldMapping]) -> None:
    """Reject unknown target fields and duplicate source fields.

    Raises:
        ValidationFailure: On the first offending mapping.
    """
    seen: set[str] = set()
    for mapping in mappings:
        if mapping.target_field not in TARGET_FIELDS:
            raise ValidationFailure(
                f"Unknown target field '{mapping.target_field}'",
                details={"source_field": mapping.source_field, "allowed": list(TARGET_FIELDS)},
            )
        if mapping.source_field in seen:
            raise ValidationFailure(
                f"Duplicate mapping for source field '{mapping.source_field}'",
                details={"source_field": mapping.source_field},
            )
        seen.add(mapping.source_field)


def apply_mappings(record: dict[str, Any], mappings: Sequence[FieldMapping]) -> dict[str, Any]:
    """Re-key a raw record by target field.

    Unmapped raw fields are dropped and ``ignore`` targets are skipped.
    When several raw fields map to one target the later mapping wins.
    A source without any mappings passes its records through unchanged.
    """
    if not mappings:
        return dict(record)
    mapped: dict[str, Any] = {}
    for mapping in mappings:
        if mapping.target_field == IGNORE_TARGET:
            continue
        if mapping.source_field in record:
            mapped[mapping.target_field] = record[mapping.source_field]
    return mapped


def build_preview(
    raw_schema: Sequence[RawSchemaField | dict[str, Any]],
    mappings: Sequence[FieldMapping],
) -> list[dict[str, Any]]:
    """Show how the first sample rows look after mapping.

    Returns:
        Up to three rows keyed by target field.
    """
    fields = {
        f.name: f for f in (RawSchemaField.model_validate(x) if isinstance(x, dict) else x for x in raw_schema)
    }
    if not fields:
        return []
    row_count = min(PREVIEW_MAX_ROWS, max(len(f.sample) for f in fields.values()))
    preview: list[dict[str, Any]] = []
    for i in range(row_count):
        row: dict[str, Any] = {}
        for mapping in mappings:
            if mapping.target_field == IGNORE_TARGET:
                continue
            field = fields.get(mapping.source_field)
            if field is not None and i < len(field.sample):
                row[mapping.target_field] = field.sample[i]
        preview.append(row)
    return preview
