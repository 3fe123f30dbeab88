"""Export engine: render processed records as AI training-data files.

Formats:
    jsonl_conversation  one ``{"messages": [...]}`` chat transcript per line
    jsonl_qa            one ``{"question", "answer"}`` pair per line
    json_raw            the processed records as one indented JSON array
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from foundry.core.exceptions import ValidationFailure
from foundry.core.models import ExportFormat
from foundry.processing.schemas import ExportOptions

logger = logging.getLogger(__name__)

CONTENT_FIELDS: tuple[str, ...] = ("content", "message", "body", "text", "description", "user_input")
QUESTION_FIELDS: tuple[str, ...] = ("question", "query", "ask", "inquiry", "subject")
ANSWER_FIELDS: tuple[str, ...] = ("answer", "response", "reply", "solution", "assistant_response")
CONTEXT_FIELDS: tuple[str, ...] = ("context", "metadata", "category", "tags")

CONTENT_TYPES: dict[ExportFormat, str] = {
    ExportFormat.JSONL_CONVERSATION: "application/x-jsonlines",
    ExportFormat.JSONL_QA: "application/x-jsonlines",
    ExportFormat.JSON_RAW: "application/json",
}

FILE_EXTENSIONS: dict[ExportFormat, str] = {
    ExportFormat.JSONL_CONVERSATION: ".jsonl",
    ExportFormat.JSONL_QA: ".jsonl",
    ExportFormat.JSON_RAW: ".json",
}


def json_default(obj: Any) -> Any:
    """JSON serializer for types not handled by the default encoder."""
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, datetime | date):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _line(data: Any) -> str:
    return json.dumps(data, default=json_default, ensure_ascii=False, separators=(",", ":"))


def _document(data: Any) -> str:
    return json.dumps(data, default=json_default, ensure_ascii=False, indent=2)


def _first_text(record: dict[str, Any], fields: Sequence[str]) -> str | None:
    for name in fields:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_content(record: dict[str, Any]) -> str | None:
    return _first_text(record, CONTENT_FIELDS)


def extract_question(record: dict[str, Any]) -> str | None:
    return _first_text(record, QUESTION_FIELDS)


def extract_answer(record: dict[str, Any]) -> str | None:
    return _first_text(record, ANSWER_FIELDS)


def extract_context(record: dict[str, Any]) -> str | None:
    """Join context-bearing fields as ``"field: value"`` parts separated by ``"; "``."""
    parts: list[str] = []
    for name in CONTEXT_FIELDS:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            parts.append(f"{name}: {value.strip()}")
        elif isinstance(value, dict | list):
            parts.append(f"{name}: {_line(value)}")
    return "; ".join(parts) if parts else None


def parse_format(value: str | ExportFormat) -> ExportFormat:
    """Resolve an export format name.

    Raises:
        ValidationFailure: The name is not a known format.
    """
    try:
        return ExportFormat(value)
    except ValueError:
        raise ValidationFailure(
            f"Unknown export format: {value}",
            details={"allowed": [f.value for f in ExportFormat]},
        ) from None


@dataclass
class RenderedExport:
    """File content plus the number of records actually written to it."""

    content: str
    record_count: int


class ExportEngine:
    """Renders processed records in one of the training-data formats."""

    def generate(
        self,
        records: Sequence[dict[str, Any]],
        export_format: str | ExportFormat,
        options: ExportOptions | None = None,
    ) -> str:
        """Render records and return only the file content."""
        return self.render(records, export_format, options).content

    def render(
        self,
        records: Sequence[dict[str, Any]],
        export_format: str | ExportFormat,
        options: ExportOptions | None = None,
    ) -> RenderedExport:
        """Render records in the requested format.

        Args:
            records: Processed records (already PII-tokenized).
            export_format: One of :class:`ExportFormat`.
            options: System prompt and context settings.

        Returns:
            RenderedExport whose ``record_count`` is the number of lines
            written (JSONL) or ``len(records)`` (raw).

        Raises:
            ValidationFailure: Unknown format.
        """
        fmt = parse_format(export_format)
        options = options or ExportOptions()
        if fmt is ExportFormat.JSONL_CONVERSATION:
            lines = [_line(c) for r in records if (c := self._conversation(r, options)) is not None]
        elif fmt is ExportFormat.JSONL_QA:
            lines = [_line(qa) for r in records if (qa := self._qa_pair(r, options)) is not None]
        else:
            return RenderedExport(content=_document(list(records)), record_count=len(records))
        return RenderedExport(content="\n".join(lines), record_count=len(lines))

    def _conversation(self, record: dict[str, Any], options: ExportOptions) -> dict[str, Any] | None:
        user_messages: list[dict[str, str]] = []
        question = extract_question(record)
        answer = extract_answer(record)
        if question and answer:
            user_messages.append({"role": "user", "content": question})
            user_messages.append({"role": "assistant", "content": answer})
        elif content := extract_content(record):
            user_messages.append({"role": "user", "content": content})

        if not user_messages:
            return None

        messages: list[dict[str, str]] = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.extend(user_messages)
        conversation: dict[str, Any] = {"messages": messages}

        if options.context_window and options.context_window > 0:
            context = extract_context(record)
            if context:
                conversation["context"] = context
        return conversation

    def _qa_pair(self, record: dict[str, Any], options: ExportOptions) -> dict[str, Any] | None:
        question = extract_question(record) or extract_content(record)
        if not question:
            return None
        qa: dict[str, Any] = {"question": question, "answer": extract_answer(record) or ""}
        if options.system_prompt:
            qa["system_prompt"] = options.system_prompt
        return qa
