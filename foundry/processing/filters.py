"""Record quality filters applied to mapped records before PII processing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from foundry.processing.schemas import FilterSettings

logger = logging.getLogger(__name__)

CONTENT_FIELDS: tuple[str, ...] = ("content", "message", "body", "text", "description")
DATE_FIELDS: tuple[str, ...] = ("createdAt", "updatedAt", "date", "timestamp")
STATUS_FIELDS: tuple[str, ...] = ("status", "state")


@dataclass
class FilterStats:
    """Pass/fail counts for a batch, with one diagnostic reason per excluded record."""

    total: int = 0
    passed: int = 0
    filtered: int = 0
    reasons: dict[str, int] = field(default_factory=dict)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def parse_record_date(value: Any) -> datetime | None:
    """Interpret a record value as a point in time.

    Accepts ``datetime``/``date`` objects, epoch milliseconds and ISO-8601
    strings (a trailing ``Z`` included). Naive values are taken as UTC.

    Returns:
        An aware datetime, or None when the value is not a date.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def _has_min_length(values: Iterable[Any], min_length: int) -> bool:
    return any(isinstance(v, str) and len(v) >= min_length for v in values)


class FilterEngine:
    """Decides whether a mapped record is good enough to keep.

    Every configured rule must pass; an unconfigured rule never excludes.
    """

    def should_include(self, record: dict[str, Any], settings: FilterSettings | None = None) -> bool:
        if settings is None:
            return True
        return (
            self._passes_min_length(record, settings)
            and self._passes_date_range(record, settings)
            and self._passes_statuses(record, settings)
        )

    def _passes_min_length(self, record: dict[str, Any], settings: FilterSettings) -> bool:
        min_length = settings.min_length
        if not min_length or min_length <= 0:
            return True
        return _has_min_length(record.values(), min_length)

    def _passes_date_range(self, record: dict[str, Any], settings: FilterSettings) -> bool:
        date_range = settings.date_range
        if date_range is None:
            return True
        record_date = None
        for name in DATE_FIELDS:
            record_date = parse_record_date(record.get(name))
            if record_date is not None:
                break
        if record_date is None:
            return True
        if date_range.start is not None and record_date < _as_utc(date_range.start):
            return False
        if date_range.end is not None and record_date > _as_utc(date_range.end):
            return False
        return True

    def _passes_statuses(self, record: dict[str, Any], settings: FilterSettings) -> bool:
        if not settings.statuses:
            return True
        present = [name for name in STATUS_FIELDS if name in record]
        if not present:
            return True
        allowed = {s.lower() for s in settings.statuses}
        return any(isinstance(record[name], str) and record[name].lower() in allowed for name in present)

    def get_filter_stats(self, records: Iterable[dict[str, Any]], settings: FilterSettings | None = None) -> FilterStats:
        """Count passes and attribute each exclusion to a single reason.

        Reason precedence is ``minLength`` (judged on content fields only),
        then ``dateRange``, then ``status``, else ``unknown``.
        """
        stats = FilterStats()
        for record in records:
            stats.total += 1
            if self.should_include(record, settings):
                stats.passed += 1
                continue
            reason = self._exclusion_reason(record, settings)
            stats.reasons[reason] = stats.reasons.get(reason, 0) + 1
        stats.filtered = stats.total - stats.passed
        return stats

    def _exclusion_reason(self, record: dict[str, Any], settings: FilterSettings | None) -> str:
        if settings is None:
            return "unknown"
        if settings.min_length and not _has_min_length(
            (record.get(name) for name in CONTENT_FIELDS), settings.min_length
        ):
            return "minLength"
        if settings.date_range is not None:
            return "dateRange"
        if settings.statuses is not None:
            return "status"
        return "unknown"
