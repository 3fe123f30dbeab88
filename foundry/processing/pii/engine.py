"""PII tokenization engine.

Replaces personal data in string fields with stable placeholder tokens
such as ``[EMAIL_0002]``. One engine instance owns one token counter and
one ``type:value`` cache, so the same literal always maps to the same
token for the instance's lifetime. Create one engine per job run.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from foundry.processing.pii.names import NameDetector, PresidioNameDetector
from foundry.processing.pii.patterns import ALL_PATTERNS, PIIPattern, compile_custom_pattern
from foundry.processing.schemas import FieldMapping, PiiSettings

logger = logging.getLogger(__name__)

NAME_TOKEN_TYPE = "NAME"


@dataclass
class PiiResult:
    """Outcome of tokenizing one record.

    Attributes:
        processed_data: The record with PII replaced by tokens.
        tokens_map: Original value to token, merged across fields
            (a value seen in two fields keeps the last assignment).
    """

    processed_data: dict[str, Any] = field(default_factory=dict)
    tokens_map: dict[str, str] = field(default_factory=dict)


class PiiEngine:
    """Detects and tokenizes PII in mapped records.

    Args:
        name_detector: Strategy used for the personal-name step. Defaults
            to the Presidio NER detector.
        patterns: Fixed regex battery, applied in order.
    """

    def __init__(
        self,
        name_detector: NameDetector | None = None,
        patterns: Sequence[PIIPattern] = ALL_PATTERNS,
    ) -> None:
        self._names = name_detector or PresidioNameDetector()
        self._patterns = tuple(patterns)
        self._counter = 0
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def tokens_issued(self) -> int:
        return self._counter

    def reset(self) -> None:
        """Forget every token issued so far and restart numbering at 1."""
        with self._lock:
            self._counter = 0
            self._cache.clear()

    def get_or_create_token(self, value: str, token_type: str) -> str:
        """Return the token for ``value``, allocating the next number if new."""
        key = f"{token_type}:{value}"
        with self._lock:
            token = self._cache.get(key)
            if token is None:
                self._counter += 1
                token = f"[{token_type}_{self._counter:04d}]"
                self._cache[key] = token
            return token

    def process(
        self,
        record: dict[str, Any],
        mappings: Sequence[FieldMapping],
        settings: PiiSettings | None = None,
    ) -> PiiResult:
        """Tokenize every string field of a mapped record.

        Args:
            record: Record keyed by target field (or raw field when the
                source has no mappings).
            mappings: The source's mapping set, used for ``is_pii`` hints.
            settings: Allow-list and custom patterns for the project.

        Returns:
            PiiResult with the processed record and its token map.
        """
        settings = settings or PiiSettings()
        allow = {item.lower() for item in settings.allow_list}
        custom = [
            (p.name.upper(), compiled)
            for p in settings.custom_patterns
            if (compiled := compile_custom_pattern(p.pattern)) is not None
        ]
        pii_by_target = {m.target_field: m.is_pii for m in mappings}
        pii_by_source = {m.source_field: m.is_pii for m in mappings}

        result = PiiResult()
        for key, value in record.items():
            if not isinstance(value, str):
                result.processed_data[key] = value
                continue
            is_pii_field = pii_by_target.get(key, pii_by_source.get(key, False))
            processed, field_tokens = self._process_text(value, is_pii_field, allow, custom)
            result.processed_data[key] = processed
            result.tokens_map.update(field_tokens)
        return result

    def _process_text(
        self,
        text: str,
        is_pii_field: bool,
        allow: set[str],
        custom: list[tuple[str, re.Pattern[str]]],
    ) -> tuple[str, dict[str, str]]:
        # All classes match the original text. Spans claimed by an earlier
        # class are skipped and the output is rebuilt once at the end.
        spans: list[tuple[int, int, str]] = []
        tokens: dict[str, str] = {}

        def claim(start: int, end: int, value: str, token_type: str) -> None:
            if any(start < e and s < end for s, e, _ in spans):
                return
            token = self.get_or_create_token(value, token_type)
            tokens[value] = token
            spans.append((start, end, token))

        for name in self._names.detect(text, field_hint=is_pii_field):
            if not name or name.lower() in allow:
                continue
            for match in re.finditer(re.escape(name), text, flags=re.IGNORECASE):
                claim(match.start(), match.end(), name, NAME_TOKEN_TYPE)

        for pii in self._patterns:
            self._claim_matches(text, pii.pattern, pii.token_type, allow, claim)

        for token_type, pattern in custom:
            try:
                self._claim_matches(text, pattern, token_type, allow, claim)
            except (re.error, RecursionError) as e:
                logger.debug("Custom pattern %s skipped: %s", token_type, e)
                continue

        if not spans:
            return text, tokens

        pieces: list[str] = []
        cursor = 0
        for start, end, token in sorted(spans):
            pieces.append(text[cursor:start])
            pieces.append(token)
            cursor = end
        pieces.append(text[cursor:])
        return "".join(pieces), tokens

    @staticmethod
    def _claim_matches(
        text: str,
        pattern: re.Pattern[str],
        token_type: str,
        allow: set[str],
        claim: Callable[[int, int, str, str], None],
    ) -> None:
        for match in pattern.finditer(text):
            value = match.group(0)
            if not value or value.lower() in allow:
                continue
            claim(match.start(), match.end(), value, token_type)
