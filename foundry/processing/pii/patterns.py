"""Regex battery for pattern-based PII tokenization.

Patterns are applied in the order listed. The token type of each class
is the upper-cased name used in the placeholder, e.g. ``[CREDITCARD_0003]``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PIIPattern:
    """A compiled PII detection pattern with metadata."""

    token_type: str
    pattern: re.Pattern[str]
    description: str


# ---------------------------------------------------------------------------
# Pattern definitions
# ---------------------------------------------------------------------------

_PATTERNS: list[PIIPattern] = [
    # -- Email ----------------------------------------------------------------
    PIIPattern(
        token_type="EMAIL",
        pattern=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b"),
        description="Email address",
    ),
    # -- Phone ----------------------------------------------------------------
    # The number must not continue a word or another number; the optional
    # country code is part of the match, surrounding whitespace is not.
    PIIPattern(
        token_type="PHONE",
        pattern=re.compile(r"(?<![\w+])(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
        description="US phone number with optional +1 country code",
    ),
    # -- SSN ------------------------------------------------------------------
    PIIPattern(
        token_type="SSN",
        pattern=re.compile(r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"),
        description="US SSN (XXX-XX-XXXX, separators optional)",
    ),
    # -- Credit Card ----------------------------------------------------------
    PIIPattern(
        token_type="CREDITCARD",
        pattern=re.compile(r"\b\d{4}[-.\s]?\d{4}[-.\s]?\d{4}[-.\s]?\d{4}\b"),
        description="16-digit card number in groups of four",
    ),
    # -- IP Address -----------------------------------------------------------
    PIIPattern(
        token_type="IPADDRESS",
        pattern=re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
        description="IPv4 address",
    ),
    # -- ZIP Code -------------------------------------------------------------
    PIIPattern(
        token_type="ZIPCODE",
        pattern=re.compile(r"\b\d{5}(?:-\d{4})?\b"),
        description="US ZIP or ZIP+4",
    ),
]

ALL_PATTERNS: tuple[PIIPattern, ...] = tuple(_PATTERNS)


def compile_custom_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a user-supplied pattern case-insensitively.

    Returns:
        The compiled pattern, or None when the regex is invalid.
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except (re.error, TypeError):
        return None
