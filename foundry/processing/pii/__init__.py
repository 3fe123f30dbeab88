"""PII detection and tokenization for processed records."""

from foundry.processing.pii.engine import PiiEngine, PiiResult
from foundry.processing.pii.names import NameDetector, PresidioNameDetector
from foundry.processing.pii.patterns import ALL_PATTERNS, PIIPattern

__all__ = [
    "ALL_PATTERNS",
    "NameDetector",
    "PIIPattern",
    "PiiEngine",
    "PiiResult",
    "PresidioNameDetector",
]
