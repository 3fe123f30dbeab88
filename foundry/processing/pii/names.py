"""Personal-name detection for the PII engine.

The engine depends only on the :class:`NameDetector` protocol. The default
:class:`PresidioNameDetector` runs Presidio's NER analyzer and keeps
``PERSON`` entities; any other detector can be passed to the engine.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from presidio_analyzer import AnalyzerEngine

from foundry.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

PERSON_ENTITY = "PERSON"

_ANALYZER_ENGINE_CACHE: AnalyzerEngine | None = None
_ANALYZER_LOCK = threading.Lock()


class NameDetector(Protocol):
    """Finds personal names in free text."""

    def detect(self, text: str, *, field_hint: bool = False) -> list[str]:
        """Return the names found in ``text``, in order of first appearance.

        Args:
            text: Field value to scan.
            field_hint: The field is known to hold personal data, so
                weaker evidence is accepted.
        """
        ...


def _get_analyzer_engine() -> AnalyzerEngine:
    """Return the process-wide analyzer, loading the NLP model on first use."""
    global _ANALYZER_ENGINE_CACHE
    with _ANALYZER_LOCK:
        if _ANALYZER_ENGINE_CACHE is None:
            logger.info("Initializing Presidio AnalyzerEngine")
            try:
                _ANALYZER_ENGINE_CACHE = AnalyzerEngine()
            except Exception as e:
                logger.critical("Failed to initialize Presidio AnalyzerEngine: %s", e)
                raise RuntimeError(f"Name detector initialization failed: {e}") from e
        return _ANALYZER_ENGINE_CACHE


class PresidioNameDetector:
    """NER-backed name finder.

    Args:
        analyzer: Analyzer to use. Defaults to the shared engine, which is
            loaded once per process.
        settings: Language and score thresholds.
    """

    def __init__(self, analyzer: AnalyzerEngine | None = None, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._analyzer = analyzer or _get_analyzer_engine()
        self._language = settings.pii_name_language
        self._threshold = settings.pii_name_score_threshold
        self._hinted_threshold = settings.pii_name_hinted_score_threshold

    @property
    def analyzer(self) -> AnalyzerEngine:
        return self._analyzer

    def detect(self, text: str, *, field_hint: bool = False) -> list[str]:
        if not text or not text.strip():
            return []

        results = self._analyzer.analyze(
            text=text,
            entities=[PERSON_ENTITY],
            language=self._language,
            score_threshold=self._hinted_threshold if field_hint else self._threshold,
        )

        found: list[str] = []
        for result in sorted(results, key=lambda r: r.start):
            if result.entity_type != PERSON_ENTITY:
                continue
            name = text[result.start : result.end].strip()
            if name and name not in found:
                found.append(name)
        return found
