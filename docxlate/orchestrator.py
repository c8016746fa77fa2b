"""Sequential, per-segment translation with retry and fail-open fallback."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .cleaning import clean_translation_output
from .errors import ErrorCategory, OracleError
from .policy import ErrorPolicy
from .providers import TranslationProvider
from .structures import TextSegment, TranslatedSegment, TranslationConfig

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


@dataclass
class TranslationReport:
    """Outcome of translating one job's segments."""

    segments: List[TranslatedSegment]
    translated: int = 0
    skipped: int = 0
    failures: List[str] = field(default_factory=list)


class TranslationOrchestrator:
    """Resolves every segment's translation through the oracle, one at a time.

    A single request is in flight at any moment. Each segment gets up to
    ``max_attempts`` tries with a fixed delay between them; when all fail the
    segment keeps its source text and the failure is recorded.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        config: TranslationConfig,
        *,
        source_language: str,
        target_language: str,
        error_policy: Optional[ErrorPolicy] = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.provider = provider
        self.config = config
        self.source_language = source_language
        self.target_language = target_language
        self.logger = logger or logging.getLogger("docxlate.orchestrator")
        self.error_policy = error_policy or ErrorPolicy(logger=self.logger)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.sleep = sleep

    def translate_segments(self, segments: Sequence[TextSegment]) -> TranslationReport:
        report = TranslationReport(segments=[])
        total = len(segments)
        self.logger.info("Translating %d segments", total)

        for position, segment in enumerate(segments, start=1):
            if not segment.text or not segment.text.strip():
                report.segments.append(TranslatedSegment.from_segment(segment, ""))
                report.skipped += 1
                self.logger.debug("Skipping empty segment %d/%d: %s", position, total, segment.segment_id)
                continue

            self.logger.debug(
                "Translating segment %d/%d: %r", position, total, _preview(segment.text)
            )
            translated = self._translate_with_retry(segment)
            if translated is None:
                report.failures.append(segment.segment_id)
                translated = segment.text
            else:
                report.translated += 1
            report.segments.append(TranslatedSegment.from_segment(segment, translated))

        self.logger.info(
            "Translation finished: %d translated, %d failed, %d skipped",
            report.translated,
            len(report.failures),
            report.skipped,
        )
        return report

    def _translate_with_retry(self, segment: TextSegment) -> Optional[str]:
        last_error: Optional[OracleError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = self.provider.translate(
                    segment.text,
                    source_language=self.source_language,
                    target_language=self.target_language,
                    config=self.config,
                )
                if not raw or not raw.strip():
                    raise OracleError("Translation backend returned an empty result.")
                cleaned = clean_translation_output(raw, logger=self.logger)
                if not cleaned:
                    raise OracleError("Translation was empty after cleaning.")
                return cleaned
            except OracleError as exc:
                last_error = exc
                self.logger.warning(
                    "Segment %s failed (attempt %d of %d): %s",
                    segment.segment_id,
                    attempt,
                    self.max_attempts,
                    exc,
                )
                if attempt < self.max_attempts:
                    self.sleep(self.retry_delay)

        self.error_policy.handle_error(
            ErrorCategory.ORACLE,
            f"Segment {segment.segment_id} could not be translated; keeping the source text.",
            details=str(last_error) if last_error else None,
        )
        return None
