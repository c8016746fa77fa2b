"""High-level orchestration for document translation."""

from __future__ import annotations

import json
import logging
import pathlib
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .batching import BATCH_SIZE, BatchProcessor, ReconstructionResult
from .container import DocxPackage, verify_output, write_bytes
from .errors import (
    DocxlateError,
    ErrorCategory,
    OverwriteRefusedError,
    ParseError,
    UnsupportedFileTypeError,
)
from .fallback import FallbackDocumentBuilder
from .orchestrator import TranslationOrchestrator, TranslationReport
from .policy import ErrorPolicy
from .providers import TranslationProvider, provider_for_config, validate_translation_config
from .reconstruction import DocumentReconstructor, SegmentMatcher
from .segmenter import SegmentExtractor, merge_sentence_segments
from .structures import ExtractionResult, TranslatedSegment, TranslationConfig
from .validation import XmlValidator

SUPPORTED_SUFFIXES = {".docx"}


class PipelineState(Enum):
    PARSED = "parsed"
    SEGMENTED = "segmented"
    TRANSLATED = "translated"
    MATCHED = "matched"
    RECONSTRUCTED = "reconstructed"
    VALIDATED = "validated"
    ROLLED_BACK = "rolled-back"
    FALLBACK_BUILT = "fallback-built"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class TranslationSummary:
    """Report returned after processing a document."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    total_segments: int
    translated_segments: int
    failed_segments: int
    skipped_segments: int
    matched_paragraphs: int
    unmatched_segments: int
    batches: int
    rolled_back_batches: int
    used_fallback: bool
    final_state: PipelineState
    provider_name: str
    target_language: str
    source_language: str
    elapsed_seconds: float
    states: List[PipelineState] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)


class TranslationRunner:
    """Coordinates extraction, translation, reconstruction and persistence.

    Each runner owns all per-job state, so separate runners may work on
    different files at the same time.
    """

    def __init__(
        self,
        *,
        input_path: pathlib.Path,
        output_path: pathlib.Path,
        target_language: str,
        source_language: str,
        config: TranslationConfig,
        provider: Optional[TranslationProvider] = None,
        split_sentences: bool = False,
        batch_size: int = BATCH_SIZE,
        dump_dir: Optional[pathlib.Path] = None,
        provider_debug: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.input_path = input_path
        self.output_path = output_path
        self.target_language = target_language
        self.source_language = source_language
        self.config = config
        self.split_sentences = split_sentences
        self.batch_size = batch_size
        self.dump_dir = dump_dir
        self.sleep = sleep

        self.logger = logger or logging.getLogger("docxlate")
        self.provider = provider or provider_for_config(
            config,
            debug=provider_debug,
            logger=self.logger.getChild("providers"),
        )
        self.error_policy = ErrorPolicy(logger=self.logger.getChild("policy"))
        self.states: List[PipelineState] = []

    def _enter(self, state: PipelineState) -> None:
        self.states.append(state)
        self.logger.debug("Pipeline state: %s", state.value)

    def run(self) -> TranslationSummary:
        start_time = time.time()
        try:
            return self._run(start_time)
        except Exception:
            self._enter(PipelineState.FAILED)
            raise

    def _run(self, start_time: float) -> TranslationSummary:
        validate_translation_config(self.config)

        package = DocxPackage.open(self.input_path, logger=self.logger.getChild("container"))
        markup = package.document_xml
        self._enter(PipelineState.PARSED)

        extractor = SegmentExtractor(
            split_sentences=self.split_sentences,
            logger=self.logger.getChild("extractor"),
        )
        extraction = extractor.extract(markup)
        self._enter(PipelineState.SEGMENTED)
        if self.dump_dir is not None:
            self._dump(extraction, self.dump_dir)

        orchestrator = TranslationOrchestrator(
            self.provider,
            self.config,
            source_language=self.source_language,
            target_language=self.target_language,
            error_policy=self.error_policy,
            sleep=self.sleep,
            logger=self.logger.getChild("orchestrator"),
        )
        report = orchestrator.translate_segments(extraction.segments)
        self._enter(PipelineState.TRANSLATED)

        segments = merge_sentence_segments(report.segments)
        result = self._reconstruct(markup, segments)

        used_fallback = result is None or not result.valid
        if not used_fallback:
            self._enter(PipelineState.VALIDATED)
            used_fallback = not self._persist(package, result.markup)
        if used_fallback:
            self._build_fallback(segments)
        self._enter(PipelineState.PERSISTED)

        return self._summarise(start_time, extraction, report, result, used_fallback)

    def _reconstruct(
        self,
        markup: str,
        segments: Sequence[TranslatedSegment],
    ) -> Optional[ReconstructionResult]:
        processor = BatchProcessor(
            matcher=SegmentMatcher(
                error_policy=self.error_policy,
                logger=self.logger.getChild("matcher"),
            ),
            reconstructor=DocumentReconstructor(logger=self.logger.getChild("reconstructor")),
            validator=XmlValidator(logger=self.logger.getChild("validator")),
            batch_size=self.batch_size,
            logger=self.logger.getChild("batching"),
        )
        try:
            result = processor.process(markup, segments)
        except ParseError as exc:
            self.error_policy.handle_error(
                ErrorCategory.PARSE,
                "Document structure could not be re-read for reconstruction.",
                details=str(exc),
            )
            return None

        self._enter(PipelineState.MATCHED)
        self._enter(PipelineState.RECONSTRUCTED)
        if result.rolled_back:
            self._enter(PipelineState.ROLLED_BACK)
            self.error_policy.handle_error(
                ErrorCategory.VALIDATION,
                f"{result.rolled_back} reconstruction batch(es) rolled back after failed validation.",
            )
        if not result.valid:
            self.error_policy.handle_error(
                ErrorCategory.VALIDATION,
                "Reconstructed document is structurally invalid; using the fallback document.",
            )
        return result

    def _persist(self, package: DocxPackage, markup: str) -> bool:
        """Write the rebuilt archive; return False when a fallback is needed."""

        try:
            data = package.to_bytes(markup)
        except (ValueError, OSError) as exc:
            self.error_policy.handle_error(
                ErrorCategory.FILE_IO,
                "Could not assemble the translated archive.",
                details=str(exc),
            )
            return False

        write_bytes(self.output_path, data)
        if not verify_output(self.output_path, logger=self.logger.getChild("container")):
            self.error_policy.handle_error(
                ErrorCategory.VALIDATION,
                "Written document failed verification; replacing it with the fallback document.",
            )
            return False
        self.logger.info("Translated document saved to %s", self.output_path)
        return True

    def _build_fallback(self, segments: Sequence[TranslatedSegment]) -> None:
        self._enter(PipelineState.FALLBACK_BUILT)
        builder = FallbackDocumentBuilder(logger=self.logger.getChild("fallback"))
        builder.write(segments, self.output_path)

    def _dump(self, extraction: ExtractionResult, dump_dir: pathlib.Path) -> None:
        """Write the segment and placeholder tables for debugging."""

        dump_dir.mkdir(parents=True, exist_ok=True)
        segments_path = dump_dir / "processed_segments.json"
        placeholders_path = dump_dir / "placeholders.json"
        with segments_path.open("w", encoding="utf-8") as handle:
            json.dump(
                [segment.to_dict() for segment in extraction.segments],
                handle,
                ensure_ascii=False,
                indent=2,
            )
        with placeholders_path.open("w", encoding="utf-8") as handle:
            json.dump(
                {key: value.to_dict() for key, value in extraction.placeholders.items()},
                handle,
                ensure_ascii=False,
                indent=2,
            )
        self.logger.info("Segment tables written to %s", dump_dir)

    def _summarise(
        self,
        start_time: float,
        extraction: ExtractionResult,
        report: TranslationReport,
        result: Optional[ReconstructionResult],
        used_fallback: bool,
    ) -> TranslationSummary:
        return TranslationSummary(
            input_path=self.input_path,
            output_path=self.output_path,
            total_segments=len(extraction.segments),
            translated_segments=report.translated,
            failed_segments=len(report.failures),
            skipped_segments=report.skipped,
            matched_paragraphs=result.matched if result else 0,
            unmatched_segments=len(result.unmatched) if result else 0,
            batches=len(result.batches) if result else 0,
            rolled_back_batches=result.rolled_back if result else 0,
            used_fallback=used_fallback,
            final_state=self.states[-1],
            provider_name=self.provider.name,
            target_language=self.target_language,
            source_language=self.source_language,
            elapsed_seconds=time.time() - start_time,
            states=list(self.states),
            error_messages=self.error_policy.messages,
        )


def sanitise_language_for_filename(language: str) -> str:
    """Generate a filesystem-friendly suffix from a language descriptor."""

    collapsed = re.sub(r"\s+", "-", language.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(
    input_path: pathlib.Path,
    language: str,
    *,
    now: Optional[datetime] = None,
) -> pathlib.Path:
    """``<stem>_<language>_<timestamp>.docx`` next to the input."""

    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    addition = sanitise_language_for_filename(language)
    return input_path.with_name(f"{input_path.stem}_{addition}_{stamp}{input_path.suffix}")


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .docx file."
        )
    if not input_path.is_file():
        raise DocxlateError("Input path must be a file.")
    if input_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFileTypeError(
            "This file type isn't supported; please use .docx."
        )

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists; rename it or use the overwrite flag."
        )
