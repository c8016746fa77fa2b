"""Bounded, sequential reconstruction passes for large documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from .ooxml import parse_markup, serialize_document
from .reconstruction import DocumentReconstructor, SegmentMatcher, read_paragraph_records
from .structures import Batch, TranslatedSegment
from .validation import ValidationOutcome, XmlValidator

LARGE_MARKUP_THRESHOLD = 500_000
LARGE_SEGMENT_COUNT = 100
BATCH_SIZE = 30


@dataclass
class BatchOutcome:
    batch_id: int
    segments: int
    matched: int
    unmatched: List[str]
    outcome: ValidationOutcome
    valid: bool


@dataclass
class ReconstructionResult:
    """Final markup plus per-batch bookkeeping."""

    markup: str
    batched: bool
    batches: List[BatchOutcome] = field(default_factory=list)
    claimed_orders: Set[int] = field(default_factory=set)

    @property
    def valid(self) -> bool:
        return bool(self.batches) and self.batches[-1].valid

    @property
    def matched(self) -> int:
        return sum(
            batch.matched
            for batch in self.batches
            if batch.outcome is not ValidationOutcome.ROLLED_BACK
        )

    @property
    def unmatched(self) -> List[str]:
        return [text for batch in self.batches for text in batch.unmatched]

    @property
    def rolled_back(self) -> int:
        return sum(1 for batch in self.batches if batch.outcome is ValidationOutcome.ROLLED_BACK)


class BatchProcessor:
    """Runs matcher, reconstructor and validator over bounded slices.

    Small inputs go through as a single batch. Large ones (by markup size or
    segment count) are cut into fixed-size batches processed in order, each
    one starting from the previous batch's output. Claimed paragraphs and
    global segment positions carry over, so batching does not change the
    result. A batch whose markup cannot be validated rolls back alone.
    """

    def __init__(
        self,
        *,
        matcher: SegmentMatcher,
        reconstructor: DocumentReconstructor,
        validator: XmlValidator,
        batch_size: int = BATCH_SIZE,
        markup_threshold: int = LARGE_MARKUP_THRESHOLD,
        segment_threshold: int = LARGE_SEGMENT_COUNT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.matcher = matcher
        self.reconstructor = reconstructor
        self.validator = validator
        self.batch_size = max(1, batch_size)
        self.markup_threshold = markup_threshold
        self.segment_threshold = segment_threshold
        self.logger = logger or logging.getLogger("docxlate.batching")

    def needs_batching(self, markup: str, segments: Sequence[TranslatedSegment]) -> bool:
        return len(markup) > self.markup_threshold or len(segments) > self.segment_threshold

    def build_batches(self, segments: Sequence[TranslatedSegment]) -> List[Batch]:
        return [
            Batch(
                batch_id=number,
                start_index=start,
                segments=list(segments[start : start + self.batch_size]),
            )
            for number, start in enumerate(range(0, len(segments), self.batch_size), start=1)
        ]

    def process(
        self,
        markup: str,
        segments: Sequence[TranslatedSegment],
        *,
        force_batching: Optional[bool] = None,
    ) -> ReconstructionResult:
        """Reconstruct ``markup`` with ``segments``.

        Raises ``ParseError`` when the markup cannot be parsed.
        """

        batched = self.needs_batching(markup, segments) if force_batching is None else force_batching
        batched = batched and bool(segments)
        if batched:
            batches = self.build_batches(segments)
            self.logger.info(
                "Large document (%d characters, %d segments); reconstructing in %d batches",
                len(markup),
                len(segments),
                len(batches),
            )
        else:
            batches = [Batch(batch_id=1, start_index=0, segments=list(segments))]

        result = ReconstructionResult(markup=markup, batched=batched)
        for batch in batches:
            result.markup, outcome = self._run_batch(result.markup, batch, result.claimed_orders)
            result.batches.append(outcome)
        return result

    def _run_batch(
        self,
        markup: str,
        batch: Batch,
        claimed_orders: Set[int],
    ) -> Tuple[str, BatchOutcome]:
        self.logger.debug("Processing batch %d (%d segments)", batch.batch_id, len(batch.segments))

        root = parse_markup(markup)
        records = read_paragraph_records(root)
        for record in records:
            if record.order in claimed_orders:
                record.claimed = True

        match = self.matcher.match(batch.segments, records, start_index=batch.start_index)
        self.reconstructor.apply(records)
        candidate = serialize_document(root)

        settled = self.validator.settle(candidate, markup)
        if settled.outcome is ValidationOutcome.ROLLED_BACK:
            self.logger.warning("Batch %d rolled back; its replacements were discarded", batch.batch_id)
        else:
            claimed_orders.update(
                record.order for record in records if record.translated_text is not None
            )

        outcome = BatchOutcome(
            batch_id=batch.batch_id,
            segments=len(batch.segments),
            matched=match.matched,
            unmatched=list(match.unmatched),
            outcome=settled.outcome,
            valid=settled.report.valid,
        )
        return settled.markup, outcome
