"""Matching translated segments to paragraphs and rewriting them in place."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from lxml import etree

from .errors import ErrorCategory, MatchError
from .ooxml import iter_paragraphs, paragraph_text, paragraph_text_nodes, serialize_fragment, set_node_text
from .policy import ErrorPolicy
from .structures import ParagraphRecord, TranslatedSegment

WHITESPACE = re.compile(r"\s+")
PUNCTUATION = re.compile(r"[.,!?;:()\[\]{}\"“”'‘’「」『』\-—–]")

MIN_CONTAINMENT_LENGTH = 10
MIN_FUZZY_LENGTH = 5


class MatchStrategy(Enum):
    """Matching strategies, in the order they are tried."""

    EXACT = "exact"
    CONTAINMENT = "containment"
    FUZZY = "fuzzy"
    POSITIONAL = "positional"


def normalize_whitespace(text: str) -> str:
    return WHITESPACE.sub(" ", text).strip()


def simplify(text: str) -> str:
    """Drop punctuation and collapse whitespace for fuzzy comparison."""

    return normalize_whitespace(PUNCTUATION.sub("", text))


def read_paragraph_records(root: etree._Element) -> List[ParagraphRecord]:
    """Build records for every non-empty paragraph of a parsed document."""

    records: List[ParagraphRecord] = []
    for order, paragraph in enumerate(iter_paragraphs(root)):
        text = paragraph_text(paragraph).strip()
        if not text:
            continue
        records.append(
            ParagraphRecord(
                markup=serialize_fragment(paragraph),
                text=text,
                order=order,
                element=paragraph,
            )
        )
    return records


@dataclass
class MatchResult:
    paragraphs: List[ParagraphRecord]
    unmatched: List[str] = field(default_factory=list)
    strategies: Dict[str, MatchStrategy] = field(default_factory=dict)

    @property
    def matched(self) -> int:
        return len(self.strategies)


class SegmentMatcher:
    """Locates the paragraph each translated segment came from.

    Strategies run from most to least precise. A claimed paragraph is never
    offered to another segment. The positional fallback can mis-attribute
    text when a document repeats a paragraph verbatim; that ambiguity is
    accepted.
    """

    def __init__(
        self,
        *,
        error_policy: Optional[ErrorPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("docxlate.matcher")
        self.error_policy = error_policy or ErrorPolicy(logger=self.logger)

    def match(
        self,
        segments: Sequence[TranslatedSegment],
        paragraphs: List[ParagraphRecord],
        *,
        start_index: int = 0,
    ) -> MatchResult:
        """Claim paragraphs for ``segments``.

        ``start_index`` is the position of the first segment in the job's
        full segment list, used by the positional fallback.
        """

        result = MatchResult(paragraphs=paragraphs)
        for offset, segment in enumerate(segments):
            if not segment.text or not segment.translated_text:
                continue
            try:
                strategy = self._match_one(segment, paragraphs, start_index + offset)
            except MatchError as exc:
                result.unmatched.append(normalize_whitespace(segment.text))
                self.error_policy.handle_error(ErrorCategory.MATCH, str(exc))
                continue
            result.strategies[segment.segment_id] = strategy

        self.logger.info(
            "Matched %d of %d segments (%d unmatched)",
            result.matched,
            len(segments),
            len(result.unmatched),
        )
        return result

    def _match_one(
        self,
        segment: TranslatedSegment,
        paragraphs: List[ParagraphRecord],
        index: int,
    ) -> MatchStrategy:
        normalized = normalize_whitespace(segment.text)

        for paragraph in self._unclaimed(paragraphs):
            if normalize_whitespace(paragraph.text) == normalized:
                return self._claim(paragraph, segment, MatchStrategy.EXACT)

        if len(normalized) > MIN_CONTAINMENT_LENGTH:
            for paragraph in self._unclaimed(paragraphs):
                if normalized in normalize_whitespace(paragraph.text):
                    return self._claim(paragraph, segment, MatchStrategy.CONTAINMENT)

        simplified = simplify(normalized)
        if len(simplified) > MIN_FUZZY_LENGTH:
            for paragraph in self._unclaimed(paragraphs):
                if simplify(paragraph.text) == simplified:
                    return self._claim(paragraph, segment, MatchStrategy.FUZZY)

        if index < len(paragraphs) and not paragraphs[index].claimed:
            return self._claim(paragraphs[index], segment, MatchStrategy.POSITIONAL)
        raise MatchError(
            f"No paragraph found for segment {segment.segment_id} ({normalized[:50]!r}); "
            "leaving it untranslated."
        )

    @staticmethod
    def _unclaimed(paragraphs: Iterable[ParagraphRecord]) -> Iterable[ParagraphRecord]:
        return (paragraph for paragraph in paragraphs if not paragraph.claimed)

    def _claim(
        self,
        paragraph: ParagraphRecord,
        segment: TranslatedSegment,
        strategy: MatchStrategy,
    ) -> MatchStrategy:
        paragraph.claimed = True
        paragraph.translated_text = segment.translated_text
        self.logger.debug(
            "%s match: segment %s -> paragraph %d",
            strategy.value,
            segment.segment_id,
            paragraph.order,
        )
        return strategy


class DocumentReconstructor:
    """Writes translated text into claimed paragraphs through their nodes."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("docxlate.reconstructor")

    def apply(self, paragraphs: Sequence[ParagraphRecord]) -> int:
        """Rewrite every paragraph carrying a translation, last one first."""

        pending = [
            paragraph
            for paragraph in paragraphs
            if paragraph.claimed and paragraph.translated_text is not None
        ]
        rewritten = 0
        for paragraph in sorted(pending, key=lambda record: record.order, reverse=True):
            if self.rewrite_paragraph(paragraph.element, paragraph.translated_text or ""):
                rewritten += 1
        self.logger.info("Rewrote %d paragraphs", rewritten)
        return rewritten

    def rewrite_paragraph(self, paragraph: etree._Element, translated_text: str) -> bool:
        """Put ``translated_text`` into the paragraph's text runs.

        With several runs the first non-empty one takes the whole translation
        and the rest are emptied, so every run and its properties survive.
        """

        nodes = paragraph_text_nodes(paragraph)
        if not nodes:
            self.logger.warning("Paragraph has no text runs; leaving it unchanged")
            return False
        if len(nodes) == 1:
            set_node_text(nodes[0], translated_text)
            return True

        target = next((node for node in nodes if node.text), nodes[0])
        for node in nodes:
            if node is target:
                set_node_text(node, translated_text)
            else:
                node.text = ""
        return True
