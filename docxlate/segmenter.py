"""Segment extraction and sentence utilities."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Dict, List, Optional, Sequence

from lxml import etree

from .ooxml import (
    iter_paragraphs,
    owning_paragraph,
    paragraph_text,
    parse_markup,
    serialize_fragment,
    strip_elements,
    unwrap_elements,
    w,
)
from .structures import (
    ExtractionResult,
    PlaceholderKind,
    SegmentKind,
    Span,
    TagPlaceholder,
    TextSegment,
    TranslatedSegment,
)

SENTENCE_PATTERN = re.compile(r".+?(?:[.!?。！？\n]+\s*|$)", re.DOTALL)

_NS_DECLARATION = re.compile(r'\s+xmlns(?::[\w.-]+)?="[^"]*"')

# Deterministic namespace for placeholder ids, so extraction is repeatable.
_PLACEHOLDER_NAMESPACE = uuid.UUID("6f1d2c1e-8a53-4f0e-9c1b-2d4a7e9b0c11")

HEADER_FOOTER_TAGS = (w("hdr"), w("ftr"))
COMMENT_TAGS = (w("commentRangeStart"), w("commentRangeEnd"), w("commentReference"))
DELETED_TAGS = (w("del"), w("moveFrom"))
INSERTED_TAGS = (w("ins"), w("moveTo"))

PLACEHOLDER_TAGS = (
    (PlaceholderKind.STYLE, w("rPr")),
    (PlaceholderKind.TABLE, w("tbl")),
    (PlaceholderKind.IMAGE, w("drawing")),
)


def contains_cjk(text: str) -> bool:
    """Detect whether the text contains CJK characters."""

    for char in text:
        code = ord(char)
        if (
            0x4E00 <= code <= 0x9FFF  # CJK Unified Ideographs
            or 0x3400 <= code <= 0x4DBF  # Extension A
            or 0x3040 <= code <= 0x30FF  # Hiragana/Katakana
            or 0xAC00 <= code <= 0xD7AF  # Hangul syllables
        ):
            return True
    return False


def _consume_pattern(pattern: re.Pattern[str], text: str) -> List[str]:
    """Split text by greedily consuming matches from the start of a string."""

    if not text:
        return []

    pieces: List[str] = []
    index = 0
    length = len(text)
    while index < length:
        match = pattern.match(text, index)
        if not match:
            pieces.append(text[index:])
            break
        end = match.end()
        if end == index:
            # Avoid zero-length loops by consuming at least one character.
            end += 1
        pieces.append(text[index:end])
        index = end
    return pieces


def split_sentences(text: str) -> List[str]:
    """Split text into sentences, keeping each terminator with its sentence.

    ``.``, ``!``, ``?``, their CJK forms and line breaks end a sentence.
    Pieces are trimmed and empty ones dropped.
    """

    if not text or not text.strip():
        return []
    sentences = []
    for piece in _consume_pattern(SENTENCE_PATTERN, text):
        stripped = piece.strip()
        if stripped:
            sentences.append(stripped)
    return sentences


def placeholder_id(kind: PlaceholderKind, paragraph_index: int, ordinal: int) -> str:
    """Stable id for the n-th construct of a kind in a paragraph."""

    seed = f"{paragraph_index}:{kind.value}:{ordinal}"
    return f"{kind.value}_{uuid.uuid5(_PLACEHOLDER_NAMESPACE, seed).hex}"


def _local_markup(element: etree._Element) -> str:
    """Serialise a sub-element the way it appears inside its paragraph."""

    return _NS_DECLARATION.sub("", serialize_fragment(element))


class SegmentExtractor:
    """Turns ``word/document.xml`` markup into ordered text segments."""

    def __init__(
        self,
        *,
        split_sentences: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.split_sentences = split_sentences
        self.logger = logger or logging.getLogger("docxlate.extractor")

    def extract(self, markup: str | bytes) -> ExtractionResult:
        root = parse_markup(markup)
        self.clean(root)

        segments: List[TextSegment] = []
        placeholders: Dict[str, TagPlaceholder] = {}
        total = 0
        empty = 0

        for index, paragraph in enumerate(iter_paragraphs(root), start=1):
            total += 1
            text = paragraph_text(paragraph).strip()
            if not text:
                empty += 1
                self.logger.debug("Skipping empty paragraph %d", index)
                continue

            paragraph_markup = serialize_fragment(paragraph)
            lifted = self.lift_placeholders(paragraph, paragraph_markup, index)
            for placeholder in lifted:
                placeholders[placeholder.placeholder_id] = placeholder

            paragraph_id = f"p_{index}"
            sentences = split_sentences(text) if self.split_sentences else []
            if not sentences:
                segments.append(
                    TextSegment(
                        segment_id=paragraph_id,
                        kind=SegmentKind.PARAGRAPH,
                        text=text,
                        original_markup=paragraph_markup,
                        placeholders=lifted,
                        parent_id=paragraph_id,
                    )
                )
                continue
            for sentence in sentences:
                segments.append(
                    TextSegment(
                        segment_id=f"s_{len(segments) + 1}",
                        kind=SegmentKind.SENTENCE,
                        text=sentence,
                        original_markup=paragraph_markup,
                        placeholders=lifted,
                        parent_id=paragraph_id,
                    )
                )

        self.logger.info(
            "Extracted %d segments from %d paragraphs (%d empty, %d placeholders)",
            len(segments),
            total,
            empty,
            len(placeholders),
        )
        return ExtractionResult(segments=segments, placeholders=placeholders)

    def clean(self, root: etree._Element) -> None:
        """Drop headers, footers, comment markers and revision markup."""

        removed_regions = strip_elements(root, *HEADER_FOOTER_TAGS)
        removed_comments = strip_elements(root, *COMMENT_TAGS)
        removed_deletions = strip_elements(root, *DELETED_TAGS)
        unwrapped = unwrap_elements(root, *INSERTED_TAGS)
        if removed_regions or removed_comments or removed_deletions or unwrapped:
            self.logger.debug(
                "Cleaned markup: %d header/footer, %d comment markers, "
                "%d deletions, %d insertions unwrapped",
                removed_regions,
                removed_comments,
                removed_deletions,
                unwrapped,
            )

    def lift_placeholders(
        self,
        paragraph: etree._Element,
        paragraph_markup: str,
        paragraph_index: int,
    ) -> List[TagPlaceholder]:
        """Record style, table and image constructs of a paragraph.

        Nothing is spliced into the paragraph text; the table exists so a
        later stage can restore constructs by id.
        """

        lifted: List[TagPlaceholder] = []
        for kind, tag in PLACEHOLDER_TAGS:
            cursor = 0
            for ordinal, element in enumerate(paragraph.iter(tag)):
                if kind is PlaceholderKind.STYLE and owning_paragraph(element) is not paragraph:
                    continue
                original_tag = _local_markup(element)
                start = paragraph_markup.find(original_tag, cursor)
                if start == -1:
                    span = Span(-1, -1)
                else:
                    span = Span(start, start + len(original_tag))
                    cursor = span.end
                lifted.append(
                    TagPlaceholder(
                        placeholder_id=placeholder_id(kind, paragraph_index, ordinal),
                        kind=kind,
                        original_tag=original_tag,
                        span=span,
                        metadata=self._metadata_for(kind, element),
                    )
                )
        return lifted

    def _metadata_for(self, kind: PlaceholderKind, element: etree._Element) -> Dict[str, object]:
        if kind is PlaceholderKind.STYLE:
            return {"content": "".join(_local_markup(child) for child in element)}
        if kind is PlaceholderKind.TABLE:
            return {"rows": len(element.findall(w("tr")))}
        embeds = [
            value
            for node in element.iter()
            for key, value in node.attrib.items()
            if key.endswith("}embed")
        ]
        return {"embeds": embeds}


def merge_sentence_segments(
    segments: Sequence[TranslatedSegment],
) -> List[TranslatedSegment]:
    """Fold consecutive sentence segments back into one per paragraph.

    Paragraph segments pass through unchanged. The merged segment carries the
    paragraph's full source text so it can be matched like any paragraph.
    """

    merged: List[TranslatedSegment] = []
    group: List[TranslatedSegment] = []

    def flush() -> None:
        if not group:
            return
        first = group[0]
        source_text = paragraph_text(parse_markup(first.original_markup)).strip()
        pieces = [segment.translated_text for segment in group if segment.translated_text]
        joiner = "" if any(contains_cjk(piece) for piece in pieces) else " "
        merged.append(
            TranslatedSegment(
                segment_id=first.parent_id or first.segment_id,
                kind=SegmentKind.PARAGRAPH,
                text=source_text,
                original_markup=first.original_markup,
                placeholders=list(first.placeholders),
                parent_id=first.parent_id,
                translated_text=joiner.join(piece.strip() for piece in pieces),
            )
        )
        group.clear()

    for segment in segments:
        if segment.kind is not SegmentKind.SENTENCE:
            flush()
            merged.append(segment)
            continue
        if group and group[0].parent_id != segment.parent_id:
            flush()
        group.append(segment)
    flush()
    return merged
