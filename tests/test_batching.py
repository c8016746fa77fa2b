"""Tests for batched reconstruction."""

import pytest

from conftest import W_NS, simple_document
from docxlate.batching import BatchProcessor
from docxlate.errors import ParseError
from docxlate.ooxml import iter_paragraphs, paragraph_text, parse_markup, w
from docxlate.reconstruction import DocumentReconstructor, SegmentMatcher
from docxlate.structures import SegmentKind, TranslatedSegment
from docxlate.validation import ValidationOutcome, ValidationReport, XmlValidator


class RejectingValidator(XmlValidator):
    """Treats any markup containing a marker word as structurally broken."""

    MARKER = "REJECT"

    def validate(self, markup):
        if self.MARKER in markup:
            return ValidationReport(valid=False, problems=["rejected marker"])
        return super().validate(markup)


def make_processor(validator=None, **kwargs):
    return BatchProcessor(
        matcher=SegmentMatcher(),
        reconstructor=DocumentReconstructor(),
        validator=validator or XmlValidator(),
        **kwargs,
    )


def make_job(count):
    texts = [f"Paragraph number {index}." for index in range(count)]
    segments = [
        TranslatedSegment(
            segment_id=f"p_{index + 1}",
            kind=SegmentKind.PARAGRAPH,
            text=text,
            original_markup="",
            parent_id=f"p_{index + 1}",
            translated_text=f"Translated {index}",
        )
        for index, text in enumerate(texts)
    ]
    return simple_document(texts), segments


def texts_of(markup):
    return [paragraph_text(paragraph) for paragraph in iter_paragraphs(parse_markup(markup))]


class TestBatchProcessor:
    """Tests for the batch processor."""

    def test_large_segment_count_triggers_batching(self):
        markup, segments = make_job(150)
        processor = make_processor()

        assert processor.needs_batching(markup, segments)
        assert [len(batch.segments) for batch in processor.build_batches(segments)] == [30] * 5
        assert [batch.start_index for batch in processor.build_batches(segments)] == [0, 30, 60, 90, 120]

    def test_small_job_single_batch(self):
        markup, segments = make_job(5)
        result = make_processor().process(markup, segments)

        assert not result.batched
        assert len(result.batches) == 1
        assert result.valid
        assert texts_of(result.markup) == [f"Translated {index}" for index in range(5)]

    def test_batching_is_equivalent(self):
        markup, segments = make_job(150)

        batched = make_processor().process(markup, segments, force_batching=True)
        single = make_processor().process(markup, segments, force_batching=False)

        assert batched.batched
        assert len(batched.batches) == 5
        assert batched.markup == single.markup
        assert batched.matched == single.matched == 150
        assert batched.claimed_orders == single.claimed_orders
        assert texts_of(batched.markup) == [f"Translated {index}" for index in range(150)]

    def test_rolled_back_batch_leaves_its_paragraphs(self):
        markup, segments = make_job(90)
        for segment in segments[30:60]:
            segment.translated_text = f"REJECT {segment.translated_text}"

        result = make_processor(RejectingValidator()).process(markup, segments, force_batching=True)

        assert result.rolled_back == 1
        assert result.valid
        assert result.matched == 60
        texts = texts_of(result.markup)
        assert texts[:30] == [f"Translated {index}" for index in range(30)]
        assert texts[30:60] == [f"Paragraph number {index}." for index in range(30, 60)]
        assert texts[60:] == [f"Translated {index}" for index in range(60, 90)]

    def test_no_segments(self):
        markup, _ = make_job(3)
        result = make_processor().process(markup, [], force_batching=True)

        assert not result.batched
        assert result.valid
        assert texts_of(result.markup) == texts_of(markup)

    def test_unparseable_markup(self):
        _, segments = make_job(2)
        with pytest.raises(ParseError):
            make_processor().process("<w:document>", segments)

    def test_default_namespace_document_kept_intact(self):
        markup = (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<document xmlns="{W_NS}"><body><p><r><t>Hello</t></r></p></body></document>'
        )
        segment = TranslatedSegment(
            segment_id="p_1",
            kind=SegmentKind.PARAGRAPH,
            text="Hello",
            original_markup="",
            parent_id="p_1",
            translated_text="Bonjour",
        )

        result = make_processor().process(markup, [segment])

        assert result.batches[0].outcome is ValidationOutcome.VALID
        root = parse_markup(result.markup)
        assert root.tag == w("document")
        assert len(list(root.iter(w("document")))) == 1
        assert texts_of(result.markup) == ["Bonjour"]
