"""Last-resort synthesis of a plain document from translated text."""

from __future__ import annotations

import io
import logging
import pathlib
from typing import Optional, Sequence

from .container import write_bytes
from .errors import DocxlateError
from .ooxml import sanitize_text
from .structures import TranslatedSegment

DEFAULT_STYLE = "Normal"


def _import_docx():
    try:
        from docx import Document  # type: ignore
    except ImportError as exc:  # pragma: no cover - import guard
        raise DocxlateError(
            "python-docx is required to build fallback documents. "
            "Install it with `pip install python-docx`."
        ) from exc
    return Document


class FallbackDocumentBuilder:
    """Builds a fresh document holding only the translated paragraphs.

    Formatting, tables and images of the source are lost; the point is to
    hand the user something that opens.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("docxlate.fallback")

    def build(self, segments: Sequence[TranslatedSegment]) -> bytes:
        Document = _import_docx()
        document = Document()
        count = 0
        for segment in segments:
            text = sanitize_text(segment.translated_text or "")
            if not text.strip():
                continue
            document.add_paragraph(text, style=DEFAULT_STYLE)
            count += 1

        buffer = io.BytesIO()
        document.save(buffer)
        self.logger.info("Built fallback document with %d paragraphs", count)
        return buffer.getvalue()

    def write(self, segments: Sequence[TranslatedSegment], destination: pathlib.Path) -> None:
        """Build and persist; ``OutputWriteError`` propagates."""

        write_bytes(destination, self.build(segments))
        self.logger.warning("Wrote simplified translation to %s", destination)
