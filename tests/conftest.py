"""Shared fixtures for the docxlate test suite."""

from __future__ import annotations

from typing import Dict, Iterable, List
from xml.sax.saxutils import escape

import pytest
from docx import Document

from docxlate.errors import OracleError
from docxlate.providers import TranslationProvider
from docxlate.structures import LocalModelConfig

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def paragraph_xml(*runs: str) -> str:
    """A ``w:p`` with one run per text; an empty call gives an empty paragraph."""

    body = "".join(f"<w:r><w:t>{escape(text)}</w:t></w:r>" for text in runs)
    return f"<w:p>{body}</w:p>"


def document_xml(*paragraphs: str) -> str:
    """Wrap paragraph markup in a complete ``word/document.xml`` part."""

    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}"><w:body>'
        + "".join(paragraphs)
        + "</w:body></w:document>"
    )


def simple_document(texts: Iterable[str]) -> str:
    return document_xml(*(paragraph_xml(text) if text else paragraph_xml() for text in texts))


def write_docx(path, texts: Iterable[str]) -> None:
    """Create a real .docx with one paragraph per text."""

    document = Document()
    for text in texts:
        document.add_paragraph(text)
    document.save(str(path))


def read_docx_paragraphs(path) -> List[str]:
    return [paragraph.text for paragraph in Document(str(path)).paragraphs]


class DictionaryProvider(TranslationProvider):
    """Looks translations up in a mapping; unknown text raises."""

    name = "dictionary"

    def __init__(self, mapping: Dict[str, str]) -> None:
        self.mapping = mapping
        self.calls: List[str] = []

    def translate(self, text, *, source_language, target_language, config):
        self.calls.append(text)
        if text not in self.mapping:
            raise OracleError(f"no translation for {text!r}")
        return self.mapping[text]


class FailingProvider(TranslationProvider):
    """Always fails, the way an unreachable backend does."""

    name = "failing"

    def __init__(self) -> None:
        self.calls = 0

    def translate(self, text, *, source_language, target_language, config):
        self.calls += 1
        raise OracleError("backend unavailable")


class UpperCaseProvider(TranslationProvider):
    """Deterministic stand-in translation: upper-cases the source."""

    name = "upper"

    def translate(self, text, *, source_language, target_language, config):
        return text.upper()


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def local_config() -> LocalModelConfig:
    return LocalModelConfig(endpoint="http://localhost:11434", model="qwen2.5:7b")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
