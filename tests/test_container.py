"""Tests for the .docx container and the fallback document."""

import io
import zipfile

import pytest
from docx import Document

from conftest import read_docx_paragraphs, simple_document, write_docx
from docxlate.container import (
    CONTENT_TYPES_PART,
    DOCUMENT_PART,
    DocxPackage,
    required_parts,
    verify_output,
    write_bytes,
)
from docxlate.errors import OutputWriteError, ParseError
from docxlate.fallback import FallbackDocumentBuilder
from docxlate.structures import SegmentKind, TranslatedSegment


def make_segment(text, translated):
    return TranslatedSegment(
        segment_id="p_1",
        kind=SegmentKind.PARAGRAPH,
        text=text,
        original_markup="",
        translated_text=translated,
    )


class TestDocxPackage:
    """Tests for reading and rebuilding archives."""

    def test_open_real_document(self, tmp_path):
        path = tmp_path / "source.docx"
        write_docx(path, ["Hello", "World"])

        package = DocxPackage.open(path)

        assert DOCUMENT_PART in package.names
        assert "<w:document" in package.document_xml

    def test_open_rejects_non_zip(self, tmp_path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(ParseError):
            DocxPackage.open(path)

    def test_open_rejects_missing_document_part(self, tmp_path):
        path = tmp_path / "empty.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("word/other.xml", "<x/>")

        with pytest.raises(ParseError):
            DocxPackage.open(path)

    def test_to_bytes_replaces_document_and_keeps_order(self, tmp_path):
        path = tmp_path / "source.docx"
        write_docx(path, ["Hello"])
        package = DocxPackage.open(path)
        replacement = simple_document(["Bonjour"])

        data = package.to_bytes(replacement)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.read(DOCUMENT_PART).decode("utf-8") == replacement
            assert archive.namelist()[: len(package.names)] == package.names

    def test_missing_required_parts_added(self, tmp_path):
        path = tmp_path / "bare.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(DOCUMENT_PART, simple_document(["Hello"]))

        data = DocxPackage.open(path).to_bytes(simple_document(["Bonjour"]))

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
        assert set(required_parts()) <= names

    def test_describe_structure(self, tmp_path):
        path = tmp_path / "source.docx"
        write_docx(path, ["Hello", "", "World"])

        structure = DocxPackage.open(path).describe_structure()

        assert structure["has_document_xml"]
        assert structure["has_styles_xml"]
        assert structure["media_files"] == []
        assert structure["paragraphs"] == ["Hello", "World"]


class TestOutputChecks:
    """Tests for persisting and verifying output."""

    def test_verify_real_document(self, tmp_path):
        path = tmp_path / "out.docx"
        write_docx(path, ["Hello"])

        assert verify_output(path)

    def test_verify_rejects_small_file(self, tmp_path):
        path = tmp_path / "tiny.docx"
        path.write_bytes(b"PK\x03\x04tiny")

        assert not verify_output(path)

    def test_verify_rejects_non_zip(self, tmp_path):
        path = tmp_path / "text.docx"
        path.write_bytes(b"x" * 2000)

        assert not verify_output(path)

    def test_verify_missing_file(self, tmp_path):
        assert not verify_output(tmp_path / "absent.docx")

    def test_verify_rejects_archive_without_content_types(self, tmp_path):
        path = tmp_path / "partial.docx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr(DOCUMENT_PART, simple_document(["Hello"]) + " " * 2000)

        assert not verify_output(path)

    def test_write_failure_raises(self, tmp_path):
        with pytest.raises(OutputWriteError):
            write_bytes(tmp_path, b"data")


class TestFallbackDocumentBuilder:
    """Tests for the simplified fallback document."""

    def test_build_contains_translations(self):
        segments = [
            make_segment("Hello", "Bonjour"),
            make_segment("Blank", ""),
            make_segment("World", "Monde"),
        ]

        data = FallbackDocumentBuilder().build(segments)

        document = Document(io.BytesIO(data))
        assert [paragraph.text for paragraph in document.paragraphs] == ["Bonjour", "Monde"]
        assert all(paragraph.style.name == "Normal" for paragraph in document.paragraphs)

    def test_written_fallback_verifies(self, tmp_path):
        path = tmp_path / "fallback.docx"

        FallbackDocumentBuilder().write([make_segment("Hello", "Bonjour")], path)

        assert verify_output(path)
        assert read_docx_paragraphs(path) == ["Bonjour"]
        with zipfile.ZipFile(path) as archive:
            assert CONTENT_TYPES_PART in archive.namelist()
