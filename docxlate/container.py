"""Reading and writing the .docx zip container."""

from __future__ import annotations

import io
import logging
import pathlib
import posixpath
import zipfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .errors import OutputWriteError, ParseError
from .ooxml import iter_paragraphs, paragraph_text, parse_markup

DOCUMENT_PART = "word/document.xml"
CONTENT_TYPES_PART = "[Content_Types].xml"
STYLES_PART = "word/styles.xml"
MEDIA_PREFIX = "word/media/"
ZIP_SIGNATURE = b"PK\x03\x04"
MIN_OUTPUT_SIZE = 1000
COMPRESS_LEVEL = 6

_CONTENT_TYPES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">
  <Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>
  <Default Extension="xml" ContentType="application/xml"/>
  <Override PartName="/word/document.xml" ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>
  <Override PartName="/word/styles.xml" ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.styles+xml"/>
  <Override PartName="/docProps/app.xml" ContentType="application/vnd.openxmlformats-officedocument.extended-properties+xml"/>
  <Override PartName="/docProps/core.xml" ContentType="application/vnd.openxmlformats-package.core-properties+xml"/>
</Types>"""

_PACKAGE_RELS = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" Target="word/document.xml"/>
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties" Target="docProps/core.xml"/>
  <Relationship Id="rId3" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/extended-properties" Target="docProps/app.xml"/>
</Relationships>"""

_DOCUMENT_RELS = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles" Target="styles.xml"/>
</Relationships>"""

_STYLES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<w:styles xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:style w:type="paragraph" w:styleId="Normal">
    <w:name w:val="Normal"/>
    <w:pPr/>
    <w:rPr>
      <w:sz w:val="24"/>
      <w:szCs w:val="24"/>
    </w:rPr>
  </w:style>
</w:styles>"""

_APP_PROPERTIES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<Properties xmlns="http://schemas.openxmlformats.org/officeDocument/2006/extended-properties">
  <Application>docxlate</Application>
  <AppVersion>0.1.0</AppVersion>
</Properties>"""

_CORE_PROPERTIES = """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<cp:coreProperties xmlns:cp="http://schemas.openxmlformats.org/package/2006/metadata/core-properties" xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:dcterms="http://purl.org/dc/terms/" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
  <dc:title>Translated Document</dc:title>
  <dc:creator>docxlate</dc:creator>
  <cp:lastModifiedBy>docxlate</cp:lastModifiedBy>
  <dcterms:created xsi:type="dcterms:W3CDTF">{now}</dcterms:created>
  <dcterms:modified xsi:type="dcterms:W3CDTF">{now}</dcterms:modified>
</cp:coreProperties>"""


def required_parts() -> Dict[str, str]:
    """Default content for every part a Word package cannot open without."""

    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        CONTENT_TYPES_PART: _CONTENT_TYPES,
        "_rels/.rels": _PACKAGE_RELS,
        "word/_rels/document.xml.rels": _DOCUMENT_RELS,
        STYLES_PART: _STYLES,
        "docProps/app.xml": _APP_PROPERTIES,
        "docProps/core.xml": _CORE_PROPERTIES.format(now=now),
    }


class DocxPackage:
    """An in-memory copy of a .docx archive, member order preserved."""

    def __init__(
        self,
        source_path: pathlib.Path,
        members: List[Tuple[zipfile.ZipInfo, bytes]],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.source_path = source_path
        self.members = members
        self.logger = logger or logging.getLogger("docxlate.container")

    @classmethod
    def open(
        cls,
        path: pathlib.Path,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "DocxPackage":
        """Read every member of the archive; raise ``ParseError`` if unusable."""

        try:
            with zipfile.ZipFile(path) as archive:
                members = [(info, archive.read(info)) for info in archive.infolist()]
        except zipfile.BadZipFile as exc:
            raise ParseError(f"{path.name} is not a valid .docx archive.") from exc
        except OSError as exc:
            raise ParseError(f"Could not read {path}: {exc}") from exc

        package = cls(path, members, logger=logger)
        if DOCUMENT_PART not in package.names:
            raise ParseError(f"{path.name} has no {DOCUMENT_PART} part.")
        return package

    @property
    def names(self) -> List[str]:
        return [info.filename for info, _ in self.members]

    def read(self, name: str) -> bytes:
        for info, data in self.members:
            if info.filename == name:
                return data
        raise KeyError(name)

    @property
    def document_xml(self) -> str:
        try:
            return self.read(DOCUMENT_PART).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"{DOCUMENT_PART} is not UTF-8 encoded.") from exc

    def to_bytes(self, document_xml: str) -> bytes:
        """Build a new archive with ``document_xml`` as the main part.

        Missing required parts are added with default content.
        """

        buffer = io.BytesIO()
        with zipfile.ZipFile(
            buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL
        ) as archive:
            present = set()
            for info, data in self.members:
                if info.filename == DOCUMENT_PART:
                    data = document_xml.encode("utf-8")
                archive.writestr(_copy_info(info), data)
                present.add(info.filename)
            for name, content in required_parts().items():
                if name not in present:
                    self.logger.info("Adding missing package part %s", name)
                    archive.writestr(name, content.encode("utf-8"))
        return buffer.getvalue()

    def describe_structure(self) -> Dict[str, Any]:
        """Summarise the archive: members, media and paragraph texts."""

        paragraphs: List[str] = []
        try:
            root = parse_markup(self.read(DOCUMENT_PART))
        except ParseError as exc:
            self.logger.warning("Document part could not be parsed: %s", exc)
        else:
            for paragraph in iter_paragraphs(root):
                text = paragraph_text(paragraph).strip()
                if text:
                    paragraphs.append(text)

        names = self.names
        return {
            "files": names,
            "has_document_xml": DOCUMENT_PART in names,
            "has_styles_xml": STYLES_PART in names,
            "media_files": [
                posixpath.basename(name)
                for name in names
                if name.startswith(MEDIA_PREFIX) and not name.endswith("/")
            ],
            "paragraphs": paragraphs,
        }


def _copy_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    copied = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    copied.compress_type = zipfile.ZIP_DEFLATED
    copied.external_attr = info.external_attr
    return copied


def write_bytes(path: pathlib.Path, data: bytes) -> None:
    """Persist an archive with a single whole-buffer write."""

    try:
        path.write_bytes(data)
    except OSError as exc:
        raise OutputWriteError(f"Could not write {path}: {exc}") from exc


def verify_output(path: pathlib.Path, *, logger: Optional[logging.Logger] = None) -> bool:
    """Check that a written file looks like an openable Word package."""

    log = logger or logging.getLogger("docxlate.container")
    if not path.is_file():
        log.error("Output verification failed: %s does not exist", path)
        return False
    size = path.stat().st_size
    if size < MIN_OUTPUT_SIZE:
        log.error("Output verification failed: file too small (%d bytes)", size)
        return False
    with path.open("rb") as handle:
        if handle.read(4) != ZIP_SIGNATURE:
            log.error("Output verification failed: not a zip archive")
            return False
    try:
        with zipfile.ZipFile(path) as archive:
            names = set(archive.namelist())
    except zipfile.BadZipFile:
        log.error("Output verification failed: archive is corrupt")
        return False
    if DOCUMENT_PART not in names or CONTENT_TYPES_PART not in names:
        log.error("Output verification failed: required parts are missing")
        return False
    return True
