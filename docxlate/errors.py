"""Error definitions for the docxlate translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises runtime errors so each can be handled by its own policy."""

    CONFIG = auto()
    PARSE = auto()
    ORACLE = auto()
    MATCH = auto()
    VALIDATION = auto()
    FILE_IO = auto()


class DocxlateError(Exception):
    """Base exception for all custom errors."""


class UnsupportedFileTypeError(DocxlateError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(DocxlateError):
    """Raised when attempting to overwrite an output without consent."""


class ConfigurationError(DocxlateError):
    """Raised when the translation backend is misconfigured."""


class ParseError(DocxlateError):
    """Raised when the source container or its markup cannot be read."""


class OracleError(DocxlateError):
    """Raised when a translation backend call fails."""


class MatchError(DocxlateError):
    """Raised when a translated segment cannot be placed in the document."""


class ValidationError(DocxlateError):
    """Raised when reconstructed markup is structurally invalid."""


class OutputWriteError(DocxlateError):
    """Raised when the translated document cannot be persisted."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
