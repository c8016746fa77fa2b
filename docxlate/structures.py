"""Core data structures for the docxlate translator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class SegmentKind(Enum):
    """Granularity of a translation unit."""

    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    RUN = "run"


class PlaceholderKind(Enum):
    """Kinds of non-text constructs lifted out of a paragraph."""

    STYLE = "style"
    IMAGE = "image"
    TABLE = "table"
    OTHER = "other"


@dataclass(frozen=True)
class Span:
    """Character offsets of a construct inside its paragraph markup."""

    start: int
    end: int


@dataclass
class TagPlaceholder:
    """An opaque stand-in for a style, image, or table construct."""

    placeholder_id: str
    kind: PlaceholderKind
    original_tag: str
    span: Span
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.placeholder_id,
            "type": self.kind.value,
            "originalTag": self.original_tag,
            "position": {"start": self.span.start, "end": self.span.end},
            "metadata": self.metadata,
        }


@dataclass
class TextSegment:
    """A unit of translatable text extracted from the document."""

    segment_id: str
    kind: SegmentKind
    text: str
    original_markup: str
    placeholders: List[TagPlaceholder] = field(default_factory=list)
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.segment_id,
            "type": self.kind.value,
            "text": self.text,
            "originalXml": self.original_markup,
            "placeholders": [placeholder.placeholder_id for placeholder in self.placeholders],
            "parentId": self.parent_id,
        }


@dataclass
class TranslatedSegment(TextSegment):
    """A segment annotated with the oracle's translation."""

    translated_text: str = ""

    @classmethod
    def from_segment(cls, segment: TextSegment, translated_text: str) -> "TranslatedSegment":
        return cls(
            segment_id=segment.segment_id,
            kind=segment.kind,
            text=segment.text,
            original_markup=segment.original_markup,
            placeholders=list(segment.placeholders),
            parent_id=segment.parent_id,
            translated_text=translated_text,
        )


@dataclass
class ParagraphRecord:
    """Reconstruction-time view of a document paragraph.

    ``element`` is the live lxml node so rewrites never depend on string
    offsets. ``order`` is the paragraph's position among all paragraphs of
    the document, empty ones included.
    """

    markup: str
    text: str
    order: int
    element: Any = field(default=None, repr=False, compare=False)
    translated_text: Optional[str] = None
    claimed: bool = False


@dataclass
class ExtractionResult:
    """Segments plus the flat placeholder table for one document job."""

    segments: List[TextSegment]
    placeholders: Dict[str, TagPlaceholder]


@dataclass(frozen=True)
class LocalModelConfig:
    """Locally hosted chat-completion server (Ollama style)."""

    endpoint: str
    model: str

    @property
    def kind(self) -> str:
        return "local_model"


@dataclass(frozen=True)
class HostedApiConfig:
    """Hosted, API-key based chat-completion endpoint."""

    api_key: str
    base_url: str = "https://api.deepseek.com"
    model: str = "deepseek-chat"

    @property
    def kind(self) -> str:
        return "hosted_api"


TranslationConfig = Union[LocalModelConfig, HostedApiConfig]


@dataclass
class Batch:
    """A contiguous slice of translated segments reconstructed together.

    ``start_index`` is the position of the first segment in the job's full
    segment list.
    """

    batch_id: int
    start_index: int
    segments: List[TranslatedSegment]
