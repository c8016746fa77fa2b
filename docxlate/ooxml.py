"""WordprocessingML helpers built on lxml."""

from __future__ import annotations

import re
from typing import Iterator, List, Optional

from lxml import etree

from .errors import ParseError

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
XML_NS = "http://www.w3.org/XML/1998/namespace"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'

_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def w(tag: str) -> str:
    """Return the Clark-notation name for a ``w:`` element."""

    return f"{{{W_NS}}}{tag}"


W_P = w("p")
W_T = w("t")
XML_SPACE = f"{{{XML_NS}}}space"


def _build_parser() -> etree.XMLParser:
    # Entities and network access stay disabled; huge_tree lets long
    # documents through the text-node size limits.
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
        recover=False,
    )


def parse_markup(markup: str | bytes) -> etree._Element:
    """Parse document markup into an element tree, raising ``ParseError``."""

    data = markup.encode("utf-8") if isinstance(markup, str) else markup
    if not data or not data.strip():
        raise ParseError("Document markup is empty.")
    try:
        return etree.fromstring(data, parser=_build_parser())
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise ParseError(f"Document markup could not be parsed: {exc}") from exc


def serialize_document(root: etree._Element) -> str:
    """Serialise a full part with a standalone UTF-8 declaration."""

    data = etree.tostring(
        root,
        xml_declaration=True,
        encoding="UTF-8",
        standalone=True,
    )
    return data.decode("utf-8")


def serialize_fragment(element: etree._Element) -> str:
    return etree.tostring(element, encoding="unicode", with_tail=False)


def iter_paragraphs(root: etree._Element) -> Iterator[etree._Element]:
    """Yield every ``w:p`` in document order, table cells included."""

    return root.iter(W_P)


def owning_paragraph(node: etree._Element) -> Optional[etree._Element]:
    parent = node.getparent()
    while parent is not None:
        if parent.tag == W_P:
            return parent
        parent = parent.getparent()
    return None


def paragraph_text_nodes(paragraph: etree._Element) -> List[etree._Element]:
    """Return the ``w:t`` nodes that belong to this paragraph.

    Text inside a nested paragraph (text boxes, for instance) belongs to the
    nested paragraph and is skipped here.
    """

    return [
        node
        for node in paragraph.iter(W_T)
        if owning_paragraph(node) is paragraph
    ]


def paragraph_text(paragraph: etree._Element) -> str:
    return "".join(node.text or "" for node in paragraph_text_nodes(paragraph))


def sanitize_text(text: str) -> str:
    """Drop characters that XML 1.0 cannot carry."""

    return _INVALID_XML_CHARS.sub("", text)


def set_node_text(node: etree._Element, text: str) -> None:
    """Assign text to a ``w:t`` node, preserving edge whitespace."""

    node.text = sanitize_text(text)
    if text and (text[0].isspace() or text[-1].isspace()):
        node.set(XML_SPACE, "preserve")


def strip_elements(root: etree._Element, *tags: str) -> int:
    """Remove every element with one of ``tags``; return how many went."""

    doomed = [element for element in root.iter(*tags)]
    for element in doomed:
        _remove_preserving_tail(element)
    return len(doomed)


def unwrap_elements(root: etree._Element, *tags: str) -> int:
    """Replace each matching element by its children, in place."""

    targets = [element for element in root.iter(*tags)]
    for element in targets:
        parent = element.getparent()
        if parent is None:
            continue
        index = parent.index(element)
        children = list(element)
        for offset, child in enumerate(children):
            parent.insert(index + offset, child)
        _remove_preserving_tail(element)
    return len(targets)


def _remove_preserving_tail(element: etree._Element) -> None:
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail
    if tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
    parent.remove(element)
