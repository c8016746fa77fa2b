"""Structural validation and bounded repair of document markup."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from lxml import etree

from .errors import ParseError, ValidationError
from .ooxml import W_NS, XML_DECLARATION, parse_markup, serialize_document, w

SIZE_THRESHOLD = 100_000
STRUCTURAL_TAGS = ("w:document", "w:body", "w:p", "w:r", "w:t")

DECLARATION_PATTERN = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
# Any prefix, or none, so default-namespace parts are recognised too.
DOCUMENT_OPEN = re.compile(r"<(?P<prefix>[A-Za-z_][\w.-]*:)?document\b[^>]*>")
DOCUMENT_CLOSE = re.compile(r"</(?:[A-Za-z_][\w.-]*:)?document\s*>")
BODY_OPEN = re.compile(r"<(?:[A-Za-z_][\w.-]*:)?body\b")

_OPEN_PATTERNS: Dict[str, re.Pattern[str]] = {
    tag: re.compile(rf"<{re.escape(tag)}(?:\s[^>]*)?(?<!/)>") for tag in STRUCTURAL_TAGS
}
_CLOSE_PATTERNS: Dict[str, re.Pattern[str]] = {
    tag: re.compile(rf"</{re.escape(tag)}\s*>") for tag in STRUCTURAL_TAGS
}


class ValidationOutcome(Enum):
    VALID = "valid"
    REPAIRED = "repaired"
    ROLLED_BACK = "rolled-back"


@dataclass
class ValidationReport:
    valid: bool
    problems: List[str] = field(default_factory=list)
    full_check: bool = True


@dataclass
class SettledMarkup:
    """Markup that survived validation, repair, or rollback."""

    markup: str
    outcome: ValidationOutcome
    report: ValidationReport


def has_declaration(markup: str) -> bool:
    return markup.lstrip().startswith("<?xml")


def has_document_wrapper(markup: str) -> bool:
    return DOCUMENT_OPEN.search(markup) is not None and DOCUMENT_CLOSE.search(markup) is not None


def unbalanced_tags(markup: str) -> List[str]:
    """Describe ``w:``-prefixed structural tags whose counts disagree.

    Only used to explain markup lxml refused to parse.
    """

    problems = []
    for tag in STRUCTURAL_TAGS:
        opened = len(_OPEN_PATTERNS[tag].findall(markup))
        closed = len(_CLOSE_PATTERNS[tag].findall(markup))
        if opened != closed:
            problems.append(f"{tag} unbalanced: {opened} open, {closed} close")
    return problems


class XmlValidator:
    """Checks the structure of a ``word/document.xml`` part.

    Below ``size_threshold`` characters the markup is parsed, so element
    balance is enforced by the parser and the root must be a ``w:document``
    (in whatever prefix the part uses) holding a ``w:body``. Larger markup
    only gets the cheap declaration and root wrapper checks.
    """

    def __init__(
        self,
        *,
        size_threshold: int = SIZE_THRESHOLD,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.size_threshold = size_threshold
        self.logger = logger or logging.getLogger("docxlate.validator")

    def validate(self, markup: str) -> ValidationReport:
        if not markup or not markup.strip():
            return ValidationReport(valid=False, problems=["markup is empty"])

        problems: List[str] = []
        if not has_declaration(markup):
            problems.append("missing XML declaration")

        if len(markup) >= self.size_threshold:
            self.logger.debug("Markup has %d characters; using the reduced check", len(markup))
            if not has_document_wrapper(markup):
                problems.append("missing w:document wrapper")
            return ValidationReport(valid=not problems, problems=problems, full_check=False)

        try:
            root = parse_markup(markup)
        except ParseError as exc:
            problems.append(str(exc))
            problems.extend(unbalanced_tags(markup))
            return ValidationReport(valid=False, problems=problems)

        if root.tag != w("document"):
            problems.append(f"missing w:document wrapper (root is {root.tag})")
        elif root.find(w("body")) is None:
            problems.append("missing w:body wrapper")
        return ValidationReport(valid=not problems, problems=problems)

    def repair(self, markup: str) -> str:
        """Add a missing declaration and synthesise missing wrappers."""

        try:
            root = parse_markup(markup)
        except ParseError:
            return self._repair_text(markup)

        if root.tag != w("document"):
            document = etree.Element(w("document"), nsmap={"w": W_NS})
            body = etree.SubElement(document, w("body"))
            body.append(root)
            root = document
        elif root.find(w("body")) is None:
            body = etree.Element(w("body"))
            for child in list(root):
                body.append(child)
            root.append(body)
        return serialize_document(root)

    def _repair_text(self, markup: str) -> str:
        # Unparseable input: fragments without a namespace declaration or
        # several top-level elements.
        repaired = markup if has_declaration(markup) else f"{XML_DECLARATION}\n{markup}"
        opening = DOCUMENT_OPEN.search(repaired)
        if opening is None:
            content = DECLARATION_PATTERN.sub("", repaired, count=1)
            return (
                f"{XML_DECLARATION}\n"
                f'<w:document xmlns:w="{W_NS}">\n'
                f"  <w:body>\n{content}\n  </w:body>\n"
                "</w:document>"
            )

        closings = list(DOCUMENT_CLOSE.finditer(repaired))
        if BODY_OPEN.search(repaired) is None and closings:
            prefix = opening.group("prefix") or ""
            close_at = closings[-1].start()
            repaired = (
                f"{repaired[:opening.end()]}\n  <{prefix}body>"
                f"{repaired[opening.end():close_at]}  </{prefix}body>\n"
                f"{repaired[close_at:]}"
            )
        return repaired

    def check(self, markup: str) -> ValidationReport:
        """Like ``validate`` but raise ``ValidationError`` on any problem."""

        report = self.validate(markup)
        if not report.valid:
            raise ValidationError("; ".join(report.problems))
        return report

    def settle(self, candidate: str, original: str) -> SettledMarkup:
        """Validate ``candidate``; repair once; otherwise fall back to ``original``."""

        try:
            return SettledMarkup(candidate, ValidationOutcome.VALID, self.check(candidate))
        except ValidationError as exc:
            self.logger.warning("Markup validation failed: %s", exc)

        repaired = self.repair(candidate)
        try:
            report = self.check(repaired)
        except ValidationError as exc:
            self.logger.warning("Repair failed (%s); rolling back to the previous markup", exc)
            return SettledMarkup(original, ValidationOutcome.ROLLED_BACK, self.validate(original))

        self.logger.info("Markup repaired")
        return SettledMarkup(repaired, ValidationOutcome.REPAIRED, report)
