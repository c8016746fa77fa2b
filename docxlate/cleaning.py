"""Removal of explanatory wrappers from model translations."""

from __future__ import annotations

import logging
import re
from typing import Optional

REQUIREMENT_BLOCK = re.compile(r"【.*?要求】[\s\S]*?(?=\n\n|\Z)")
BRACKET_MARKER = re.compile(r"【(.*?)】")
GLOSSARY_BLOCK = re.compile(r"^术语表：[\s\S]*?(?=\n\n|$)", re.MULTILINE)
SOURCE_BLOCK = re.compile(r"^原文：[\s\S]*?(?=\n\n|$)", re.MULTILINE)
LEADING_LABELS = (
    re.compile(r"^译文：\s*", re.MULTILINE),
    re.compile(r"^翻译：\s*", re.MULTILINE),
    re.compile(r"^翻译结果：\s*", re.MULTILINE),
)
INSTRUCTION_LINE = re.compile(
    r"^(?:注[:：]|备注[:：]|思考[:：]|解释[:：]|说明[:：]|Note[:：]).*?(?:\n|$)",
    re.MULTILINE | re.IGNORECASE,
)
EXPLANATION_MARKER = re.compile(
    r"注[:：]|备注[:：]|思考[:：]|解释[:：]|说明[:：]|Note[:：]|原文[:：]|原句[:：]"
    r"|翻译[:：]|译文[:：]|Translation[:：]",
    re.IGNORECASE,
)
THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>")

# Tried in order; the last group holds the translation proper.
EXTRACTION_PATTERNS = (
    ("original/translation", re.compile(r"^.*?原文[：:](.*?)\n.*?翻译[：:](.*)", re.IGNORECASE | re.DOTALL)),
    ("Translation:", re.compile(r"^.*?Translation[：:](.*)", re.IGNORECASE | re.DOTALL)),
    ("翻译结果:", re.compile(r"^.*?翻译结果[：:](.*)", re.IGNORECASE | re.DOTALL)),
    ("译文:", re.compile(r"^.*?译文[：:](.*)", re.IGNORECASE | re.DOTALL)),
)
SIMPLE_NOTES = (
    re.compile(r"^注[:：].*?\n", re.IGNORECASE),
    re.compile(r"^备注[:：].*?\n", re.IGNORECASE),
    re.compile(r"^说明[:：].*?\n", re.IGNORECASE),
)
ROLE_PREFIX = re.compile(r"^(?:system|user|assistant):\s*", re.IGNORECASE | re.MULTILINE)
CODE_BLOCK = re.compile(r"^```.*?```$", re.MULTILINE | re.DOTALL)

MIN_LENGTH = 5
MIN_CLEANED_RATIO = 0.2
MIN_SIMPLE_RATIO = 0.5

_logger = logging.getLogger("docxlate.cleaning")


def _remove_if_something_remains(pattern: re.Pattern[str], text: str, count: int = 0) -> str:
    if not pattern.search(text):
        return text
    candidate = pattern.sub("", text, count=count)
    return candidate if candidate.strip() else text


def _extract_payload(text: str, logger: logging.Logger) -> Optional[str]:
    for label, pattern in EXTRACTION_PATTERNS:
        match = pattern.match(text)
        if match:
            payload = match.group(match.lastindex or 1).strip()
            if payload:
                logger.debug("Extracted translation using the %s layout", label)
                return payload
    return None


def clean_translation_output(text: str, logger: Optional[logging.Logger] = None) -> str:
    """Strip known explanation wrappers from a model response.

    Cleaning never produces something emptier than the raw response: when
    the cleaned text drops under five characters or a fifth of the raw
    length, the raw trimmed text is used instead.
    """

    log = logger or _logger
    if not text or not text.strip():
        return ""

    original = text.strip()
    result = text

    result = _remove_if_something_remains(REQUIREMENT_BLOCK, result, count=1)
    result = BRACKET_MARKER.sub(r"\1", result)
    result = _remove_if_something_remains(GLOSSARY_BLOCK, result)
    result = _remove_if_something_remains(SOURCE_BLOCK, result)
    for pattern in LEADING_LABELS:
        result = pattern.sub("", result)
    result = _remove_if_something_remains(INSTRUCTION_LINE, result)

    if EXPLANATION_MARKER.search(result):
        result = THINK_BLOCK.sub("", result)
        extracted = _extract_payload(result, log)
        if extracted:
            result = extracted
        else:
            simple = result
            for pattern in SIMPLE_NOTES:
                simple = pattern.sub("", simple)
            if simple.strip():
                result = simple

    final = result.strip()
    if len(final) < MIN_LENGTH or len(final) < len(original) * MIN_CLEANED_RATIO:
        log.debug(
            "Cleaned translation too short (%d of %d chars); keeping raw response",
            len(final),
            len(original),
        )
        simple = CODE_BLOCK.sub("", ROLE_PREFIX.sub("", original)).strip()
        if len(simple) < MIN_LENGTH or len(simple) < len(original) * MIN_SIMPLE_RATIO:
            return original
        return simple

    return final
