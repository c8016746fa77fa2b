"""Tests for model output cleaning."""

import pytest

from docxlate.cleaning import clean_translation_output


class TestCleanTranslationOutput:
    """Tests for explanation stripping and its safety threshold."""

    @pytest.mark.parametrize(
        "text",
        ["Bonjour le monde", "Guten Tag, wie geht es?", "你好，世界。今天天气很好。"],
    )
    def test_marker_free_text_is_idempotent(self, text):
        once = clean_translation_output(text)
        assert once == text
        assert clean_translation_output(once) == once

    def test_translation_label_extracted(self):
        assert clean_translation_output("Translation: Bonjour le monde") == "Bonjour le monde"

    def test_think_block_dropped(self):
        raw = "<think>the user wants French</think>\nTranslation: Bonjour tout le monde"
        assert clean_translation_output(raw) == "Bonjour tout le monde"

    def test_source_and_translation_block(self):
        raw = "原文：Hello world\n翻译：你好，世界，欢迎"
        assert clean_translation_output(raw) == "你好，世界，欢迎"

    def test_requirement_block_removed(self):
        raw = "【翻译要求】不要解释\n\nBonjour le monde"
        assert clean_translation_output(raw) == "Bonjour le monde"

    def test_note_line_removed(self):
        raw = "Bonjour le monde\nNote: literal translation"
        assert clean_translation_output(raw) == "Bonjour le monde"

    def test_bracket_markers_unwrapped(self):
        assert clean_translation_output("【Bonjour】 le monde") == "Bonjour le monde"

    def test_short_result_keeps_raw_response(self):
        # Stripping the label would leave four characters.
        assert clean_translation_output("译文：你好世界") == "译文：你好世界"

    def test_blank_input(self):
        assert clean_translation_output("") == ""
        assert clean_translation_output("   \n") == ""

    def test_surrounding_whitespace_trimmed(self):
        assert clean_translation_output("  Bonjour le monde \n") == "Bonjour le monde"
