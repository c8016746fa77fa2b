"""Tests for the non-fatal error ledger."""

from docxlate.errors import ErrorCategory
from docxlate.policy import ErrorPolicy


class TestErrorPolicy:
    """Tests for recording handled errors."""

    def test_records_are_counted_by_category(self):
        policy = ErrorPolicy()

        policy.handle_error(ErrorCategory.ORACLE, "Segment p_1 failed")
        policy.handle_error(ErrorCategory.ORACLE, "Segment p_2 failed", details="timeout")
        record = policy.handle_error(ErrorCategory.MATCH, "No paragraph for p_3")

        assert policy.count(ErrorCategory.ORACLE) == 2
        assert policy.count(ErrorCategory.VALIDATION) == 0
        assert record.category is ErrorCategory.MATCH
        assert policy.messages == ["Segment p_1 failed", "Segment p_2 failed", "No paragraph for p_3"]

    def test_warnings_logged(self, caplog):
        policy = ErrorPolicy()

        with caplog.at_level("WARNING", logger="docxlate.policy"):
            policy.handle_error(ErrorCategory.FILE_IO, "Write failed", details="disk full")

        assert "Write failed (disk full)" in caplog.text

    def test_categories_cover_pipeline_stages(self):
        assert [category.name for category in ErrorCategory] == [
            "CONFIG",
            "PARSE",
            "ORACLE",
            "MATCH",
            "VALIDATION",
            "FILE_IO",
        ]
