"""
Tests for error message truncation.
"""

from api.errors import GlobalUsageError, InvalidTitleError, UnroutableReportError, truncate_error


class TestTruncateError:
    """Tests for the truncate_error function."""

    def test_short_text_unchanged(self):
        assert truncate_error("Short text", 50) == "Short text"

    def test_exact_length_unchanged(self):
        text = "a" * 50
        assert truncate_error(text, 50) == text

    def test_long_text_truncated_with_ellipsis(self):
        result = truncate_error("a" * 100, 50)
        assert len(result) == 50
        assert result == "a" * 47 + "..."

    def test_none_input(self):
        assert truncate_error(None, 50) is None

    def test_tiny_limit(self):
        assert truncate_error("abcdef", 2) == "ab"


class TestErrorHierarchy:
    """Tests for the package exception classes."""

    def test_unroutable_is_runtime_error(self):
        assert issubclass(UnroutableReportError, GlobalUsageError)
        assert issubclass(UnroutableReportError, RuntimeError)

    def test_invalid_title_is_value_error(self):
        assert issubclass(InvalidTitleError, GlobalUsageError)
        assert issubclass(InvalidTitleError, ValueError)
