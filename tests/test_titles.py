"""
Tests for title parsing and database key normalization.
"""

import pytest

from api.enums import Namespace
from api.errors import InvalidTitleError
from api.titles import normalize_dbkey, parse_title


class TestNormalizeDbkey:
    """Test suite for normalize_dbkey."""

    def test_spaces_become_underscores(self):
        assert normalize_dbkey("Map of Europe.svg") == "Map_of_Europe.svg"

    def test_first_letter_upper_cased(self):
        assert normalize_dbkey("foo.png") == "Foo.png"

    def test_rest_of_title_keeps_case(self):
        assert normalize_dbkey("iPhone PHOTO.JPG") == "IPhone_PHOTO.JPG"

    def test_collapses_and_trims_underscores(self):
        assert normalize_dbkey("  Foo   __ bar.png_ ") == "Foo_bar.png"

    @pytest.mark.parametrize("text", ["", "   ", "___"])
    def test_empty_title_rejected(self, text):
        with pytest.raises(InvalidTitleError):
            normalize_dbkey(text)

    @pytest.mark.parametrize("text", ["Foo|bar.png", "A#b", "<x>", "[[Foo]]", "{{Bar}}"])
    def test_illegal_characters_rejected(self, text):
        with pytest.raises(InvalidTitleError):
            normalize_dbkey(text)

    def test_invalid_title_is_value_error(self):
        """Test callers catching ValueError also see title errors."""
        with pytest.raises(ValueError):
            normalize_dbkey("")


class TestParseTitle:
    """Test suite for parse_title."""

    def test_unprefixed_uses_default_namespace(self):
        parsed = parse_title("Foo.png")
        assert parsed.namespace == Namespace.FILE
        assert parsed.dbkey == "Foo.png"

    def test_category_prefix(self):
        parsed = parse_title("Category:Maps of Europe")
        assert parsed.namespace == Namespace.CATEGORY
        assert parsed.dbkey == "Maps_of_Europe"

    def test_prefix_case_insensitive(self):
        assert parse_title("category:maps").namespace == Namespace.CATEGORY

    def test_image_alias(self):
        assert parse_title("Image:Foo.png") == (Namespace.FILE, "Foo.png")

    def test_other_known_prefix(self):
        assert parse_title("Template:Infobox").namespace == Namespace.TEMPLATE

    def test_unknown_prefix_kept_in_title(self):
        parsed = parse_title("Foo:Bar.png")
        assert parsed.namespace == Namespace.FILE
        assert parsed.dbkey == "Foo:Bar.png"

    def test_custom_default_namespace(self):
        assert parse_title("Maps", default_namespace=Namespace.CATEGORY).namespace == Namespace.CATEGORY

    def test_prefix_without_name_rejected(self):
        with pytest.raises(InvalidTitleError):
            parse_title("Category:")
