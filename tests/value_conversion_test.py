import pytest

from blogpost.configuration import (
    BLOG_ACTIVE,
    BLOG_MAPPING,
    BLOG_NOT_ACTIVE,
    IS_ACTIVE_CONVERTER,
    is_active_from_storage,
    is_active_to_storage,
)
from blogpost.entities import Blog


class TestIsActiveConversion:
    """The is_active flag is stored as one of two descriptive strings."""

    def test_encode_true(self):
        assert is_active_to_storage(True) == "Blog is active"

    def test_encode_false(self):
        assert is_active_to_storage(False) == "Blog is not active"

    def test_decode_sentinels(self):
        assert is_active_from_storage("Blog is active") is True
        assert is_active_from_storage("Blog is not active") is False

    @pytest.mark.parametrize("value", [True, False])
    def test_round_trip(self, value):
        assert is_active_from_storage(is_active_to_storage(value)) is value

    @pytest.mark.parametrize(
        "stored",
        ["", "true", "Blog is Active", "blog is active", " Blog is active", "Blog is active ", "1"],
    )
    def test_unrecognized_values_decode_to_false(self, stored):
        """Anything but the exact active sentinel is inactive and never raises"""
        assert is_active_from_storage(stored) is False

    def test_converter_exposes_the_same_functions(self):
        assert IS_ACTIVE_CONVERTER.to_provider(True) == BLOG_ACTIVE
        assert IS_ACTIVE_CONVERTER.from_provider(BLOG_NOT_ACTIVE) is False


class TestBlogRowConversion:
    """The Blog mapping applies the converter on write and read."""

    def test_to_row_uses_column_names_and_sentinel(self):
        blog = Blog(name="Engineering Blog", is_active=True)

        row = BLOG_MAPPING.to_row(blog)

        assert row == {"name": "Engineering Blog", "is_active": "Blog is active"}

    def test_to_row_can_include_identity(self):
        blog = Blog(id=7, name="Engineering Blog", is_active=False)

        row = BLOG_MAPPING.to_row(blog, include_identity=True)

        assert row == {"blog_id": 7, "name": "Engineering Blog", "is_active": "Blog is not active"}

    def test_from_row_decodes_sentinel(self):
        blog = BLOG_MAPPING.from_row(
            {"blog_id": 3, "name": "A Valid Blog Name", "is_active": "Blog is active"}
        )

        assert blog.id == 3
        assert blog.name == "A Valid Blog Name"
        assert blog.is_active is True
        assert blog.posts == []

    def test_from_row_unknown_string_is_inactive(self):
        blog = BLOG_MAPPING.from_row(
            {"blog_id": 3, "name": "A Valid Blog Name", "is_active": "maybe"}
        )

        assert blog.is_active is False
