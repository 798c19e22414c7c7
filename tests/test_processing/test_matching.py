"""
Tests for the filename matching grammar.
"""

import pytest

from processors.snapchat_memories.matching import SnapchatMatchStrategy
from processors.snapchat_memories.models import FileRole


@pytest.fixture
def strategy():
    return SnapchatMatchStrategy()


class TestMatchKeys:
    """Match keys derived from identifiers and filenames."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("2021-01-01_abc", "abc"),
            ("abc_overlay.png", "abc"),
            ("abc.png", "abc"),
            ("2021-01-01_ABC-main.mp4", "ABC"),
            ("2021-01-01_ABC-overlay.png", "ABC"),
            ("abc-MAIN.JPG", "abc"),
            ("3F2A1B4C-1111-2222-3333-444455556666", "3F2A1B4C-1111-2222-3333-444455556666"),
        ],
    )
    def test_key_for(self, strategy, name, expected):
        """Should strip extension, role marker and date prefix."""
        assert strategy.key_for(name) == expected

    def test_record_and_files_share_a_key(self, strategy):
        """Should give a record identifier and both of its files the same key."""
        keys = {
            strategy.key_for("2021-01-01_abc"),
            strategy.key_for("abc.png"),
            strategy.key_for("abc_overlay.png"),
        }
        assert keys == {"abc"}

    def test_date_in_middle_is_kept(self, strategy):
        """Should only strip a leading date prefix."""
        assert strategy.key_for("x_2021-01-01_abc.jpg") == "x_2021-01-01_abc"


class TestRoles:
    """Original/overlay classification by name."""

    @pytest.mark.parametrize("name", ["abc_overlay.png", "abc-overlay.webp", "ABC-OVERLAY.jpg"])
    def test_overlay_names(self, strategy, name):
        assert strategy.role_for(name) is FileRole.OVERLAY

    @pytest.mark.parametrize("name", ["abc.png", "abc-main.mp4", "overlay.png", "my_overlays.png"])
    def test_original_names(self, strategy, name):
        assert strategy.role_for(name) is FileRole.ORIGINAL
