"""Tests for duration parsing."""

import pytest

from memotag import parse_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_seconds(self) -> None:
        """Test parsing seconds."""
        assert parse_duration("1s") == 1
        assert parse_duration("30s") == 30
        assert parse_duration("0s") == 0

    def test_minutes(self) -> None:
        """Test parsing minutes."""
        assert parse_duration("1m") == 60
        assert parse_duration("5m") == 300

    def test_hours(self) -> None:
        """Test parsing hours."""
        assert parse_duration("1h") == 3_600
        assert parse_duration("2h") == 7_200

    def test_days(self) -> None:
        """Test parsing days."""
        assert parse_duration("1d") == 86_400
        assert parse_duration("7d") == 604_800

    def test_surrounding_whitespace(self) -> None:
        assert parse_duration(" 10m ") == 600

    def test_integer_passthrough(self) -> None:
        """Test that integers pass through unchanged."""
        assert parse_duration(3600) == 3600
        assert parse_duration(0) == 0
        assert parse_duration(-5) == -5

    def test_invalid_format(self) -> None:
        """Test that invalid formats raise ValueError."""
        for value in ("invalid", "10x", "s10", "", "10", "100ms", "-5s"):
            with pytest.raises(ValueError, match="Invalid duration"):
                parse_duration(value)

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid duration"):
            parse_duration(True)
