"""
Tests for the clock and display helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock, SystemClock
from core.formatting import format_number


class TestMockClock:
    """Tests for MockClock."""

    def test_naive_time_taken_as_utc(self):
        clock = MockClock(datetime(2024, 1, 15, 12, 0))

        assert clock.now().tzinfo == timezone.utc

    def test_advance(self):
        start = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        clock = MockClock(start)

        clock.advance(seconds=30, minutes=1)

        assert clock.now() == start + timedelta(seconds=90)
        assert clock.timestamp_ms() == int((start.timestamp() + 90) * 1000)

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo is not None


class TestFormatNumber:
    """Tests for format_number."""

    @pytest.mark.parametrize("value,expected", [
        (75.0, "75"),
        (2048, "2048"),
        (0.5, "0.5"),
        (82.5, "82.5"),
        (9.3333, "9.33"),
    ])
    def test_format(self, value, expected):
        assert format_number(value) == expected
