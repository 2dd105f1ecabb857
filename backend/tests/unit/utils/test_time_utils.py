"""Tests for extended-minute time arithmetic."""

from datetime import time

import pytest

from courtbook.utils.time_utils import (
    MINUTES_PER_DAY,
    crosses_midnight,
    display_minutes,
    interval_end,
    minutes_to_time,
    minutes_to_time_str,
    project_into_window,
    resolve_close,
    to_minutes,
)


class TestToMinutes:
    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("08:30", 510), ("23:59", 1439), ("01:30:45", 90), (time(22, 15), 1335)],
    )
    def test_parses_clock_values(self, value, expected):
        assert to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "8", "ab:cd", "12:60", "", "10:00:00:00"])
    def test_rejects_malformed_values(self, value):
        with pytest.raises(ValueError):
            to_minutes(value)

    def test_rejects_non_time_types(self):
        with pytest.raises(ValueError):
            to_minutes(510)


class TestWindowClose:
    def test_same_day_close_is_unchanged(self):
        assert resolve_close(480, 1320) == 1320
        assert not crosses_midnight(480, 1320)

    def test_close_before_open_moves_to_next_day(self):
        assert resolve_close(480, 90) == 90 + MINUTES_PER_DAY
        assert crosses_midnight(480, 90)

    def test_close_equal_to_open_is_a_full_day(self):
        assert resolve_close(480, 480) == 480 + MINUTES_PER_DAY

    def test_close_at_midnight_ends_the_day_without_crossing(self):
        assert resolve_close(480, 0) == MINUTES_PER_DAY
        assert not crosses_midnight(480, 0)


class TestProjection:
    def test_time_before_open_is_shifted_a_day(self):
        assert project_into_window(30, 1080) == 1470

    def test_time_after_open_is_untouched(self):
        assert project_into_window(1200, 1080) == 1200

    def test_no_window_leaves_value_untouched(self):
        assert project_into_window(30, None) == 30

    def test_window_within_one_day_leaves_value_untouched(self):
        assert project_into_window(30, 480, window_crosses_midnight=False) == 30


class TestIntervalEnd:
    def test_stored_end_wins_over_duration(self):
        assert interval_end(600, 690, 60) == 690

    def test_end_before_start_wraps_past_midnight(self):
        assert interval_end(1410, 30, None) == 1470

    def test_duration_is_used_without_an_end(self):
        assert interval_end(600, None, 90) == 690

    def test_requires_end_or_duration(self):
        with pytest.raises(ValueError):
            interval_end(600, None, None)


def test_rendering_folds_extended_minutes_onto_the_clock():
    assert display_minutes(1470) == 30
    assert minutes_to_time_str(1470) == "00:30"
    assert minutes_to_time_str(545) == "09:05"
    assert minutes_to_time(1530) == time(1, 30)
