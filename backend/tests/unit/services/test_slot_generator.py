"""Tests for the slot grid laid over an opening window."""

import pytest

from courtbook.services.slot_generator import Slot, generate_slots


def _pairs(slots):
    return [(s.start, s.end) for s in slots]


class TestSameDayWindow:
    def test_first_and_last_slots(self):
        slots = list(generate_slots("08:00", "22:00", 30, 60))

        assert (slots[0].start, slots[0].end) == ("08:00", "09:00")
        assert (slots[-1].start, slots[-1].end) == ("21:00", "22:00")
        assert all(s.start != "22:00" for s in slots)
        assert not any(s.rolls_over for s in slots)

    def test_length_matches_iteration(self):
        slots = generate_slots("08:00", "22:00", 30, 60)
        assert len(slots) == len(list(slots)) == 27

    def test_minute_precision_close_is_honored(self):
        slots = list(generate_slots("08:00", "10:45", 15, 60))
        assert slots[-1].end == "10:45"

    def test_duration_longer_than_window_yields_nothing(self):
        slots = generate_slots("08:00", "09:00", 30, 90)
        assert len(slots) == 0
        assert list(slots) == []


class TestMidnightCrossingWindow:
    def test_includes_after_midnight_slot(self):
        pairs = _pairs(generate_slots("08:00", "01:30", 30, 60))

        assert ("00:00", "01:00") in pairs
        assert ("00:30", "01:30") in pairs

    def test_excludes_slot_ending_after_close(self):
        slots = list(generate_slots("08:00", "01:30", 30, 60))
        assert all(s.start != "01:00" for s in slots)

    def test_after_midnight_slots_roll_over(self):
        slots = list(generate_slots("20:00", "02:00", 60, 60))
        rolled = [s.start for s in slots if s.rolls_over]
        assert rolled == ["00:00", "01:00"]
        assert slots[-1].display_end == 120


def test_sequence_is_restartable():
    slots = generate_slots("10:00", "12:00", 30, 60)
    assert _pairs(slots) == _pairs(slots)


@pytest.mark.parametrize("step,duration", [(0, 60), (30, 0), (-15, 60)])
def test_rejects_non_positive_step_or_duration(step, duration):
    with pytest.raises(ValueError):
        generate_slots("08:00", "22:00", step, duration)


def test_slot_renders_extended_minutes():
    slot = Slot(start_minutes=1470, end_minutes=1530)
    assert (slot.start, slot.end) == ("00:30", "01:30")
    assert slot.rolls_over
