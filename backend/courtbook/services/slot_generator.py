# backend/courtbook/services/slot_generator.py
"""
Candidate slot generation for an opening window.

Slots are laid on a fixed step grid starting at the window open. A window
whose close is at or before its open runs past midnight; slots in that
extension render with clock times smaller than the open time and the caller
is expected to read them as belonging to the next calendar day.
"""

from dataclasses import dataclass
from typing import Iterator

from ..utils.time_utils import (
    MINUTES_PER_DAY,
    TimeLike,
    display_minutes,
    minutes_to_time_str,
    resolve_close,
    to_minutes,
)


@dataclass(frozen=True)
class Slot:
    """A candidate interval, kept in extended minutes."""

    start_minutes: int
    end_minutes: int

    @property
    def start(self) -> str:
        return minutes_to_time_str(self.start_minutes)

    @property
    def end(self) -> str:
        return minutes_to_time_str(self.end_minutes)

    @property
    def display_start(self) -> int:
        return display_minutes(self.start_minutes)

    @property
    def display_end(self) -> int:
        return display_minutes(self.end_minutes)

    @property
    def rolls_over(self) -> bool:
        """True when the slot starts after the midnight that follows the window open."""
        return self.start_minutes >= MINUTES_PER_DAY


class SlotSequence:
    """
    Finite, ordered and restartable sequence of slots.

    Each iteration walks the grid again, so the same instance can be consumed
    more than once.
    """

    def __init__(self, open_minutes: int, close_minutes: int, step_minutes: int, duration_minutes: int):
        self.open_minutes = open_minutes
        self.close_minutes = close_minutes
        self.step_minutes = step_minutes
        self.duration_minutes = duration_minutes

    def __iter__(self) -> Iterator[Slot]:
        t = self.open_minutes
        while t + self.duration_minutes <= self.close_minutes:
            yield Slot(start_minutes=t, end_minutes=t + self.duration_minutes)
            t += self.step_minutes

    def __len__(self) -> int:
        span = self.close_minutes - self.open_minutes - self.duration_minutes
        if span < 0:
            return 0
        return span // self.step_minutes + 1

    def __repr__(self) -> str:
        return (
            f"<SlotSequence {minutes_to_time_str(self.open_minutes)}-"
            f"{minutes_to_time_str(self.close_minutes)} step={self.step_minutes} "
            f"duration={self.duration_minutes}>"
        )


def generate_slots(
    open_time: TimeLike,
    close_time: TimeLike,
    step_minutes: int,
    duration_minutes: int,
) -> SlotSequence:
    """
    Lay ``duration_minutes`` slots every ``step_minutes`` inside the window.

    Raises:
        ValueError: for a non-positive step or duration, or malformed times
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")

    open_minutes = to_minutes(open_time)
    close_minutes = resolve_close(open_minutes, to_minutes(close_time))
    return SlotSequence(open_minutes, close_minutes, step_minutes, duration_minutes)
