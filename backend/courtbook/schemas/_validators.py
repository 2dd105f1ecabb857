"""Shared field parsers for request schemas."""

from datetime import time
import re

from ..utils.time_helpers import string_to_time

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_REGEX = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


def ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def parse_time_value(value: object) -> object:
    """Convert ``HH:MM[:SS]`` strings to ``time`` objects."""
    if isinstance(value, str):
        candidate = value.strip()
        if not TIME_REGEX.fullmatch(candidate):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
        return string_to_time(candidate)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    return value
