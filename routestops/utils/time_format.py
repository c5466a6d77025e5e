"""Conversions between provider duration/distance encodings and display units.

The Routes and Places APIs encode durations as strings with an ``s`` suffix
(``"390s"``) and distances as integer meters.
"""
import math
from typing import Optional, Union

DurationValue = Union[str, int, float, None]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_duration_seconds(value: DurationValue) -> Optional[float]:
    """Parse ``"390s"``, ``"390"`` or ``390`` into seconds; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("s"):
            text = text[:-1]
        try:
            seconds = float(text)
        except ValueError:
            return None
    elif isinstance(value, (int, float)):
        seconds = float(value)
    else:
        return None
    if math.isnan(seconds) or math.isinf(seconds):
        return None
    return seconds


def convert_seconds_to_minutes(value: DurationValue) -> Optional[float]:
    """Convert a duration to minutes rounded to one decimal place."""
    seconds = parse_duration_seconds(value)
    if seconds is None:
        return None
    return round(seconds / 60, 1)


def meters_to_kilometers(meters: Optional[float]) -> Optional[float]:
    if meters is None:
        return None
    return round(meters / 1000, 1)


def format_distance(meters: Optional[float]) -> str:
    if not meters:
        return "0 km"
    return f"{meters / 1000:.1f} km"


def format_duration(value: DurationValue) -> str:
    seconds = parse_duration_seconds(value)
    if not seconds:
        return "0 mins"
    return f"{_round_half_up(seconds / 60)} mins"


def format_minutes_range(start_seconds: float, end_seconds: float) -> str:
    """Label a time slice of a route, e.g. ``"30-60 min"``."""
    return f"{_round_half_up(start_seconds / 60)}-{_round_half_up(end_seconds / 60)} min"
