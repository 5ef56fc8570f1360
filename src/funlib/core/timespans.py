"""Conversions between ``HH:MM:SS.mmm`` timespans, milliseconds and durations."""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round like ``Math.round``: halves go towards +infinity. NaN and infinities pass through."""
    if not math.isfinite(value):
        return value
    return int(math.floor(value + 0.5))


def timespan_to_ms(timespan: str) -> int:
    """
    Parse ``[-][[HH:]MM:]SS[.mmm]`` into integer milliseconds.

    Raises
    ------
    TypeError
        If *timespan* is not a string.
    ValueError
        If a component is not numeric.
    """
    if not isinstance(timespan, str):
        raise TypeError("timespan must be a string")
    text = timespan.strip()
    sign = 1
    if text.startswith("-"):
        sign = -1
        text = text[1:]
    parts = [float(part) for part in text.split(":")]
    while len(parts) < 3:
        parts.insert(0, 0.0)
    hours, minutes, seconds = parts[-3:]
    return round_half_up(sign * (hours * 3600 + minutes * 60 + seconds) * 1000)


def ms_to_timespan(ms: float) -> str:
    """Format milliseconds as ``HH:MM:SS.mmm`` (prefixed with ``-`` when negative)."""
    sign = "-" if ms < 0 else ""
    total = round_half_up(abs(ms))
    millis = total % 1000
    seconds = total // 1000 % 60
    minutes = total // 60000 % 60
    hours = total // 3600000
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def seconds_to_duration(seconds: float) -> str:
    """Human duration: ``M:SS`` below an hour, ``H:MM:SS`` above."""
    total = round_half_up(seconds)
    if total < 3600:
        return f"{total // 60}:{total % 60:02d}"
    return f"{total // 3600}:{total // 60 % 60:02d}:{total % 60:02d}"


__all__ = ["round_half_up", "timespan_to_ms", "ms_to_timespan", "seconds_to_duration"]
