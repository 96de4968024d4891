"""Time-range helpers shared by the scene and template paths."""

from __future__ import annotations


def format_number(value: float) -> str:
    """Format seconds compactly: two decimals, trailing zeros dropped.

    Examples:
        >>> format_number(2.5)
        '2.5'
        >>> format_number(3.0)
        '3'
        >>> format_number(10 / 3)
        '3.33'
    """
    text = f"{value:.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def segment_ranges(duration_sec: float, count: int) -> list[tuple[float, float]]:
    """Split a duration into `count` equal consecutive (start, end) ranges.

    A count below 1 is treated as 1 so callers always get at least one range.
    """
    count = max(count, 1)
    segment = duration_sec / count
    return [(segment * i, segment * (i + 1)) for i in range(count)]
