"""Metrics derivation: height deltas, tones and compact number formatting."""

import re
from typing import Literal

Tone = Literal["neutral", "success", "warning", "danger"]

PLACEHOLDER = "—"

# Deltas above this many blocks are flagged as danger.
DELTA_WARNING_MAX = 10
DELAY_WARNING_SEC = 60
DELAY_DANGER_SEC = 3600

# (upper bound in seconds, divisor, suffix); the last unit is open-ended.
_DURATION_UNITS: list[tuple[float, int, str]] = [
    (60, 1, "s"),
    (3600, 60, "m"),
    (86400, 3600, "h"),
    (604800, 86400, "d"),
    (float("inf"), 604800, "w"),
]

_THOUSANDS_RE = re.compile(r"\B(?=(\d{3})+(?!\d))")


def compute_delta(
    height: int | float | None, max_height: int | float | None
) -> int | float | None:
    """Return how far *height* lags *max_height*, never negative."""
    if height is None or max_height is None:
        return None
    return max(0, max_height - height)


def delta_tone(delta: int | float | None) -> Tone:
    """Classify a height delta: 0 success, up to 10 warning, above danger."""
    if delta is None:
        return "neutral"
    if delta <= 0:
        return "success"
    if delta <= DELTA_WARNING_MAX:
        return "warning"
    return "danger"


def delay_tone(seconds: float | None) -> Tone:
    """Classify a delay in seconds: a minute is a warning, an hour danger."""
    if seconds is None:
        return "neutral"
    if seconds >= DELAY_DANGER_SEC:
        return "danger"
    if seconds >= DELAY_WARNING_SEC:
        return "warning"
    return "neutral"


def format_height(value: int | float | None) -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:,.0f}"


def format_delta(value: int | float | None) -> str:
    if value is None:
        return PLACEHOLDER
    return f"Δ {value:,.0f}"


def format_seconds(value: float | None) -> str:
    if value is None:
        return PLACEHOLDER
    return _format_duration(value)


def format_milliseconds(value: float | None) -> str:
    if value is None:
        return PLACEHOLDER
    return _format_duration(value / 1000)


def _format_duration(seconds: float) -> str:
    """Render *seconds* in the largest unit (s/m/h/d/w) it fills at least once.

    One decimal is kept below 10 units (``"1.5m"``), none above
    (``"59s"``).
    """
    magnitude = abs(seconds)
    for upper, divisor, suffix in _DURATION_UNITS:
        if magnitude < upper:
            break
    scaled = seconds / divisor
    precision = 1 if abs(scaled) < 10 else 0
    return f"{scaled:.{precision}f}{suffix}"


def format_number_string(value: str | None, *, whole: bool = False) -> str:
    """Group a decimal string by thousands without converting it to a float.

    Token supplies can exceed what a float holds exactly, so the digits
    are regrouped as text.

    Args:
        value: A decimal string such as ``"-1234567.89"``.
        whole: Drop the fractional part.

    Returns:
        The grouped string (``"-1,234,567.89"``), or a placeholder for
        empty input.
    """
    if not value:
        return PLACEHOLDER
    int_part, _, frac_part = value.partition(".")
    sign = "-" if int_part.startswith("-") else ""
    digits = int_part[1:] if sign else int_part
    grouped = _THOUSANDS_RE.sub(",", digits)
    if frac_part and not whole:
        return f"{sign}{grouped}.{frac_part}"
    return f"{sign}{grouped}"
