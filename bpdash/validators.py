"""Guards that narrow untyped JSON values without raising."""

import math


def is_record(value: object) -> bool:
    """Return True if *value* is a JSON object (a non-null mapping)."""
    return isinstance(value, dict)


def read_string(value: object) -> str | None:
    return value if isinstance(value, str) else None


def read_number(value: object) -> int | float | None:
    """Narrow *value* to a finite number.

    Some node and RPC APIs serialize numeric fields as strings, so
    numeric strings (surrounding whitespace allowed) are parsed too.

    Args:
        value: Any decoded JSON value.

    Returns:
        The number, or ``None`` if *value* is not a finite number or a
        string holding one.
    """
    # bool is an int subclass but never a JSON number.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed or not trimmed.isascii() or "_" in trimmed:
            return None
        try:
            return int(trimmed)
        except ValueError:
            pass
        try:
            parsed = float(trimmed)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def read_array(value: object) -> list | None:
    return value if isinstance(value, list) else None
