"""Utility functions for the DSN OCR engine."""

import math
from typing import Iterable, Optional


def is_finite_number(value: object) -> bool:
    """Check that value is a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def clamp_unit(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp a number into [lower, upper].

    Examples:
        1.2 -> 1.0
        -0.1 -> 0.0
    """
    return max(lower, min(upper, value))


def coerce_unit(value: object, default: float) -> float:
    """Coerce an arbitrary value into [0, 1].

    Strings and ints are converted; anything unparseable or non-finite
    yields `default`.
    """
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return clamp_unit(number)


def coerce_confidence(value: object) -> Optional[float]:
    """Normalize a native engine confidence.

    Returns None when the engine did not supply a usable value.
    """
    if value is None or not is_finite_number(value):
        return None
    return clamp_unit(float(value))  # type: ignore[arg-type]


def mean(values: Iterable[float]) -> Optional[float]:
    """Arithmetic mean, or None for an empty iterable."""
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def truncate_text(text: str, max_chars: int = 40, suffix: str = "...") -> str:
    """Truncate text for log output."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(suffix)] + suffix
