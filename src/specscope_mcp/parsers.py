"""Numeric parsing for specification values.

Specification values arrive as loosely formatted text: plain numbers
("150"), unit-suffixed strings ("12.5 mm", "150PSI"), range strings
("10-50", "-40-85") or explicit min/max pairs. These helpers turn them
into floats for range filtering.

All parsers are pure: the same input always yields the same float or None.
"""

import math
import re
from typing import Any

from .models import NumericSpec, SpecificationValue


# =============================================================================
# PRE-COMPILED REGEX PATTERNS
# =============================================================================

# Everything except digits, decimal points and minus signs
_NON_NUMERIC_PATTERN = re.compile(r"[^\d.\-]")
# Leading float after cleanup: "-12.5", "3.", ".5" (trailing junk ignored, "1.2.3" -> 1.2)
_LEADING_FLOAT_PATTERN = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")
# "<a>-<b>" with optional units after each bound: "10-50", "10mm - 50mm", "-40-85"
_RANGE_PATTERN = re.compile(r"^\s*(-?[\d.]+)[^\d.\-]*-\s*(-?[\d.]+)[^\d.\-]*$")


# =============================================================================
# PARSERS
# =============================================================================


def parse_numeric_value(value: Any) -> float | None:
    """Parse a number from a value field: '150' -> 150, '12.5 mm' -> 12.5, '150PSI' -> 150

    Every character that is not a digit, '.' or '-' is stripped first, then the
    leading float is read. Returns None when nothing finite can be read.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str) or not value:
        return None
    cleaned = _NON_NUMERIC_PATTERN.sub("", value)
    match = _LEADING_FLOAT_PATTERN.match(cleaned)
    if not match:
        return None
    parsed = float(match.group(0))
    return parsed if math.isfinite(parsed) else None


def parse_range_string(value: str | None) -> tuple[float, float] | None:
    """Parse a range string: '10-50' -> (10, 50), '-40-85' -> (-40, 85)"""
    if not value:
        return None
    match = _RANGE_PATTERN.match(value)
    if not match:
        return None
    low = parse_numeric_value(match.group(1))
    high = parse_numeric_value(match.group(2))
    if low is None or high is None:
        return None
    return low, high


def numeric_projection(spec: SpecificationValue) -> NumericSpec | None:
    """Project a specification leaf onto a number range.

    Precedence:
    1. min and max both parseable -> midpoint of [min, max]
    2. range string "<a>-<b>" -> midpoint of [a, b]
    3. value parseable -> point range [value, value]
    Otherwise there is no numeric projection.
    """
    unit = spec.unit or ""

    if spec.min and spec.max:
        low = parse_numeric_value(spec.min)
        high = parse_numeric_value(spec.max)
        if low is not None and high is not None:
            return NumericSpec(value=(low + high) / 2, unit=unit, min=low, max=high)

    bounds = parse_range_string(spec.range)
    if bounds is not None:
        low, high = bounds
        return NumericSpec(value=(low + high) / 2, unit=unit, min=low, max=high)

    number = parse_numeric_value(spec.value)
    if number is not None:
        return NumericSpec(value=number, unit=unit, min=number, max=number)

    return None
