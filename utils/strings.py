"""Value coercion and string helpers for the homestead budget tools.

Cost data arrives in two shapes: numeric costs in the per-section JSON files
and display-only strings such as ``"R8,500"`` in the phase mapping files.
Only numbers are aggregated; strings are never parsed as currency.
"""

import math

from utils.patterns import WHITESPACE


def _is_number(val) -> bool:
    # bool is an int subclass but never a cost or quantity
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def _as_float(val) -> float | None:
    # Integers beyond the float range raise OverflowError
    try:
        return float(val)
    except OverflowError:
        return None


def coerce_cost(val, default: float = 0.0) -> float:
    """Return *val* as a usable unit cost, or *default*.

    Handles:
    - None, strings, booleans, containers -> default
    - NaN, infinities and integers too large for a float -> default
    - Negative numbers -> default (totals are never negative)

    Examples:
        coerce_cost(8500) -> 8500.0
        coerce_cost("R8,500") -> 0.0
        coerce_cost(None) -> 0.0
    """
    if not _is_number(val):
        return default
    f = _as_float(val)
    if f is None or not math.isfinite(f) or f < 0:
        return default
    return f


def coerce_quantity(val, default: int = 1) -> float:
    """Return *val* as a usable quantity, or *default* when absent or non-positive.

    Whole-number quantities come back as ``int`` so they print as ``2``
    rather than ``2.0``.
    """
    if not _is_number(val):
        return default
    f = _as_float(val)
    if f is None or not math.isfinite(f) or f <= 0:
        return default
    if f.is_integer():
        return int(f)
    return f


def is_display_cost(val) -> bool:
    """True when *val* is a formatted cost string meant for display only."""
    return isinstance(val, str) and bool(val.strip())


def normalize_whitespace(s: str) -> str:
    """Collapse tabs, newlines and repeated spaces into single spaces.

    Example:
        "Solar  pump\\n kit" -> "Solar pump kit"
    """
    return WHITESPACE.sub(" ", s).strip()


def text_or_none(val) -> str | None:
    """Return a stripped, whitespace-normalized string or None for empty/missing values."""
    if val is None:
        return None
    if not isinstance(val, str):
        val = str(val)
    val = normalize_whitespace(val)
    return val or None
