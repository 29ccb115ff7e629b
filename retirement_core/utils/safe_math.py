"""Guarded arithmetic helpers shared by the projection engine and the scorer."""

from __future__ import annotations
import logging
import math
import re
from typing import Any

_log = logging.getLogger(__name__)

_NUMERIC_JUNK = re.compile(r"[\s_₪$€£%]")
_THOUSANDS = re.compile(r"[+-]?\d{1,3}(,\d{3})+(\.\d+)?")


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float)) and math.isfinite(value)


def safe_parse_float(value: Any, default: float = 0.0, field: str | None = None) -> float:
    """
    Parse user-entered numbers such as "1,200", "₪ 5000" or "7%".

    Returns `default` for None/empty input. Unparseable or non-finite values
    also return `default` and log a warning naming the field. Commas are
    only accepted as thousands separators; "3,5" is rejected as ambiguous.
    """
    if value is None or isinstance(value, bool):
        return float(default)
    if isinstance(value, (int, float)):
        if math.isfinite(value):
            return float(value)
        _log.warning("Non-finite value for %s: %r; using %s", field or "value", value, default)
        return float(default)
    text = _NUMERIC_JUNK.sub("", str(value))
    if not text:
        return float(default)
    if "," in text:
        if not _THOUSANDS.fullmatch(text):
            _log.warning("Ambiguous number for %s=%r (decimal comma?); using %s", field or "value", value, default)
            return float(default)
        text = text.replace(",", "")
    try:
        parsed = float(text)
    except (TypeError, ValueError):
        _log.warning("Could not parse %s=%r as a number; using %s", field or "value", value, default)
        return float(default)
    if not math.isfinite(parsed):
        _log.warning("Non-finite value for %s: %r; using %s", field or "value", value, default)
        return float(default)
    return parsed


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning `default` for zero/non-finite operands or results."""
    if not is_finite_number(numerator) or not is_finite_number(denominator) or denominator == 0:
        return float(default)
    result = numerator / denominator
    return float(result) if math.isfinite(result) else float(default)


def clamp(value: float, lo: float, hi: float) -> float:
    if not is_finite_number(value):
        return float(lo)
    return max(lo, min(hi, float(value)))


def clamp_score(value: float) -> float:
    """Clamp to [0, 100]; NaN and infinities collapse to 0."""
    return clamp(value, 0.0, 100.0)


def interpolate(value: float, lo: float, hi: float) -> float:
    """Position of `value` between `lo` and `hi` as a fraction in [0, 1]."""
    return clamp(safe_divide(value - lo, hi - lo), 0.0, 1.0)


__all__ = [
    "is_finite_number",
    "safe_parse_float",
    "safe_divide",
    "clamp",
    "clamp_score",
    "interpolate",
]
