"""Utility helpers for calculator modules.

Every helper here is total: malformed input degrades to the supplied fallback
instead of raising, so derivers can feed raw state leaves straight through.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any

from plancalc.backend.config.schema import TaxBracket

_TRUTHY_FLAGS = frozenset({"true", "yes", "1", "locked"})


def to_number(raw: Any, fallback: float | None = 0.0) -> float | None:
    """Return ``raw`` as a finite float or ``fallback`` when it cannot be parsed."""

    if raw is None:
        return fallback
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return fallback
        try:
            value = float(text)
        except ValueError:
            return fallback
    else:
        try:
            value = float(raw)
        except (TypeError, ValueError, OverflowError):
            return fallback
    if not math.isfinite(value):
        return fallback
    return value


def clamp(value: float | None, minimum: float, maximum: float = math.inf) -> float:
    """Bound ``value`` to ``[minimum, maximum]``; non-finite input yields ``minimum``."""

    if value is None or not isinstance(value, (int, float)) or not math.isfinite(value):
        return minimum
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return float(value)


def normalize_percent(
    raw: Any, fallback: float, minimum: float = 0.0, maximum: float = 100.0
) -> float:
    """Parse a percent value and bound it to ``[minimum, maximum]``."""

    return clamp(to_number(raw, fallback), minimum, maximum)


def to_positive(raw: Any, fallback: float = 0.0) -> float:
    """Parse ``raw`` and floor the result at zero."""

    value = to_number(raw, fallback)
    if value is None:
        return 0.0
    return value if value > 0 else 0.0


def read_field(section: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from a state section, a plain mapping or ``None``."""

    if section is None:
        return default
    if isinstance(section, Mapping):
        return section.get(key, default)
    return getattr(section, key, default)


def finite_or_zero(value: float | None) -> float:
    if value is None or not math.isfinite(value):
        return 0.0
    return float(value)


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide guarding zero or non-finite denominators."""

    if not denominator or not math.isfinite(denominator):
        return fallback
    result = numerator / denominator
    return result if math.isfinite(result) else fallback


def is_truthy_flag(raw: Any) -> bool:
    """Interpret booleans, numbers and common string spellings of "on"."""

    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY_FLAGS
    if isinstance(raw, (int, float)):
        return math.isfinite(raw) and raw != 0
    return bool(raw)


def calculate_progressive_tax(amount: float, brackets: Sequence[TaxBracket]) -> float:
    """Calculate progressive tax for ``amount`` using ``brackets``."""

    if amount <= 0:
        return 0.0

    total = 0.0
    lower_bound = 0.0

    for bracket in brackets:
        upper = bracket.upper_bound
        if upper is None or amount < upper:
            total += (amount - lower_bound) * bracket.rate
            break

        total += (upper - lower_bound) * bracket.rate
        lower_bound = upper

    return total


def round_units(value: Any) -> float:
    """Round a unit volume to two decimals; non-finite volumes become 0."""

    return round(finite_or_zero(to_number(value, 0.0)), 2)


__all__ = [
    "calculate_progressive_tax",
    "clamp",
    "finite_or_zero",
    "is_truthy_flag",
    "normalize_percent",
    "read_field",
    "round_units",
    "safe_divide",
    "to_number",
    "to_positive",
]
