"""Unit tests for the numeric coercion helpers used by every deriver."""

from __future__ import annotations

import math

import pytest

from plancalc.backend.app.services.calculators import (
    calculate_progressive_tax,
    clamp,
    finite_or_zero,
    is_truthy_flag,
    normalize_percent,
    read_field,
    round_units,
    safe_divide,
    to_number,
    to_positive,
)
from plancalc.backend.config import load_tax_regime


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 7.0),
        ("", 7.0),
        ("   ", 7.0),
        ("abc", 7.0),
        (float("nan"), 7.0),
        (float("inf"), 7.0),
        (" 12.5 ", 12.5),
        (3, 3.0),
        (True, 1.0),
        (False, 0.0),
        ([1], 7.0),
    ],
)
def test_to_number_falls_back_for_unusable_input(raw, expected) -> None:
    assert to_number(raw, 7.0) == expected


def test_to_number_can_fall_back_to_none() -> None:
    assert to_number("n/a", None) is None


def test_clamp_bounds_values_and_maps_non_finite_to_minimum() -> None:
    assert clamp(5, 0, 3) == 3
    assert clamp(-1, 0, 3) == 0
    assert clamp(2, 0, 3) == 2
    assert clamp(float("nan"), 1, 3) == 1
    assert clamp(None, 1, 3) == 1
    assert clamp(1e12, 0) == 1e12


def test_normalize_percent_applies_fallback_then_bounds() -> None:
    assert normalize_percent("150", 10) == 100
    assert normalize_percent(None, 10) == 10
    assert normalize_percent("-4", 10) == 0
    assert normalize_percent("80", 10, maximum=60) == 60


def test_to_positive_floors_at_zero() -> None:
    assert to_positive(-5) == 0.0
    assert to_positive("4") == 4.0
    assert to_positive(None, 3.0) == 3.0


def test_safe_divide_guards_zero_denominators() -> None:
    assert safe_divide(10, 0) == 0.0
    assert safe_divide(10, 0, fallback=-1) == -1
    assert safe_divide(10, float("nan")) == 0.0
    assert safe_divide(10, 4) == pytest.approx(2.5)


def test_finite_or_zero() -> None:
    assert finite_or_zero(None) == 0.0
    assert finite_or_zero(math.inf) == 0.0
    assert finite_or_zero(2.5) == 2.5


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("true", True),
        (" Locked ", True),
        ("yes", True),
        ("1", True),
        ("false", False),
        ("no", False),
        (0, False),
        (2, True),
        (None, False),
        (True, True),
    ],
)
def test_is_truthy_flag(raw, expected) -> None:
    assert is_truthy_flag(raw) is expected


def test_read_field_handles_mappings_objects_and_none() -> None:
    class Section:
        months_off = 3

    assert read_field({"months_off": 2}, "months_off") == 2
    assert read_field(Section(), "months_off") == 3
    assert read_field(None, "months_off", 1) == 1
    assert read_field({}, "months_off", 1) == 1


def test_calculate_progressive_tax_spans_brackets() -> None:
    regime = load_tax_regime("dutch2025")
    first = regime.brackets[0]

    assert calculate_progressive_tax(0, regime.brackets) == 0.0
    assert calculate_progressive_tax(10_000, regime.brackets) == pytest.approx(
        10_000 * first.rate
    )
    above = first.upper_bound + 1_000
    assert calculate_progressive_tax(above, regime.brackets) == pytest.approx(
        first.upper_bound * first.rate + 1_000 * regime.brackets[1].rate
    )


def test_round_units_keeps_two_decimals() -> None:
    assert round_units(2.4567) == 2.46
    assert round_units("1.5") == 1.5
    assert round_units(math.nan) == 0.0
    assert round_units(None) == 0.0


@pytest.mark.parametrize("value", [-1e9, -3.5, 0.0, 0.25, 7.0, 99.95, 1e9])
@pytest.mark.parametrize(("minimum", "maximum"), [(0.0, 100.0), (0.0, 99.9), (0.25, 12.0)])
def test_clamp_is_idempotent(value, minimum, maximum) -> None:
    once = clamp(value, minimum, maximum)

    assert clamp(once, minimum, maximum) == once
