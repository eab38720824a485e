"""Unit tests for the scenario modifier normaliser."""

from __future__ import annotations

import pytest

from plancalc.backend.app.models import ModifiersState
from plancalc.backend.app.services.calculators import (
    DEFAULT_MODIFIERS,
    apply_modifier_defaults,
    modifier_range,
    normalize_scenario_modifiers,
)


def test_defaults_apply_when_nothing_is_configured() -> None:
    modifiers = normalize_scenario_modifiers(None)

    assert modifiers.comfort_margin_percent == 10
    assert modifiers.comfort_margin == pytest.approx(0.1)
    assert modifiers.seasonality_percent == 0
    assert modifiers.travel_friction_percent == 0
    assert modifiers.hands_on_quota_percent == 50
    assert modifiers.hands_on_quota == pytest.approx(0.5)


def test_values_are_clamped_to_their_ranges() -> None:
    modifiers = normalize_scenario_modifiers(
        {
            "comfort_margin_percent": 95,
            "seasonality_percent": 120,
            "travel_friction_percent": 400,
            "hands_on_quota_percent": -5,
        }
    )

    assert modifiers.comfort_margin_percent == 60
    assert modifiers.seasonality_percent == 75
    assert modifiers.travel_friction_percent == 150
    assert modifiers.hands_on_quota_percent == 0


def test_canonical_key_wins_over_legacy_key() -> None:
    modifiers = normalize_scenario_modifiers(
        {"seasonality_percent": 20, "seasonality": 40}
    )

    assert modifiers.seasonality_percent == 20


def test_legacy_and_camel_case_keys_round_trip() -> None:
    legacy = normalize_scenario_modifiers({"travel_friction": 30, "handsOnQuotaPercent": 70})
    canonical = normalize_scenario_modifiers(
        {"travel_friction_percent": 30, "hands_on_quota_percent": 70}
    )

    assert legacy == canonical


def test_state_sections_are_accepted() -> None:
    section = ModifiersState(comfort_margin=25, seasonality_percent="12")

    assert apply_modifier_defaults(section) == {
        "comfort_margin_percent": 10.0,
        "seasonality_percent": 12.0,
        "travel_friction_percent": 0.0,
        "hands_on_quota_percent": 50.0,
    }


def test_legacy_value_is_used_when_canonical_is_cleared() -> None:
    section = ModifiersState(comfort_margin_percent=None, comfort_margin=25)

    assert normalize_scenario_modifiers(section).comfort_margin_percent == 25


def test_unparsable_values_fall_back_to_defaults() -> None:
    assert apply_modifier_defaults({"comfort_margin_percent": "lots"}) == dict(
        DEFAULT_MODIFIERS
    )


def test_modifier_range_accepts_both_spellings() -> None:
    assert modifier_range("travel_friction_percent") == (0.0, 150.0)
    assert modifier_range("seasonality") == (0.0, 75.0)
    with pytest.raises(KeyError):
        modifier_range("unknown")
