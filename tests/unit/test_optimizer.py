"""Unit tests for the service-mix optimizer."""

from __future__ import annotations

import pytest

from plancalc.backend.app.services.calculators import (
    build_unit_range,
    normalize_scenario_modifiers,
    optimize_service_mix,
    resolve_hands_on_weight,
)
from plancalc.backend.app.services.calculators.optimizer import pricing_fence_status
from plancalc.backend.app.services.store import PlannerStore

BINARY = (0, 1)


def _violation_types(candidate, service_id=None):
    return {
        violation.type
        for violation in candidate.violations
        if service_id is None or violation.service_id == service_id
    }


def test_unit_range_scales_the_baseline_volume(store: PlannerStore) -> None:
    config = {"share_of_capacity": 0.2, "days_per_unit": 1, "base_price": 100, "units_per_month": 4}

    units = build_unit_range(
        config, store.capacity_metrics(), normalize_scenario_modifiers(), (0, 0.5, 1, 1.5)
    )

    assert units == (0.0, 2.0, 4.0, 6.0)


def test_unit_range_without_baseline_uses_multipliers_as_volumes(store: PlannerStore) -> None:
    config = {"share_of_capacity": 0, "days_per_unit": 1, "base_price": 100}

    units = build_unit_range(
        config, store.capacity_metrics(), normalize_scenario_modifiers(), (1.5, 0, "bad", 0.5)
    )

    assert units == (0.0, 0.5, 1.5)


def test_locked_volume_is_the_only_candidate(store: PlannerStore) -> None:
    config = {"days_per_unit": 1, "units_per_month": 3.333, "locked_volume": True}

    units = build_unit_range(config, store.capacity_metrics(), normalize_scenario_modifiers())

    assert units == (3.33,)


@pytest.mark.parametrize(
    ("config", "expected"),
    [
        ({"hands_on_weight": 0.4}, 0.4),
        ({"hands_on_weight": 3, "hands_on": False}, 1.0),
        ({"hands_on": True}, 1.0),
        ({"hands_on": "yes"}, 1.0),
        ({}, 0.0),
    ],
)
def test_hands_on_weight(config, expected) -> None:
    assert resolve_hands_on_weight(config) == expected


def test_pricing_fence_status() -> None:
    config = {"pricing_fences": {"min": 100, "target": 200, "stretch": 300}}

    assert pricing_fence_status(50, config).status == "below_min"
    assert pricing_fence_status(50, config).delta == pytest.approx(-50)
    assert pricing_fence_status(250, config).delta == pytest.approx(50)
    assert pricing_fence_status(3000, config).status == "above_stretch"
    assert pricing_fence_status(250, {}).status == "unknown"


def test_every_combination_is_evaluated(store: PlannerStore) -> None:
    result = store.optimize_service_mix(multipliers=BINARY)

    assert result.evaluated == 2 ** len(store.service_ids())
    assert len(result.candidates) == 5
    assert result.constraints.target_net == pytest.approx(50_000)
    assert result.constraints.travel_limit_per_month is None


def test_candidates_are_ranked_by_violations_then_target(store: PlannerStore) -> None:
    candidates = store.optimize_service_mix(multipliers=BINARY, max_candidates=32).candidates

    counts = [len(candidate.violations) for candidate in candidates]
    assert counts == sorted(counts)
    clean = [candidate for candidate in candidates if not candidate.violations]
    assert clean[0].summary.meets_target
    meeting = [candidate.summary.net_gap for candidate in clean if candidate.summary.meets_target]
    assert meeting == sorted(meeting)


def test_hands_on_quota_changes_the_best_mix() -> None:
    relaxed = PlannerStore()
    relaxed.set_hands_on_quota_percent(0)
    strict = PlannerStore()
    strict.set_hands_on_quota_percent(100)

    relaxed_best = relaxed.optimize_service_mix(multipliers=BINARY).candidates[0]
    strict_best = strict.optimize_service_mix(multipliers=BINARY).candidates[0]

    assert relaxed.optimize_service_mix().constraints.hands_on_minimum == 0.0
    assert strict.optimize_service_mix().constraints.hands_on_minimum == 1.0
    assert relaxed_best.violations == ()
    assert relaxed_best.summary.meets_target
    assert strict_best.violations == ()
    assert not strict_best.summary.meets_target
    assert strict_best.summary.hands_on_share == pytest.approx(1.0)
    assert strict_best.mix["representation"].units_per_month == 0
    assert strict_best.mix["intel"].units_per_month == 0


def test_hands_on_shortfall_is_reported(store: PlannerStore) -> None:
    store.set_hands_on_quota_percent(100)

    candidates = store.optimize_service_mix(multipliers=BINARY, max_candidates=32).candidates

    mixed = [c for c in candidates if c.mix["representation"].units_per_month > 0]
    assert mixed
    assert all("hands_on" in _violation_types(candidate) for candidate in mixed)


def test_pricing_fence_floor_excludes_the_service(store: PlannerStore) -> None:
    baseline = store.optimize_service_mix(multipliers=BINARY, max_candidates=32).candidates
    assert not any("pricing_floor" in _violation_types(c) for c in baseline)

    store.set_service_override(
        "intel", pricing_fences={"min": 5000, "target": 5200, "stretch": 6000}
    )
    fenced = store.optimize_service_mix(multipliers=BINARY, max_candidates=32).candidates

    for candidate in fenced:
        option = candidate.mix["intel"]
        if option.units_per_month > 0:
            assert "pricing_floor" in _violation_types(candidate, "intel")
            assert option.pricing_fence.status == "below_min"
    assert fenced[0].violations == ()
    assert fenced[0].mix["intel"].units_per_month == 0


def test_comfort_buffer_flags_thin_margins(store: PlannerStore) -> None:
    store.set_service_override("qc", comfort_buffer=0.95)

    candidates = store.optimize_service_mix(multipliers=BINARY, max_candidates=32).candidates

    for candidate in candidates:
        option = candidate.mix["qc"]
        assert option.comfort_floor == pytest.approx(0.95)
        sold = option.units_per_month > 0
        assert ("comfort_buffer" in _violation_types(candidate, "qc")) is sold


def test_travel_allowance_sets_the_monthly_limit(store: PlannerStore) -> None:
    store.set_travel_days_per_month(2)

    constraints = store.optimize_service_mix(multipliers=BINARY).constraints

    assert constraints.travel_limit_per_month == pytest.approx(2.0)


def test_invalid_candidate_limit_falls_back_to_default(store: PlannerStore) -> None:
    result = optimize_service_mix(
        store.get(), multipliers=BINARY, max_candidates=0, descriptors=store.descriptors
    )

    assert len(result.candidates) == 5


def test_state_only_call_matches_the_store(store: PlannerStore) -> None:
    direct = optimize_service_mix(store.get(), multipliers=BINARY)
    via_store = store.optimize_service_mix(multipliers=BINARY)

    assert direct.constraints == via_store.constraints
    assert [c.summary for c in direct.candidates] == [c.summary for c in via_store.candidates]
