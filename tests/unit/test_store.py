"""Unit tests for the planner store: mutations, notifications and setters."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from plancalc.backend.app.models import StateError, initial_state
from plancalc.backend.app.services.calculators import ServiceDescriptor
from plancalc.backend.app.services.store import (
    MAX_NOTIFICATION_ROUNDS,
    PlannerStore,
    ReentrancyError,
    run_pipeline,
)
from plancalc.backend.services import to_payload


def test_store_starts_from_the_default_template(store: PlannerStore) -> None:
    derived = store.get_derived()

    assert store.get().capacity == initial_state().capacity
    assert derived.capacity.working_weeks == pytest.approx(32.5)
    assert derived.costs.total.annual == pytest.approx(25_140)
    assert derived.income_targets.target_net == pytest.approx(50_000)


def test_stores_are_independent() -> None:
    first = PlannerStore()
    second = PlannerStore()

    first.set_months_off(5)

    assert second.get().capacity.months_off == 2


def test_income_defaults_are_refreshed_in_the_same_mutation(store: PlannerStore) -> None:
    defaults = store.get().config.defaults.income_targets
    assert defaults.week == pytest.approx(50_000 / 32.5)

    store.patch({"capacity": {"months_off": 0}})

    refreshed = store.get().config.defaults.income_targets
    assert refreshed.month == pytest.approx(50_000 / 12)
    assert store.get_derived().income_targets.defaults.month == pytest.approx(50_000 / 12)


def test_get_derived_returns_a_copy(store: PlannerStore) -> None:
    assert store.get_derived() == store.get_derived()
    assert store.get_derived() is not store.get_derived()


def test_rejected_patch_leaves_state_untouched(store: PlannerStore) -> None:
    before = store.get()
    calls = []
    store.subscribe(lambda state, derived: calls.append(state))

    with pytest.raises(StateError):
        store.patch({"capacity": {"months_off": 3, "unknown": 1}})

    assert store.get() is before
    assert calls == []


def test_set_replaces_the_whole_state(store: PlannerStore) -> None:
    store.patch({"capacity": {"months_off": 6}})

    store.set({"session_length": 2})

    assert store.get().capacity.months_off == 2
    assert store.get().session_length == 2


def test_set_round_trips_a_dump(store: PlannerStore) -> None:
    store.patch({"income_targets": {"basis": "month"}, "services": {"ops": {"units_per_month": 4}}})
    snapshot = store.get().model_dump(mode="json")
    derived = store.get_derived()

    other = PlannerStore()
    other.set(snapshot)

    assert other.get() == store.get()
    assert other.get_derived() == derived


def test_identical_patches_are_idempotent(store: PlannerStore) -> None:
    store.patch({"modifiers": {"seasonality_percent": 15}})
    first = (store.get(), store.get_derived())
    store.patch({"modifiers": {"seasonality_percent": 15}})

    assert (store.get(), store.get_derived()) == first


def test_subscribers_receive_state_and_derived(store: PlannerStore) -> None:
    received = []
    unsubscribe = store.subscribe(lambda state, derived: received.append((state, derived)))

    store.set_utilization_percent(80)
    unsubscribe()
    store.set_utilization_percent(60)

    assert len(received) == 1
    state, derived = received[0]
    assert state.capacity.utilization_percent == 80
    assert derived.capacity.utilization_rate == pytest.approx(0.8)


def test_reentrant_patches_are_delivered_in_order(store: PlannerStore) -> None:
    seen: list[tuple[str, float]] = []

    def first(state, derived):
        seen.append(("first", state.capacity.months_off))
        if state.capacity.months_off == 3:
            store.set_months_off(4)

    def second(state, derived):
        seen.append(("second", state.capacity.months_off))

    store.subscribe(first)
    store.subscribe(second)

    store.set_months_off(3)

    assert seen == [("first", 3), ("second", 3), ("first", 4), ("second", 4)]
    assert store.get().capacity.months_off == 4


def test_runaway_listeners_raise(store: PlannerStore) -> None:
    def bump(state, derived):
        store.set_session_length((state.session_length or 1) + 0.01)

    store.subscribe(bump)

    with pytest.raises(ReentrancyError, match=str(MAX_NOTIFICATION_ROUNDS)):
        store.set_session_length(1)


def test_capacity_setters_clamp(store: PlannerStore) -> None:
    store.set_months_off(40)
    store.set_weeks_off_cycle(-2)
    store.set_days_off_week("nope")
    metrics = store.set_utilization_percent(300)

    capacity = store.get().capacity
    assert capacity.months_off == 12
    assert capacity.weeks_off_cycle == 0
    assert capacity.days_off_week == 2
    assert capacity.utilization_percent == 100
    assert metrics.working_weeks == 0


def test_travel_setters_clamp(store: PlannerStore) -> None:
    store.set_travel_days_per_month(40)
    store.set_travel_days_per_cycle(9)

    assert store.get().capacity.travel_days_per_month == 28
    assert store.get().capacity.travel_days_per_cycle == 7


def test_income_setters(store: PlannerStore) -> None:
    assert store.set_target_net_basis("averageWeek") == "avgWeek"
    assert store.set_target_net_basis("fortnight") == "avgWeek"
    assert store.set_income_target_mode("GROSS") == "gross"
    assert store.set_income_target_mode("other") == "net"

    assert store.set_income_target_value("avgWeek", "1000") == 1000
    assert store.set_income_target_value("week", -5) == 0
    fallback = store.get().config.defaults.income_targets.month
    assert store.set_income_target_value("month", "abc") == pytest.approx(fallback)
    with pytest.raises(StateError):
        store.set_income_target_value("decade", 1)


def test_cost_and_tax_setters(store: PlannerStore) -> None:
    assert store.set_tax_rate_percent(120) == 99.9
    assert store.set_vat_rate_percent(-1) == 0
    assert store.set_buffer_percent(400) == 400
    assert store.set_variable_cost_per_class("12.5") == 12.5
    assert store.set_currency_symbol("  ") == "€"
    assert store.set_currency_symbol(" $ ") == "$"
    assert store.set_tax_mode("DUTCH2025") == "dutch2025"
    assert store.set_tax_mode("flat") == "simple"
    assert store.set_startersaftrek_enabled("yes") is True
    assert store.set_include_zvw_enabled("false") is False
    assert store.set_zelfstandigenaftrek_enabled(0) is False
    assert store.set_mkb_vrijstelling_enabled(True) is True

    assert store.get_derived().costs.variable_cost_per_class == 12.5


def test_modifier_setters_clamp_to_their_ranges(store: PlannerStore) -> None:
    assert store.set_comfort_margin_percent(90) == 60
    assert store.set_seasonality_percent(80) == 75
    assert store.set_travel_friction_percent(200) == 150
    assert store.set_hands_on_quota_percent("x") == 50


def test_session_length_setter(store: PlannerStore) -> None:
    assert store.set_session_length(20) == 12
    assert store.billable_hours() == pytest.approx(113.75 * 12)


def test_service_overrides(store: PlannerStore) -> None:
    store.set_service_override("ops", units_per_month=3)
    store.set_service_override("ops", locked_volume=True)

    assert store.compute_service("ops").units == 3
    assert store.get().services["ops"].locked_volume is True

    store.clear_service_overrides("ops")
    assert "ops" not in store.get().services

    with pytest.raises(StateError):
        store.set_service_override("missing", units_per_month=1)


def test_read_helpers(store: PlannerStore) -> None:
    assert store.non_billable_share() == pytest.approx(0.3)
    assert store.travel_days_per_year() == 0
    assert store.calendar_config()["weeks_per_year"] == 52
    assert store.target_config()["default_net"] == 50_000
    assert store.capacity_metrics() == store.get_derived().capacity
    assert store.service_catalog().ids == store.service_ids()
    assert store.tax_reserve().mode == "simple"


def test_compute_services_tolerates_failing_descriptors() -> None:
    def explode(*_args):
        raise ValueError("bad service")

    store = PlannerStore(
        descriptors=(ServiceDescriptor(id="broken", copy=None, defaults={}, compute=explode),)
    )

    assert store.compute_services() == {"broken": None}


def test_profiling_logs_stage_timings(monkeypatch, caplog) -> None:
    monkeypatch.setenv("PLANCALC_PROFILE_DERIVATIONS", "1")

    with caplog.at_level(logging.DEBUG, logger="plancalc.backend.app.services.store"):
        run_pipeline(initial_state())

    assert "Derivation timings" in caplog.text
    assert "income_targets" in caplog.text


def test_get_returns_the_live_frozen_state(store: PlannerStore) -> None:
    state = store.get()

    assert store.get() is state
    with pytest.raises(ValidationError):
        state.capacity = None

    store.set_months_off(0)
    assert store.get() is not state
    assert state.capacity.months_off != store.get().capacity.months_off


def test_derived_snapshot_serialises_to_nested_mappings(store: PlannerStore) -> None:
    payload = to_payload(store.get_derived())

    assert payload["capacity"]["working_weeks"] == pytest.approx(32.5)
    assert isinstance(payload["costs"]["totals"]["fixed"], dict)
    assert payload["income_targets"]["defaults"]["year"] == pytest.approx(50_000)


def test_optimize_service_mix_follows_the_state(store: PlannerStore) -> None:
    before = store.optimize_service_mix(multipliers=(0, 1), max_candidates=2)
    assert len(before.candidates) == 2
    assert before.constraints.hands_on_minimum == pytest.approx(0.5)

    store.set_hands_on_quota_percent(80)
    store.set_travel_days_per_month(1)
    after = store.optimize_service_mix(multipliers=(0, 1), max_candidates=2)

    assert after.constraints.hands_on_minimum == pytest.approx(0.8)
    assert after.constraints.travel_limit_per_month == pytest.approx(1.0)
    assert after.constraints.service_days_limit < before.constraints.service_days_limit
