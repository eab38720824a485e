"""Unit tests for the tax reserve strategies."""

from __future__ import annotations

import pytest

from plancalc.backend.app.models import initial_state
from plancalc.backend.app.services.calculators import (
    TaxSettings,
    calculate_tax_reserve,
    compute_costs,
    compute_tax_breakdown,
    derive_capacity,
    solve_tax_breakdown,
)
from plancalc.backend.config import load_tax_regime


@pytest.fixture()
def regime():
    return load_tax_regime("dutch2025")


def _reserve(state):
    capacity = derive_capacity(state.capacity, state.modifiers, state.session_length)
    costs = compute_costs(state, capacity)
    return calculate_tax_reserve(state, capacity, costs)


def test_simple_mode_grosses_up_the_manual_rate() -> None:
    reserve = _reserve(initial_state())

    assert reserve.mode == "simple"
    assert reserve.target_net == pytest.approx(50_000)
    assert reserve.profit_before_tax == pytest.approx(50_000 / 0.6)
    assert reserve.tax_reserve == pytest.approx(50_000 / 0.6 - 50_000)
    assert reserve.effective_tax_rate == pytest.approx(0.4)


def test_dutch_mode_net_matches_target_within_tolerance(regime) -> None:
    state = initial_state().model_copy(
        update={"tax": initial_state().tax.model_copy(update={"mode": "dutch2025"})}
    )
    reserve = _reserve(state)

    assert reserve.mode == "dutch2025"
    net = reserve.profit_before_tax - reserve.tax_reserve
    assert net == pytest.approx(50_000, abs=regime.solver.epsilon)
    assert 0 < reserve.effective_tax_rate < 0.5


@pytest.mark.parametrize("target", [1_000, 35_000, 90_000, 250_000])
def test_solver_converges_across_brackets(regime, target) -> None:
    breakdown = solve_tax_breakdown(target, TaxSettings(), regime, manual_tax_rate=0.4)

    assert breakdown.net_income == pytest.approx(target, abs=regime.solver.epsilon)


def test_solver_returns_zero_breakdown_for_non_positive_target(regime) -> None:
    breakdown = solve_tax_breakdown(0, TaxSettings(), regime)

    assert breakdown.profit_before_tax == 0
    assert breakdown.tax_reserve == 0


def test_deductions_reduce_the_taxable_base(regime) -> None:
    profit = 60_000
    with_deductions = compute_tax_breakdown(
        profit, TaxSettings(startersaftrek=True), regime
    )
    without = compute_tax_breakdown(
        profit,
        TaxSettings(zelfstandigenaftrek=False, mkb_vrijstelling=False, include_zvw=False),
        regime,
    )

    assert with_deductions.zelfstandigenaftrek == regime.zelfstandigenaftrek
    assert with_deductions.startersaftrek == regime.startersaftrek
    expected_before_mkb = profit - regime.zelfstandigenaftrek - regime.startersaftrek
    assert with_deductions.taxable_profit_before_mkb == pytest.approx(expected_before_mkb)
    assert with_deductions.mkb_vrijstelling == pytest.approx(
        expected_before_mkb * regime.mkb_vrijstelling_rate
    )
    assert with_deductions.income_tax < without.income_tax
    assert without.zvw_contribution == 0
    assert without.taxable_profit_after_mkb == profit


def test_zvw_base_is_capped(regime) -> None:
    breakdown = compute_tax_breakdown(
        regime.zvw_maximum_income * 2, TaxSettings(zelfstandigenaftrek=False, mkb_vrijstelling=False), regime
    )

    assert breakdown.zvw_base == regime.zvw_maximum_income
    assert breakdown.zvw_contribution == pytest.approx(
        regime.zvw_maximum_income * regime.zvw_rate
    )
