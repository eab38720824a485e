"""Tax reserve needed to keep the annual net income target.

Two strategies are supported. ``simple`` grosses the net target up with the
manual tax rate from the cost inputs. ``dutch2025`` applies the Dutch box 1
rules for sole traders: self-employed and starter deductions, the SME profit
exemption, the progressive brackets and the capped Zvw health levy. Because
those rules are not invertible in closed form, the profit before tax is found
by bisection until its net income matches the target within the regime's
tolerance.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from plancalc.backend.app.models.derived import (
    CapacityMetrics,
    CostMetrics,
    IncomeTargetMetrics,
    TaxBreakdown,
    TaxReserve,
)
from plancalc.backend.config.catalog import TaxRegimeConfig, load_tax_regime

from .constants import TAX_MODE_VALUES
from .income import derive_income_targets
from .utils import calculate_progressive_tax, clamp, read_field

DUTCH_2025 = "dutch2025"
_SIMPLE_RATE_CAP = 0.999
_MANUAL_ESTIMATE_CAP = 0.95
_MANUAL_ESTIMATE_FLOOR = 0.05
_EXPANSION_FACTOR = 1.5


class TaxSettings(NamedTuple):
    zelfstandigenaftrek: bool = True
    startersaftrek: bool = False
    mkb_vrijstelling: bool = True
    include_zvw: bool = True


def resolve_tax_mode(state: Any) -> str:
    mode = read_field(read_field(state, "tax"), "mode")
    if isinstance(mode, str) and mode.strip().lower() in TAX_MODE_VALUES:
        return mode.strip().lower()
    return TAX_MODE_VALUES[0]


def resolve_tax_settings(state: Any) -> TaxSettings:
    """Read the four deduction toggles, unset toggles keep their defaults."""

    section = read_field(state, "tax")
    defaults = TaxSettings()
    values = {}
    for key in TaxSettings._fields:
        configured = read_field(section, key)
        values[key] = getattr(defaults, key) if configured is None else bool(configured)
    return TaxSettings(**values)


def compute_tax_breakdown(
    profit_before_tax: float, settings: TaxSettings, regime: TaxRegimeConfig
) -> TaxBreakdown:
    """Return the tax breakdown for a given profit before tax."""

    profit = max(profit_before_tax, 0.0)
    zelfstandigenaftrek = (
        min(regime.zelfstandigenaftrek, profit) if settings.zelfstandigenaftrek else 0.0
    )
    startersaftrek = (
        min(regime.startersaftrek, max(profit - zelfstandigenaftrek, 0.0))
        if settings.startersaftrek
        else 0.0
    )

    before_mkb = max(profit - zelfstandigenaftrek - startersaftrek, 0.0)
    mkb_rate = regime.mkb_vrijstelling_rate if settings.mkb_vrijstelling else 0.0
    mkb_vrijstelling = before_mkb * mkb_rate
    after_mkb = max(before_mkb - mkb_vrijstelling, 0.0)

    income_tax = calculate_progressive_tax(after_mkb, regime.brackets)
    zvw_base = max(min(before_mkb, regime.zvw_maximum_income), 0.0)
    zvw_contribution = zvw_base * regime.zvw_rate if settings.include_zvw else 0.0
    tax_reserve = income_tax + zvw_contribution

    return TaxBreakdown(
        profit_before_tax=profit,
        zelfstandigenaftrek=zelfstandigenaftrek,
        startersaftrek=startersaftrek,
        taxable_profit_before_mkb=before_mkb,
        mkb_vrijstelling_rate=mkb_rate,
        mkb_vrijstelling=mkb_vrijstelling,
        taxable_profit_after_mkb=after_mkb,
        income_tax=income_tax,
        zvw_base=zvw_base,
        zvw_contribution=zvw_contribution,
        tax_reserve=tax_reserve,
        net_income=profit - tax_reserve,
    )


def solve_tax_breakdown(
    target_net: float,
    settings: TaxSettings,
    regime: TaxRegimeConfig,
    manual_tax_rate: float = 0.0,
) -> TaxBreakdown:
    """Bisect the profit before tax whose net income meets ``target_net``."""

    if target_net <= 0:
        return compute_tax_breakdown(0.0, settings, regime)

    solver = regime.solver
    manual_rate = clamp(manual_tax_rate, 0.0, _MANUAL_ESTIMATE_CAP)
    low = target_net
    high = max(target_net / max(1 - manual_rate, _MANUAL_ESTIMATE_FLOOR), target_net + 1)

    low_breakdown = compute_tax_breakdown(low, settings, regime)
    if abs(low_breakdown.net_income - target_net) <= solver.epsilon:
        return low_breakdown
    if low_breakdown.net_income > target_net:
        return low_breakdown

    high_breakdown = compute_tax_breakdown(high, settings, regime)
    expansions = 0
    while high_breakdown.net_income < target_net and expansions < solver.expansion_limit:
        low = high
        high *= _EXPANSION_FACTOR
        high_breakdown = compute_tax_breakdown(high, settings, regime)
        expansions += 1

    best = high_breakdown
    for _ in range(solver.max_iterations):
        middle = (low + high) / 2
        candidate = compute_tax_breakdown(middle, settings, regime)
        delta = candidate.net_income - target_net
        best = candidate
        if abs(delta) <= solver.epsilon:
            return candidate
        if delta > 0:
            high = middle
        else:
            low = middle

    return best


def _target_net(
    state: Any, capacity: CapacityMetrics, income_targets: IncomeTargetMetrics | None
) -> float:
    targets = income_targets or derive_income_targets(state, capacity)
    if targets.target_net is None:
        return 0.0
    return max(targets.target_net, 0.0)


def calculate_simple_tax_reserve(target_net: float, costs: CostMetrics) -> TaxReserve:
    rate = clamp(costs.tax_rate, 0.0, _SIMPLE_RATE_CAP)
    if rate >= _SIMPLE_RATE_CAP:
        profit_before_tax = target_net
    else:
        profit_before_tax = target_net / (1 - rate)
    reserve = max(profit_before_tax - target_net, 0.0)
    return TaxReserve(
        mode="simple",
        target_net=target_net,
        profit_before_tax=profit_before_tax,
        income_tax=reserve,
        zvw_contribution=0.0,
        tax_reserve=reserve,
        effective_tax_rate=rate,
        zelfstandigenaftrek=None,
        startersaftrek=None,
        mkb_vrijstelling_rate=0.0,
        mkb_vrijstelling=None,
        taxable_profit_before_mkb=profit_before_tax,
        taxable_profit_after_mkb=profit_before_tax,
        zvw_base=None,
    )


def calculate_dutch_tax_reserve(
    target_net: float,
    settings: TaxSettings,
    costs: CostMetrics,
    regime: TaxRegimeConfig,
) -> TaxReserve:
    breakdown = solve_tax_breakdown(target_net, settings, regime, costs.tax_rate)
    effective_rate = (
        breakdown.tax_reserve / breakdown.profit_before_tax
        if breakdown.profit_before_tax > 0
        else 0.0
    )
    return TaxReserve(
        mode=regime.id,
        target_net=target_net,
        profit_before_tax=breakdown.profit_before_tax,
        income_tax=breakdown.income_tax,
        zvw_contribution=breakdown.zvw_contribution,
        tax_reserve=breakdown.tax_reserve,
        effective_tax_rate=effective_rate,
        zelfstandigenaftrek=breakdown.zelfstandigenaftrek,
        startersaftrek=breakdown.startersaftrek,
        mkb_vrijstelling_rate=breakdown.mkb_vrijstelling_rate,
        mkb_vrijstelling=breakdown.mkb_vrijstelling,
        taxable_profit_before_mkb=breakdown.taxable_profit_before_mkb,
        taxable_profit_after_mkb=breakdown.taxable_profit_after_mkb,
        zvw_base=breakdown.zvw_base,
    )


def calculate_tax_reserve(
    state: Any,
    capacity: CapacityMetrics,
    costs: CostMetrics,
    income_targets: IncomeTargetMetrics | None = None,
    regime: TaxRegimeConfig | None = None,
) -> TaxReserve:
    """Return the tax reserve for the tax mode selected in ``state``."""

    target_net = _target_net(state, capacity, income_targets)
    if resolve_tax_mode(state) == DUTCH_2025:
        return calculate_dutch_tax_reserve(
            target_net,
            resolve_tax_settings(state),
            costs,
            regime or load_tax_regime(DUTCH_2025),
        )
    return calculate_simple_tax_reserve(target_net, costs)


__all__ = [
    "DUTCH_2025",
    "TaxSettings",
    "calculate_dutch_tax_reserve",
    "calculate_simple_tax_reserve",
    "calculate_tax_reserve",
    "compute_tax_breakdown",
    "resolve_tax_mode",
    "resolve_tax_settings",
    "solve_tax_breakdown",
]
