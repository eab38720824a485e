"""Cost derivation: fixed, variable and total costs plus the pricing rates."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from plancalc.backend.app.models.derived import (
    CapacityMetrics,
    CostLine,
    CostMetrics,
    CostTotals,
    HourlyCostLine,
    TravelCostLine,
    VariableCostBreakdown,
)

from .constants import MONTHS_PER_YEAR
from .modifiers import normalize_scenario_modifiers
from .utils import normalize_percent, read_field, safe_divide, to_number, to_positive

DEFAULT_CURRENCY_SYMBOL = "€"


def _first_present(section: Any, *keys: str) -> Any:
    for key in keys:
        value = read_field(section, key)
        if value is not None:
            return value
    return None


def sum_fixed_costs(costs_state: Any) -> float:
    """Return the explicit fixed total, or the sum of positive breakdown entries."""

    explicit = to_number(read_field(costs_state, "fixed_costs"), None)
    if explicit is not None:
        return max(explicit, 0.0)

    breakdown = read_field(costs_state, "fixed_cost_breakdown")
    if not isinstance(breakdown, Mapping):
        return 0.0

    total = 0.0
    for value in breakdown.values():
        amount = to_number(value, 0.0) or 0.0
        if amount > 0:
            total += amount
    return total


def compute_variable_cost_totals(
    costs_state: Any, capacity: CapacityMetrics
) -> VariableCostBreakdown:
    """Break variable costs down by working, billable and travel days."""

    per_working_day = to_positive(
        _first_present(costs_state, "variable_cost_per_working_day", "variable_cost_per_class")
    )
    per_billable_day = to_positive(read_field(costs_state, "variable_cost_per_billable_day"))
    per_travel_day = to_positive(
        _first_present(costs_state, "travel_cost_per_day", "travel_allowance_per_day")
    )

    working_days = max(capacity.working_days_per_year, 0.0)
    billable_days = max(capacity.billable_days_after_travel, 0.0)
    travel_days = max(capacity.travel_allowance_days, 0.0)

    annual_working_day_cost = per_working_day * working_days
    annual_billable_day_cost = per_billable_day * billable_days
    annual_travel_cost = per_travel_day * travel_days
    other_annual_cost = to_positive(
        _first_present(costs_state, "variable_costs_annual", "additional_variable_annual")
    )

    return VariableCostBreakdown(
        per_working_day=per_working_day,
        per_billable_day=per_billable_day,
        per_travel_day=per_travel_day,
        working_days=working_days,
        billable_days=billable_days,
        travel_days=travel_days,
        annual_working_day_cost=annual_working_day_cost,
        annual_billable_day_cost=annual_billable_day_cost,
        annual_travel_cost=annual_travel_cost,
        other_annual_cost=other_annual_cost,
        annual_total=(
            annual_working_day_cost
            + annual_billable_day_cost
            + annual_travel_cost
            + other_annual_cost
        ),
    )


def _line(annual: float) -> CostLine:
    return CostLine(annual=annual, monthly=annual / MONTHS_PER_YEAR)


def aggregate_cost_totals(
    fixed_annual: float,
    variable_costs: VariableCostBreakdown,
    capacity: CapacityMetrics,
) -> CostTotals:
    """Group costs into fixed, hourly, travel, other, variable and total lines."""

    hourly_annual = max(
        variable_costs.annual_working_day_cost + variable_costs.annual_billable_day_cost, 0.0
    )
    travel_annual = max(variable_costs.annual_travel_cost, 0.0)
    variable_annual = max(variable_costs.annual_total, 0.0)

    return CostTotals(
        fixed=_line(fixed_annual),
        hourly=HourlyCostLine(
            annual=hourly_annual,
            monthly=hourly_annual / MONTHS_PER_YEAR,
            per_billable_hour=safe_divide(
                hourly_annual, max(capacity.billable_hours_per_year, 0.0)
            ),
            per_working_day=variable_costs.per_working_day,
            per_billable_day=variable_costs.per_billable_day,
            working_days=variable_costs.working_days,
            billable_days=variable_costs.billable_days,
        ),
        travel=TravelCostLine(
            annual=travel_annual,
            monthly=travel_annual / MONTHS_PER_YEAR,
            per_day=variable_costs.per_travel_day,
            days=variable_costs.travel_days,
        ),
        other=_line(max(variable_costs.other_annual_cost, 0.0)),
        variable=_line(variable_annual),
        total=_line(fixed_annual + variable_annual),
    )


def _currency_symbol(state: Any) -> str:
    symbol = read_field(read_field(state, "config"), "currency_symbol")
    if isinstance(symbol, str) and symbol.strip():
        return symbol.strip()
    return DEFAULT_CURRENCY_SYMBOL


def compute_costs(state: Any, capacity: CapacityMetrics) -> CostMetrics:
    """Return cost metrics for ``state`` given already derived ``capacity``.

    The scenario comfort margin stacks additively onto the manual buffer
    percent before it is turned into a rate.
    """

    costs_state = read_field(state, "costs")

    tax_rate_percent = normalize_percent(
        read_field(costs_state, "tax_rate_percent"), 40.0, maximum=99.9
    )
    vat_rate_percent = normalize_percent(
        read_field(costs_state, "vat_rate_percent"), 21.0, maximum=float("inf")
    )
    buffer_percent = normalize_percent(
        read_field(costs_state, "buffer_percent"), 15.0, maximum=float("inf")
    )
    modifiers = normalize_scenario_modifiers(read_field(state, "modifiers"))
    comfort_margin_percent = modifiers.comfort_margin_percent

    fixed_annual = max(sum_fixed_costs(costs_state), 0.0)
    variable_costs = compute_variable_cost_totals(costs_state, capacity)
    totals = aggregate_cost_totals(fixed_annual, variable_costs, capacity)

    return CostMetrics(
        tax_rate_percent=tax_rate_percent,
        tax_rate=tax_rate_percent / 100,
        vat_rate_percent=vat_rate_percent,
        vat_rate=vat_rate_percent / 100,
        buffer_percent=buffer_percent,
        comfort_margin_percent=comfort_margin_percent,
        buffer=(buffer_percent + comfort_margin_percent) / 100,
        fixed_costs=totals.fixed.annual,
        annual_variable_costs=totals.variable.annual,
        variable_cost_per_class=variable_costs.per_working_day,
        variable_costs=variable_costs,
        totals=totals,
        currency_symbol=_currency_symbol(state),
    )


__all__ = [
    "DEFAULT_CURRENCY_SYMBOL",
    "aggregate_cost_totals",
    "compute_costs",
    "compute_variable_cost_totals",
    "sum_fixed_costs",
]
