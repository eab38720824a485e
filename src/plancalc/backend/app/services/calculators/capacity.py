"""Derive working and billable capacity from time-off and utilisation inputs.

Capacity is computed as a chain of attrition stages: calendar weeks, active
months, working weeks per four-week cycle, working days, utilisation-adjusted
billable days and finally billable days left after travel. Each stage is
bounded by the one before it, and every division guards its zero
denominator so a fully booked-off year yields zeros rather than NaN.
"""

from __future__ import annotations

from typing import Any

from plancalc.backend.app.models.derived import CapacityMetrics, ScenarioModifiers

from .constants import (
    BASE_WORK_DAYS_PER_WEEK,
    DEFAULT_SESSION_LENGTH,
    MONTHS_PER_YEAR,
    SESSION_LENGTH_RANGE,
    WEEKS_PER_CYCLE,
    WEEKS_PER_YEAR,
)
from .modifiers import normalize_scenario_modifiers
from .utils import clamp, normalize_percent, read_field, safe_divide, to_number

SEASONALITY_FLOOR = 0.1


def _normalise_travel_days(
    capacity_state: Any, active_months: float, working_weeks: float
) -> tuple[float, float, float]:
    per_month = clamp(
        to_number(read_field(capacity_state, "travel_days_per_month"), 0.0),
        0.0,
        BASE_WORK_DAYS_PER_WEEK * 4,
    )
    per_cycle = clamp(
        to_number(read_field(capacity_state, "travel_days_per_cycle"), 0.0),
        0.0,
        BASE_WORK_DAYS_PER_WEEK,
    )

    annual_from_month = per_month * active_months
    if working_weeks > 0:
        cycles_per_year = working_weeks / WEEKS_PER_CYCLE
    else:
        cycles_per_year = WEEKS_PER_YEAR / WEEKS_PER_CYCLE
    annual_from_cycle = per_cycle * cycles_per_year

    provided_annual = (
        to_number(read_field(capacity_state, "travel_days_per_year"), 0.0) or 0.0
    )
    if provided_annual > 0:
        per_year = provided_annual
    else:
        per_year = max(annual_from_month, annual_from_cycle)

    return per_month, per_cycle, clamp(per_year, 0.0)


def resolve_session_length(raw: Any) -> float:
    """Hours billed per billable day, defaulting to 1.5 and bounded to [0.25, 12]."""

    minimum, maximum = SESSION_LENGTH_RANGE
    return clamp(to_number(raw, DEFAULT_SESSION_LENGTH), minimum, maximum)


def derive_capacity(
    capacity_state: Any,
    modifiers_state: Any = None,
    session_length: Any = DEFAULT_SESSION_LENGTH,
) -> CapacityMetrics:
    """Return capacity metrics for a capacity section and its scenario modifiers."""

    modifiers = (
        modifiers_state
        if isinstance(modifiers_state, ScenarioModifiers)
        else normalize_scenario_modifiers(modifiers_state)
    )

    months_off = clamp(
        to_number(read_field(capacity_state, "months_off"), 0.0), 0.0, MONTHS_PER_YEAR
    )
    active_months = MONTHS_PER_YEAR - months_off
    active_month_share = active_months / MONTHS_PER_YEAR

    weeks_off = clamp(
        to_number(read_field(capacity_state, "weeks_off_cycle"), 0.0), 0.0, WEEKS_PER_CYCLE
    )
    working_weeks_per_cycle = WEEKS_PER_CYCLE - weeks_off
    weeks_share = working_weeks_per_cycle / WEEKS_PER_CYCLE

    seasonality_penalty = max(1 - modifiers.seasonality, SEASONALITY_FLOOR)
    base_working_weeks = WEEKS_PER_YEAR * active_month_share * weeks_share
    working_weeks = base_working_weeks * seasonality_penalty

    days_off = clamp(
        to_number(read_field(capacity_state, "days_off_week"), 0.0),
        0.0,
        BASE_WORK_DAYS_PER_WEEK,
    )
    working_days_per_week = BASE_WORK_DAYS_PER_WEEK - days_off
    working_days_per_year = working_weeks * working_days_per_week

    base_utilization = normalize_percent(
        read_field(capacity_state, "utilization_percent"), 100.0
    )
    utilization_rate = clamp(base_utilization / 100 * seasonality_penalty, 0.0, 1.0)

    billable_weeks = working_weeks * utilization_rate
    billable_days_per_year = working_days_per_year * utilization_rate

    per_month, per_cycle, travel_days_base = _normalise_travel_days(
        capacity_state, active_months, working_weeks
    )
    friction_multiplier = 1 + max(modifiers.travel_friction, 0.0)
    travel_days_per_year = travel_days_base * friction_multiplier
    travel_days_per_month = per_month * friction_multiplier
    travel_days_per_cycle = per_cycle * friction_multiplier

    travel_allowance_days = max(min(travel_days_per_year, max(working_days_per_year, 0.0)), 0.0)
    billable_days_after_travel = max(billable_days_per_year - travel_allowance_days, 0.0)

    hours_per_day = resolve_session_length(session_length)
    billable_hours_per_year = billable_days_after_travel * hours_per_day
    non_billable_share = safe_divide(
        max(working_days_per_year - billable_days_after_travel, 0.0), working_days_per_year
    )

    return CapacityMetrics(
        months_off=months_off,
        weeks_off_per_cycle=weeks_off,
        days_off_per_week=days_off,
        active_months=active_months,
        active_month_share=active_month_share,
        working_weeks_per_cycle=working_weeks_per_cycle,
        weeks_share=weeks_share,
        base_working_weeks=base_working_weeks,
        working_weeks=working_weeks,
        working_days_per_week=working_days_per_week,
        working_days_per_year=working_days_per_year,
        base_utilization_percent=base_utilization,
        utilization_percent=utilization_rate * 100,
        utilization_rate=utilization_rate,
        billable_weeks=billable_weeks,
        billable_days_per_year=billable_days_per_year,
        travel_days_per_month=travel_days_per_month,
        travel_days_per_cycle=travel_days_per_cycle,
        travel_days_per_year=travel_days_per_year,
        travel_weeks_per_year=travel_days_per_year / BASE_WORK_DAYS_PER_WEEK,
        travel_allowance_days=travel_allowance_days,
        travel_allowance_share=safe_divide(travel_allowance_days, working_days_per_year),
        travel_allowance_billable_share=safe_divide(
            travel_allowance_days, billable_days_per_year
        ),
        billable_days_after_travel=billable_days_after_travel,
        seasonality_percent=modifiers.seasonality_percent,
        seasonality_penalty=seasonality_penalty,
        travel_friction_percent=modifiers.travel_friction_percent,
        travel_friction_multiplier=friction_multiplier,
        session_length=hours_per_day,
        billable_hours_per_year=billable_hours_per_year,
        non_billable_share=non_billable_share,
    )


__all__ = ["SEASONALITY_FLOOR", "derive_capacity", "resolve_session_length"]
