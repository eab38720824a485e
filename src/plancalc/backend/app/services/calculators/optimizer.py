"""Search the service mix that best meets the annual net target.

Each service gets a short range of candidate monthly volumes scaled from its
baseline volume. Every combination is evaluated and checked against the
workload, billable days, travel allowance and hands-on quota of the plan, and
each service option against its pricing fences and the comfort buffer. Mixes
are ranked by violation count, then by whether they meet the target, then by
the size of the net gap.
"""

from __future__ import annotations

import heapq
import itertools
import math
from collections.abc import Mapping, Sequence
from typing import Any

from plancalc.backend.app.models.derived import (
    CapacityMetrics,
    CostMetrics,
    IncomeTargetMetrics,
    MixCandidate,
    MixConstraints,
    MixOptimization,
    MixSummary,
    MixTotals,
    MixViolation,
    PricingFenceStatus,
    ScenarioModifiers,
    ServiceOption,
)

from .capacity import derive_capacity
from .costs import compute_costs
from .income import derive_income_targets
from .modifiers import normalize_scenario_modifiers
from .service_economics import (
    ServiceDescriptor,
    build_service_descriptors,
    compute_service_hours,
    compute_service_revenue,
    is_volume_locked,
    merge_service_config,
)
from .utils import (
    clamp,
    is_truthy_flag,
    read_field,
    round_units,
    safe_divide,
    to_number,
    to_positive,
)

DEFAULT_MULTIPLIERS: tuple[float, ...] = (0.0, 0.5, 0.75, 1.0, 1.25, 1.5)
DEFAULT_MAX_CANDIDATES = 5
WORKING_HOURS_PER_DAY = 8.0
COMFORT_FLOOR_CAP = 0.95
EPSILON = 1e-6


def resolve_hands_on_weight(config: Mapping[str, Any]) -> float:
    """Share of a service's days spent hands-on: explicit weight, else the flag."""

    weight = to_number(config.get("hands_on_weight"), None)
    if weight is not None:
        return clamp(weight, 0.0, 1.0)
    return 1.0 if is_truthy_flag(config.get("hands_on")) else 0.0


def _pricing_fences(config: Mapping[str, Any]) -> Mapping[str, Any]:
    fences = config.get("pricing_fences")
    return fences if isinstance(fences, Mapping) else {}


def resolve_price_bounds(config: Mapping[str, Any]) -> tuple[float, float | None]:
    """Return the hard price floor and ceiling for one service.

    The floor is ``min_price_per_unit``, else the minimum pricing fence, else
    the base price. The ceiling is ``max_price_per_unit``, else twice the floor.
    """

    floor_source = config.get("min_price_per_unit")
    if floor_source is None:
        floor_source = _pricing_fences(config).get("min")
    if floor_source is None:
        floor_source = config.get("base_price")
    floor = to_positive(floor_source)

    ceiling = to_number(config.get("max_price_per_unit"), None)
    if ceiling is not None and ceiling > 0:
        return floor, ceiling
    return floor, (floor * 2 if floor > 0 else None)


def pricing_fence_status(price: float, config: Mapping[str, Any]) -> PricingFenceStatus:
    fences = _pricing_fences(config)
    minimum = to_number(fences.get("min"), None)
    target = to_number(fences.get("target"), None)
    stretch = to_number(fences.get("stretch"), None)

    if minimum is not None and price + EPSILON < minimum:
        status, delta = "below_min", price - minimum
    elif stretch is not None and price - EPSILON > stretch:
        status, delta = "above_stretch", price - stretch
    elif minimum is None and stretch is None:
        status, delta = "unknown", None
    else:
        status, delta = "within", (price - target if target is not None else None)

    return PricingFenceStatus(
        status=status, minimum=minimum, target=target, stretch=stretch, delta=delta
    )


def build_unit_range(
    config: Mapping[str, Any],
    capacity: CapacityMetrics,
    modifiers: ScenarioModifiers,
    multipliers: Sequence[Any] = DEFAULT_MULTIPLIERS,
) -> tuple[float, ...]:
    """Candidate monthly volumes for one service, ascending and de-duplicated.

    Each multiplier scales the baseline volume; without a baseline it is used
    as the volume itself. A locked volume is the only candidate.
    """

    base_units = max(compute_service_hours(config, capacity, modifiers).units_per_month, 0.0)
    if is_volume_locked(config):
        return (round_units(base_units),)

    values: set[float] = set()
    for multiplier in multipliers:
        factor = to_number(multiplier, None)
        if factor is None or factor <= 0:
            values.add(0.0)
        elif base_units <= 0:
            values.add(round_units(factor))
        else:
            values.add(round_units(base_units * factor))

    explicit = to_number(config.get("units_per_month"), None)
    if explicit is not None and explicit >= 0:
        values.add(round_units(explicit))

    return tuple(sorted(values)) or (0.0,)


def evaluate_service_option(
    service_id: str,
    config: Mapping[str, Any],
    units_per_month: float,
    capacity: CapacityMetrics,
    costs: CostMetrics,
    modifiers: ScenarioModifiers,
    active_months: float,
) -> ServiceOption:
    """Annual economics and option-level violations for one candidate volume."""

    option_config = {**config, "units_per_month": units_per_month}
    hours = compute_service_hours(option_config, capacity, modifiers)
    revenue = compute_service_revenue(option_config, hours, costs)

    revenue_annual = revenue.revenue * active_months
    direct_cost_annual = revenue.direct_cost * active_months
    if revenue.revenue > EPSILON:
        gross_margin = max((revenue.revenue - revenue.direct_cost) / revenue.revenue, 0.0)
    else:
        gross_margin = 0.0

    comfort_floor = clamp(
        to_number(config.get("comfort_buffer"), costs.buffer), 0.0, COMFORT_FLOOR_CAP
    )
    pricing_floor, pricing_ceiling = resolve_price_bounds(config)
    price = revenue.price_per_unit

    violations: list[MixViolation] = []
    if hours.annual_units > 0:
        if pricing_floor > 0 and price + EPSILON < pricing_floor:
            violations.append(
                MixViolation(
                    type="pricing_floor",
                    actual=price,
                    limit=pricing_floor,
                    message="Price per unit below floor",
                    service_id=service_id,
                )
            )
        if pricing_ceiling is not None and price - EPSILON > pricing_ceiling:
            violations.append(
                MixViolation(
                    type="pricing_ceiling",
                    actual=price,
                    limit=pricing_ceiling,
                    message="Price per unit above ceiling",
                    service_id=service_id,
                )
            )
        if revenue_annual > EPSILON and gross_margin + EPSILON < comfort_floor:
            violations.append(
                MixViolation(
                    type="comfort_buffer",
                    actual=gross_margin,
                    limit=comfort_floor,
                    message="Gross margin below comfort buffer",
                    service_id=service_id,
                )
            )

    return ServiceOption(
        id=service_id,
        units_per_month=hours.units_per_month,
        annual_units=hours.annual_units,
        service_days=hours.annual_days_for_service,
        travel_days=hours.annual_travel_days,
        hands_on_days=hours.annual_days_for_service * resolve_hands_on_weight(config),
        annual_hours=hours.annual_hours,
        revenue=revenue_annual,
        direct_cost=direct_cost_annual,
        tax=revenue.tax * active_months,
        net=revenue.net * active_months,
        price_per_unit=price,
        gross_margin=gross_margin,
        comfort_floor=comfort_floor,
        pricing_floor=pricing_floor,
        pricing_ceiling=pricing_ceiling,
        pricing_fence=pricing_fence_status(price, config),
        violations=tuple(violations),
    )


def resolve_mix_constraints(
    capacity: CapacityMetrics,
    modifiers: ScenarioModifiers,
    income_targets: IncomeTargetMetrics,
) -> MixConstraints:
    active_months = max(capacity.active_months, 1.0)
    billable_weeks = max(capacity.billable_weeks, 1.0)
    working_hours = capacity.working_days_per_year * WORKING_HOURS_PER_DAY
    travel_allowance = capacity.travel_allowance_days
    target_net = income_targets.target_net

    return MixConstraints(
        target_net=max(target_net, 0.0) if target_net is not None else 0.0,
        active_months=active_months,
        billable_weeks=billable_weeks,
        hours_limit_per_week=working_hours / billable_weeks if working_hours > 0 else None,
        service_days_limit=max(capacity.billable_days_after_travel, 0.0),
        travel_limit_per_month=(
            travel_allowance / active_months if travel_allowance > 0 else None
        ),
        hands_on_minimum=modifiers.hands_on_quota,
    )


def summarize_selection(
    selection: Sequence[ServiceOption], constraints: MixConstraints
) -> MixSummary:
    totals = MixTotals(
        revenue=sum(option.revenue for option in selection),
        direct_cost=sum(option.direct_cost for option in selection),
        tax=sum(option.tax for option in selection),
        net=sum(option.net for option in selection),
        service_days=sum(option.service_days for option in selection),
        travel_days=sum(option.travel_days for option in selection),
        hands_on_days=sum(option.hands_on_days for option in selection),
        annual_hours=sum(option.annual_hours for option in selection),
    )

    hours_per_week = safe_divide(totals.annual_hours, constraints.billable_weeks)
    travel_days_per_month = safe_divide(totals.travel_days, constraints.active_months)
    hours_limit = constraints.hours_limit_per_week
    travel_limit = constraints.travel_limit_per_month
    if totals.revenue > EPSILON:
        gross_margin = max((totals.revenue - totals.direct_cost) / totals.revenue, 0.0)
    else:
        gross_margin = 0.0

    return MixSummary(
        totals=totals,
        hours_per_week=hours_per_week,
        travel_days_per_month=travel_days_per_month,
        utilization=hours_per_week / hours_limit if hours_limit else None,
        hands_on_share=safe_divide(totals.hands_on_days, totals.service_days),
        gross_margin=gross_margin,
        meets_target=totals.net + EPSILON >= constraints.target_net,
        net_gap=totals.net - constraints.target_net,
        remaining_hours_per_week=(
            max(hours_limit - hours_per_week, 0.0) if hours_limit else None
        ),
        remaining_service_days=max(constraints.service_days_limit - totals.service_days, 0.0),
        remaining_travel_days_per_month=(
            max(travel_limit - travel_days_per_month, 0.0) if travel_limit is not None else None
        ),
    )


def detect_violations(
    summary: MixSummary, constraints: MixConstraints
) -> list[MixViolation]:
    """Mix-level violations: workload hours, service days, travel and hands-on share."""

    violations: list[MixViolation] = []
    hours_limit = constraints.hours_limit_per_week
    if hours_limit is not None and summary.hours_per_week > hours_limit + EPSILON:
        violations.append(
            MixViolation(
                type="hours",
                actual=summary.hours_per_week,
                limit=hours_limit,
                message="Weekly hours exceed allowance",
            )
        )

    if summary.totals.service_days > constraints.service_days_limit + EPSILON:
        violations.append(
            MixViolation(
                type="service_days",
                actual=summary.totals.service_days,
                limit=constraints.service_days_limit,
                message="Service days exceed billable capacity",
            )
        )

    travel_limit = constraints.travel_limit_per_month
    if travel_limit is not None and summary.travel_days_per_month > travel_limit + EPSILON:
        violations.append(
            MixViolation(
                type="travel",
                actual=summary.travel_days_per_month,
                limit=travel_limit,
                message="Travel days per month exceed allowance",
            )
        )

    minimum = constraints.hands_on_minimum
    if minimum > 0 and summary.hands_on_share + EPSILON < minimum:
        violations.append(
            MixViolation(
                type="hands_on",
                actual=summary.hands_on_share,
                limit=minimum,
                message="Hands-on share below minimum",
            )
        )

    return violations


def build_candidate(
    selection: Sequence[ServiceOption], constraints: MixConstraints
) -> MixCandidate:
    summary = summarize_selection(selection, constraints)
    violations = detect_violations(summary, constraints)
    for option in selection:
        violations.extend(option.violations)
    return MixCandidate(
        mix={option.id: option for option in selection},
        summary=summary,
        violations=tuple(violations),
    )


def rank_candidate(candidate: MixCandidate) -> tuple[int, int, float, float]:
    summary = candidate.summary
    if summary.meets_target:
        return (len(candidate.violations), 0, summary.net_gap, -summary.totals.net)
    return (len(candidate.violations), 1, abs(summary.net_gap), -summary.totals.net)


def optimize_service_mix(
    state: Any,
    *,
    multipliers: Sequence[Any] | None = None,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    descriptors: Sequence[ServiceDescriptor] | None = None,
    capacity: CapacityMetrics | None = None,
    costs: CostMetrics | None = None,
    income_targets: IncomeTargetMetrics | None = None,
) -> MixOptimization:
    """Return the best ``max_candidates`` service mixes for ``state``.

    Capacity, costs and income targets are derived from ``state`` unless the
    caller passes an already derived snapshot.
    """

    modifiers = normalize_scenario_modifiers(read_field(state, "modifiers"))
    if capacity is None:
        capacity = derive_capacity(
            read_field(state, "capacity"),
            read_field(state, "modifiers"),
            read_field(state, "session_length"),
        )
    costs = costs or compute_costs(state, capacity)
    targets = income_targets or derive_income_targets(state, capacity)

    factors = tuple(multipliers) if multipliers else DEFAULT_MULTIPLIERS
    if isinstance(max_candidates, bool) or not isinstance(max_candidates, int) or max_candidates <= 0:
        max_candidates = DEFAULT_MAX_CANDIDATES
    services = tuple(descriptors) if descriptors else build_service_descriptors()

    constraints = resolve_mix_constraints(capacity, modifiers, targets)
    overrides = read_field(state, "services")
    option_spaces: list[tuple[ServiceOption, ...]] = []
    for descriptor in services:
        config = merge_service_config(
            descriptor.defaults, read_field(overrides, descriptor.id)
        )
        option_spaces.append(
            tuple(
                evaluate_service_option(
                    descriptor.id,
                    config,
                    units,
                    capacity,
                    costs,
                    modifiers,
                    constraints.active_months,
                )
                for units in build_unit_range(config, capacity, modifiers, factors)
            )
        )

    candidates = (
        build_candidate(selection, constraints)
        for selection in itertools.product(*option_spaces)
    )
    best = heapq.nsmallest(max_candidates, candidates, key=rank_candidate)
    return MixOptimization(
        candidates=tuple(best),
        constraints=constraints,
        evaluated=math.prod(len(space) for space in option_spaces),
    )


__all__ = [
    "DEFAULT_MAX_CANDIDATES",
    "DEFAULT_MULTIPLIERS",
    "build_candidate",
    "build_unit_range",
    "detect_violations",
    "evaluate_service_option",
    "optimize_service_mix",
    "pricing_fence_status",
    "rank_candidate",
    "resolve_hands_on_weight",
    "resolve_mix_constraints",
    "resolve_price_bounds",
    "summarize_selection",
]
