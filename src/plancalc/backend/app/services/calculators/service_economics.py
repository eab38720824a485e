"""Per-service economics computed on demand from capacity and costs.

Each catalogue service contributes a share of billable capacity. Its effective
configuration is the catalogue defaults overlaid with caller overrides from
the planner state, and from that configuration we derive monthly volume,
price per unit, revenue, direct cost, tax and net. Two solvers answer the
inverse questions: which price reaches the service's share of the net target
at the current volume, and which volume reaches it at the current price.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from plancalc.backend.app.models.derived import (
    CapacityMetrics,
    CostMetrics,
    IncomeTargetMetrics,
    RateTarget,
    ScenarioModifiers,
    ServiceHours,
    ServiceResult,
    ServiceRevenue,
    ServiceTargets,
    TaxReserve,
    VolumeTarget,
)
from plancalc.backend.config.catalog import (
    ServiceCatalog,
    ServiceCopy,
    load_service_catalog,
)

from .constants import MONTHS_PER_YEAR
from .income import derive_income_targets
from .modifiers import normalize_scenario_modifiers
from .tax_reserve import DUTCH_2025, calculate_tax_reserve
from .utils import (
    clamp,
    finite_or_zero,
    is_truthy_flag,
    read_field,
    safe_divide,
    to_number,
    to_positive,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOURS_PER_BILLABLE_DAY = 8.0
MIN_DAYS_PER_UNIT = 0.01
MAX_BUFFER = 5.0

_RATE_LOCK_MODES = frozenset({"rate", "price"})
_VOLUME_LOCK_MODES = frozenset({"volume", "units"})

ServiceCompute = Callable[[Any, CapacityMetrics, CostMetrics], Any]


def _first_present(config: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = config.get(key)
        if value is not None:
            return value
    return None


def _lock_mode(config: Mapping[str, Any]) -> str | None:
    for key in ("lock", "lock_mode"):
        value = config.get(key)
        if isinstance(value, str):
            return value.strip().lower()
    return None


def is_rate_locked(config: Mapping[str, Any]) -> bool:
    if is_truthy_flag(config.get("locked_rate")) or is_truthy_flag(config.get("rate_locked")):
        return True
    return _lock_mode(config) in _RATE_LOCK_MODES


def is_volume_locked(config: Mapping[str, Any]) -> bool:
    if is_truthy_flag(config.get("locked_volume")) or is_truthy_flag(
        config.get("volume_locked")
    ):
        return True
    return _lock_mode(config) in _VOLUME_LOCK_MODES


def _as_mapping(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        return dump(exclude_none=True)
    return {}


def merge_service_config(defaults: Any, overrides: Any) -> dict[str, Any]:
    """Overlay ``overrides`` on ``defaults``; ``None`` entries never override."""

    merged = _as_mapping(defaults)
    for key, value in _as_mapping(overrides).items():
        if value is None:
            continue
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = merge_service_config(existing, value)
        else:
            merged[key] = value
    return merged


def compute_service_hours(
    config: Mapping[str, Any],
    capacity: CapacityMetrics,
    modifiers: ScenarioModifiers | None = None,
) -> ServiceHours:
    """Return monthly volume, service days and hours for one service."""

    share = clamp(
        to_number(_first_present(config, "share_of_capacity", "capacity_share"), 0.0), 0.0, 1.0
    )
    days_per_unit = max(to_number(config.get("days_per_unit"), 1.0) or 1.0, MIN_DAYS_PER_UNIT)
    active_months = max(capacity.active_months, 1.0)
    billable_days = max(capacity.billable_days_after_travel, 0.0)

    travel_multiplier = capacity.travel_friction_multiplier
    if not math.isfinite(travel_multiplier) and modifiers is not None:
        travel_multiplier = 1 + max(modifiers.travel_friction, 0.0)
    travel_multiplier = max(finite_or_zero(travel_multiplier), 0.0)

    travel_days_per_unit = to_positive(config.get("travel_days_per_unit")) * travel_multiplier
    travel_hours_per_unit = to_positive(config.get("travel_hours_per_unit")) * travel_multiplier

    if capacity.billable_days_after_travel > 0:
        hours_per_billable_day = (
            capacity.billable_hours_per_year / capacity.billable_days_after_travel
        )
    else:
        hours_per_billable_day = DEFAULT_HOURS_PER_BILLABLE_DAY

    base_hours_per_unit = to_positive(config.get("hours_per_unit"))
    if base_hours_per_unit > 0:
        service_hours_per_unit = base_hours_per_unit
    else:
        service_hours_per_unit = days_per_unit * hours_per_billable_day
    total_hours_per_unit = (
        service_hours_per_unit
        + travel_hours_per_unit
        + travel_days_per_unit * hours_per_billable_day
    )

    explicit_monthly = to_number(config.get("units_per_month"), None)
    explicit_yearly = to_number(config.get("units_per_year"), None)
    if explicit_monthly is not None and explicit_monthly >= 0:
        units_per_month = explicit_monthly
    elif explicit_yearly is not None and explicit_yearly >= 0:
        units_per_month = explicit_yearly / active_months
    else:
        units_per_month = billable_days * share / days_per_unit / active_months
    units_per_month = max(finite_or_zero(units_per_month), 0.0)

    annual_units = units_per_month * active_months
    annual_days_for_service = annual_units * days_per_unit

    return ServiceHours(
        share=share,
        service_days_per_unit=days_per_unit,
        travel_days_per_unit=travel_days_per_unit,
        travel_hours_per_unit=travel_hours_per_unit,
        service_hours_per_unit=service_hours_per_unit,
        total_hours_per_unit=total_hours_per_unit,
        active_months=active_months,
        billable_days=billable_days,
        units_per_month=units_per_month,
        annual_units=annual_units,
        annual_days_for_service=annual_days_for_service,
        annual_travel_days=annual_units * travel_days_per_unit,
        annual_hours=annual_units * total_hours_per_unit,
        usage_share=(
            min(annual_days_for_service / billable_days, 1.0) if billable_days > 0 else 0.0
        ),
        locked_volume=is_volume_locked(config),
    )


def resolve_service_tax_rate(
    config: Mapping[str, Any],
    costs: CostMetrics,
    tax_strategy: TaxReserve | None = None,
) -> float:
    """Effective rate in ``dutch2025`` mode, otherwise the service or global rate."""

    if tax_strategy is not None and tax_strategy.mode == DUTCH_2025:
        return clamp(tax_strategy.effective_tax_rate, 0.0, 1.0)
    return clamp(to_number(config.get("tax_rate"), costs.tax_rate), 0.0, 1.0)


class CostAllocation(NamedTuple):
    fixed_annual: float
    variable_annual: float
    fixed_share: float
    variable_share: float


def compute_allocated_costs(
    config: Mapping[str, Any], costs: CostMetrics, fallback_share: float
) -> CostAllocation:
    share = clamp(fallback_share, 0.0, 1.0)
    fixed_share = clamp(to_number(config.get("fixed_cost_share"), share), 0.0, 1.0)
    variable_share = clamp(to_number(config.get("variable_cost_share"), share), 0.0, 1.0)
    return CostAllocation(
        fixed_annual=max(costs.totals.fixed.annual, 0.0) * fixed_share,
        variable_annual=max(costs.totals.variable.annual, 0.0) * variable_share,
        fixed_share=fixed_share,
        variable_share=variable_share,
    )


def resolve_service_target_net(
    config: Mapping[str, Any],
    total_target_net: float | None = None,
    target_net_share: float | None = None,
) -> float:
    """Return the slice of the annual net target this service should earn."""

    if total_target_net is not None:
        share = to_number(target_net_share, None)
        if share is None:
            share = to_number(
                _first_present(config, "target_net_share", "share_of_capacity", "capacity_share"),
                0.0,
            )
        return total_target_net * clamp(share, 0.0, 1.0)

    return to_positive(config.get("target_net"))


def _direct_cost_per_unit(config: Mapping[str, Any]) -> float:
    return to_positive(_first_present(config, "direct_cost_per_unit", "cost_per_unit"))


def compute_service_revenue(
    config: Mapping[str, Any], hours: ServiceHours, costs: CostMetrics
) -> ServiceRevenue:
    """Return price, revenue, direct cost, tax and net for one month."""

    buffer = clamp(to_number(config.get("buffer_override"), costs.buffer), 0.0, MAX_BUFFER)
    base_price = to_positive(_first_present(config, "base_price", "price_per_unit"))

    locked_override = to_positive(
        _first_present(config, "locked_price_per_unit", "fixed_price_per_unit")
    )
    if locked_override > 0:
        price_override = locked_override
    else:
        price_override = to_positive(
            _first_present(config, "price_per_unit_override", "price_per_unit")
        )

    if is_rate_locked(config):
        price_per_unit = price_override if price_override > 0 else base_price
    elif price_override > 0:
        price_per_unit = price_override
    else:
        price_per_unit = base_price * (1 + buffer)

    share = hours.share
    fixed_monthly = max(costs.totals.fixed.monthly, 0.0)
    variable_monthly = max(costs.totals.variable.monthly, 0.0)
    allocated_fixed = fixed_monthly * clamp(
        to_number(config.get("fixed_cost_share"), share), 0.0, 1.0
    )
    allocated_variable = variable_monthly * clamp(
        to_number(config.get("variable_cost_share"), share), 0.0, 1.0
    )

    units = hours.units_per_month
    revenue = finite_or_zero(units * price_per_unit)
    direct_cost = finite_or_zero(
        units * _direct_cost_per_unit(config) + allocated_fixed + allocated_variable
    )
    tax = finite_or_zero(revenue * resolve_service_tax_rate(config, costs))

    return ServiceRevenue(
        price_per_unit=finite_or_zero(price_per_unit),
        revenue=revenue,
        direct_cost=direct_cost,
        tax=tax,
        net=revenue - direct_cost - tax,
    )


def solve_service_rate_target(
    config: Mapping[str, Any],
    capacity: CapacityMetrics,
    costs: CostMetrics,
    *,
    total_target_net: float | None = None,
    target_net_share: float | None = None,
    modifiers: ScenarioModifiers | None = None,
    tax_strategy: TaxReserve | None = None,
) -> RateTarget:
    """Price per unit that earns the service's net target at the current volume."""

    hours = compute_service_hours(config, capacity, modifiers)
    target_net = resolve_service_target_net(config, total_target_net, target_net_share)
    locked = is_rate_locked(config)
    annual_units = hours.annual_units

    if annual_units <= 0:
        return RateTarget(
            price_per_unit=None,
            units_per_month=hours.units_per_month,
            annual_units=0.0,
            locked=locked,
            target_net=target_net,
            projected_net=None,
            annual_travel_days=hours.annual_travel_days,
            service_days=hours.annual_days_for_service,
            hours_per_unit=hours.total_hours_per_unit,
        )

    if locked:
        revenue = compute_service_revenue(config, hours, costs)
        return RateTarget(
            price_per_unit=revenue.price_per_unit,
            units_per_month=hours.units_per_month,
            annual_units=annual_units,
            locked=True,
            target_net=target_net,
            projected_net=revenue.net * MONTHS_PER_YEAR,
            annual_travel_days=hours.annual_travel_days,
            service_days=hours.annual_days_for_service,
            hours_per_unit=hours.total_hours_per_unit,
        )

    allocation = compute_allocated_costs(config, costs, hours.usage_share)
    tax_rate = resolve_service_tax_rate(config, costs, tax_strategy)
    baseline_cost = (
        _direct_cost_per_unit(config) * annual_units
        + allocation.fixed_annual
        + allocation.variable_annual
    )
    denominator = annual_units * (1 - tax_rate)

    return RateTarget(
        price_per_unit=(target_net + baseline_cost) / denominator if denominator > 0 else None,
        units_per_month=hours.units_per_month,
        annual_units=annual_units,
        locked=False,
        target_net=target_net,
        projected_net=None,
        annual_travel_days=hours.annual_travel_days,
        service_days=hours.annual_days_for_service,
        hours_per_unit=hours.total_hours_per_unit,
    )


def solve_service_volume_target(
    config: Mapping[str, Any],
    capacity: CapacityMetrics,
    costs: CostMetrics,
    *,
    total_target_net: float | None = None,
    target_net_share: float | None = None,
    modifiers: ScenarioModifiers | None = None,
    tax_strategy: TaxReserve | None = None,
) -> VolumeTarget:
    """Monthly volume that earns the service's net target at the current price."""

    hours = compute_service_hours(config, capacity, modifiers)
    target_net = resolve_service_target_net(config, total_target_net, target_net_share)
    revenue = compute_service_revenue(config, hours, costs)
    price_per_unit = revenue.price_per_unit

    if is_volume_locked(config):
        return VolumeTarget(
            units_per_month=hours.units_per_month,
            annual_units=hours.annual_units,
            locked=True,
            target_net=target_net,
            projected_net=revenue.net * MONTHS_PER_YEAR,
            price_per_unit=price_per_unit,
            annual_travel_days=hours.annual_travel_days,
            service_days=hours.annual_days_for_service,
            hours_per_unit=hours.total_hours_per_unit,
            usage_share=hours.usage_share,
        )

    allocation = compute_allocated_costs(config, costs, hours.usage_share)
    tax_rate = resolve_service_tax_rate(config, costs, tax_strategy)
    margin_per_unit = price_per_unit * (1 - tax_rate) - _direct_cost_per_unit(config)

    if margin_per_unit <= 0:
        return VolumeTarget(
            units_per_month=None,
            annual_units=None,
            locked=False,
            target_net=target_net,
            projected_net=None,
            price_per_unit=price_per_unit,
            annual_travel_days=hours.annual_travel_days,
            service_days=hours.annual_days_for_service,
            hours_per_unit=hours.total_hours_per_unit,
            usage_share=None,
        )

    annual_units = max(
        (target_net + allocation.fixed_annual + allocation.variable_annual) / margin_per_unit,
        0.0,
    )
    service_days = annual_units * hours.service_days_per_unit
    return VolumeTarget(
        units_per_month=safe_divide(annual_units, hours.active_months),
        annual_units=annual_units,
        locked=False,
        target_net=target_net,
        projected_net=None,
        price_per_unit=price_per_unit,
        annual_travel_days=annual_units * hours.travel_days_per_unit,
        service_days=service_days,
        hours_per_unit=hours.total_hours_per_unit,
        usage_share=(
            min(service_days / hours.billable_days, 1.0) if hours.billable_days > 0 else None
        ),
    )


@dataclass(frozen=True)
class ServiceDescriptor:
    """A catalogue service plus the callable that computes its economics.

    ``compute`` defaults to :func:`compute_service`; callers may supply their
    own callable taking ``(state, capacity, costs)``.
    """

    id: str
    copy: ServiceCopy
    defaults: Mapping[str, Any]
    archetype: str | None = None
    compute: ServiceCompute | None = field(default=None, compare=False)

    def run(self, state: Any, capacity: CapacityMetrics, costs: CostMetrics) -> Any:
        if self.compute is not None:
            return self.compute(state, capacity, costs)
        return compute_service(self, state, capacity, costs)


def build_service_descriptors(
    catalog: ServiceCatalog | None = None,
) -> tuple[ServiceDescriptor, ...]:
    """Create one descriptor per catalogue entry, in catalogue order."""

    source = catalog or load_service_catalog()
    return tuple(
        ServiceDescriptor(
            id=blueprint.id,
            copy=blueprint.display,
            defaults=blueprint.defaults.model_dump(exclude_none=True),
            archetype=blueprint.archetype,
        )
        for blueprint in source.services
    )


def compute_service(
    descriptor: ServiceDescriptor,
    state: Any,
    capacity: CapacityMetrics,
    costs: CostMetrics,
    *,
    income_targets: IncomeTargetMetrics | None = None,
    tax_strategy: TaxReserve | None = None,
) -> ServiceResult:
    """Compute economics and targets for ``descriptor`` under ``state``."""

    overrides = read_field(read_field(state, "services"), descriptor.id)
    config = merge_service_config(descriptor.defaults, overrides)
    modifiers = normalize_scenario_modifiers(read_field(state, "modifiers"))

    hours = compute_service_hours(config, capacity, modifiers)
    revenue = compute_service_revenue(config, hours, costs)

    targets = income_targets or derive_income_targets(state, capacity)
    strategy = tax_strategy or calculate_tax_reserve(state, capacity, costs, targets)
    total_target_net = targets.target_net or 0.0

    rate_target = solve_service_rate_target(
        config,
        capacity,
        costs,
        total_target_net=total_target_net,
        modifiers=modifiers,
        tax_strategy=strategy,
    )
    volume_target = solve_service_volume_target(
        config,
        capacity,
        costs,
        total_target_net=total_target_net,
        modifiers=modifiers,
        tax_strategy=strategy,
    )

    return ServiceResult(
        id=descriptor.id,
        units=hours.units_per_month,
        price=revenue.price_per_unit,
        revenue=revenue.revenue,
        direct_cost=revenue.direct_cost,
        tax=revenue.tax,
        net=revenue.net,
        travel_days_per_unit=hours.travel_days_per_unit,
        annual_travel_days=hours.annual_travel_days,
        hours_per_unit=hours.total_hours_per_unit,
        targets=ServiceTargets(
            price_per_unit=rate_target.price_per_unit,
            units_per_month=volume_target.units_per_month,
            locked_rate=rate_target.locked,
            locked_volume=volume_target.locked,
        ),
    )


def evaluate_services(
    descriptors: Sequence[ServiceDescriptor],
    state: Any,
    capacity: CapacityMetrics,
    costs: CostMetrics,
) -> dict[str, Any]:
    """Run every descriptor; a failing ``compute`` yields ``None`` for that service."""

    results: dict[str, Any] = {}
    for descriptor in descriptors:
        try:
            results[descriptor.id] = descriptor.run(state, capacity, costs)
        except Exception:
            _LOGGER.exception("Service computation failed for '%s'", descriptor.id)
            results[descriptor.id] = None
    return results


__all__ = [
    "CostAllocation",
    "ServiceCompute",
    "ServiceDescriptor",
    "build_service_descriptors",
    "compute_allocated_costs",
    "compute_service",
    "compute_service_hours",
    "compute_service_revenue",
    "evaluate_services",
    "is_rate_locked",
    "is_volume_locked",
    "merge_service_config",
    "resolve_service_target_net",
    "resolve_service_tax_rate",
    "solve_service_rate_target",
    "solve_service_volume_target",
]
