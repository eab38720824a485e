"""Lightweight dataclasses for values derived from the planner state."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class ScenarioModifiers:
    comfort_margin_percent: float
    comfort_margin: float
    seasonality_percent: float
    seasonality: float
    travel_friction_percent: float
    travel_friction: float
    hands_on_quota_percent: float
    hands_on_quota: float


@dataclass(frozen=True)
class CapacityMetrics:
    """Working capacity at every attrition stage plus the multipliers used."""

    months_off: float
    weeks_off_per_cycle: float
    days_off_per_week: float
    active_months: float
    active_month_share: float
    working_weeks_per_cycle: float
    weeks_share: float
    base_working_weeks: float
    working_weeks: float
    working_days_per_week: float
    working_days_per_year: float
    base_utilization_percent: float
    utilization_percent: float
    utilization_rate: float
    billable_weeks: float
    billable_days_per_year: float
    travel_days_per_month: float
    travel_days_per_cycle: float
    travel_days_per_year: float
    travel_weeks_per_year: float
    travel_allowance_days: float
    travel_allowance_share: float
    travel_allowance_billable_share: float
    billable_days_after_travel: float
    seasonality_percent: float
    seasonality_penalty: float
    travel_friction_percent: float
    travel_friction_multiplier: float
    session_length: float
    billable_hours_per_year: float
    non_billable_share: float

@dataclass(frozen=True)
class CostLine:
    annual: float
    monthly: float


@dataclass(frozen=True)
class HourlyCostLine:
    annual: float
    monthly: float
    per_billable_hour: float
    per_working_day: float
    per_billable_day: float
    working_days: float
    billable_days: float


@dataclass(frozen=True)
class TravelCostLine:
    annual: float
    monthly: float
    per_day: float
    days: float


@dataclass(frozen=True)
class VariableCostBreakdown:
    """Variable costs split by the driver that produces them."""

    per_working_day: float
    per_billable_day: float
    per_travel_day: float
    working_days: float
    billable_days: float
    travel_days: float
    annual_working_day_cost: float
    annual_billable_day_cost: float
    annual_travel_cost: float
    other_annual_cost: float
    annual_total: float


@dataclass(frozen=True)
class CostTotals:
    fixed: CostLine
    hourly: HourlyCostLine
    travel: TravelCostLine
    other: CostLine
    variable: CostLine
    total: CostLine


@dataclass(frozen=True)
class CostMetrics:
    tax_rate_percent: float
    tax_rate: float
    vat_rate_percent: float
    vat_rate: float
    buffer_percent: float
    comfort_margin_percent: float
    buffer: float
    fixed_costs: float
    annual_variable_costs: float
    variable_cost_per_class: float
    variable_costs: VariableCostBreakdown
    totals: CostTotals
    currency_symbol: str

    @property
    def fixed(self) -> CostLine:
        return self.totals.fixed

    @property
    def variable(self) -> CostLine:
        return self.totals.variable

    @property
    def total(self) -> CostLine:
        return self.totals.total

@dataclass(frozen=True)
class IncomeTargetDefaults:
    year: float
    week: float
    month: float
    average_week: float
    average_month: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class IncomeTargetMetrics:
    """Authoritative annual target and its decompositions for the active basis."""

    mode: str
    basis: str
    year: float
    week: float
    month: float
    average_week: float
    average_month: float
    target_annual: float
    target_per_week: float | None
    target_per_month: float | None
    target_average_per_week: float
    target_average_per_month: float
    target_net: float | None
    target_gross: float | None
    has_working_weeks: bool
    has_active_months: bool
    defaults: IncomeTargetDefaults

    @property
    def target_net_per_week(self) -> float | None:
        return self.target_per_week if self.mode == "net" else None

    @property
    def target_net_per_month(self) -> float | None:
        return self.target_per_month if self.mode == "net" else None

@dataclass(frozen=True)
class DerivedState:
    """Snapshot recomputed in full after every store mutation."""

    capacity: CapacityMetrics
    costs: CostMetrics
    income_targets: IncomeTargetMetrics

@dataclass(frozen=True)
class ServiceHours:
    share: float
    service_days_per_unit: float
    travel_days_per_unit: float
    travel_hours_per_unit: float
    service_hours_per_unit: float
    total_hours_per_unit: float
    active_months: float
    billable_days: float
    units_per_month: float
    annual_units: float
    annual_days_for_service: float
    annual_travel_days: float
    annual_hours: float
    usage_share: float
    locked_volume: bool


@dataclass(frozen=True)
class ServiceRevenue:
    price_per_unit: float
    revenue: float
    direct_cost: float
    tax: float
    net: float


@dataclass(frozen=True)
class RateTarget:
    price_per_unit: float | None
    units_per_month: float
    annual_units: float
    locked: bool
    target_net: float
    projected_net: float | None
    annual_travel_days: float
    service_days: float
    hours_per_unit: float


@dataclass(frozen=True)
class VolumeTarget:
    units_per_month: float | None
    annual_units: float | None
    locked: bool
    target_net: float
    projected_net: float | None
    price_per_unit: float
    annual_travel_days: float
    service_days: float
    hours_per_unit: float
    usage_share: float | None


@dataclass(frozen=True)
class ServiceTargets:
    price_per_unit: float | None
    units_per_month: float | None
    locked_rate: bool
    locked_volume: bool


@dataclass(frozen=True)
class ServiceResult:
    """Per-service economics for one month of activity."""

    id: str
    units: float
    price: float
    revenue: float
    direct_cost: float
    tax: float
    net: float
    travel_days_per_unit: float
    annual_travel_days: float
    hours_per_unit: float
    targets: ServiceTargets

@dataclass(frozen=True)
class TaxBreakdown:
    profit_before_tax: float
    zelfstandigenaftrek: float
    startersaftrek: float
    taxable_profit_before_mkb: float
    mkb_vrijstelling_rate: float
    mkb_vrijstelling: float
    taxable_profit_after_mkb: float
    income_tax: float
    zvw_base: float
    zvw_contribution: float
    tax_reserve: float
    net_income: float


@dataclass(frozen=True)
class TaxReserve:
    """Profit before tax needed to keep the net target, and what it reserves."""

    mode: str
    target_net: float
    profit_before_tax: float
    income_tax: float
    zvw_contribution: float
    tax_reserve: float
    effective_tax_rate: float
    zelfstandigenaftrek: float | None
    startersaftrek: float | None
    mkb_vrijstelling_rate: float
    mkb_vrijstelling: float | None
    taxable_profit_before_mkb: float
    taxable_profit_after_mkb: float
    zvw_base: float | None


@dataclass(frozen=True)
class MixViolation:
    """A constraint a service mix, or one of its options, breaks."""

    type: str
    actual: float
    limit: float
    message: str
    service_id: str | None = None


@dataclass(frozen=True)
class PricingFenceStatus:
    status: str
    minimum: float | None
    target: float | None
    stretch: float | None
    delta: float | None


@dataclass(frozen=True)
class ServiceOption:
    """One candidate volume for a service, with annual economics."""

    id: str
    units_per_month: float
    annual_units: float
    service_days: float
    travel_days: float
    hands_on_days: float
    annual_hours: float
    revenue: float
    direct_cost: float
    tax: float
    net: float
    price_per_unit: float
    gross_margin: float
    comfort_floor: float
    pricing_floor: float
    pricing_ceiling: float | None
    pricing_fence: PricingFenceStatus
    violations: tuple[MixViolation, ...]


@dataclass(frozen=True)
class MixTotals:
    revenue: float
    direct_cost: float
    tax: float
    net: float
    service_days: float
    travel_days: float
    hands_on_days: float
    annual_hours: float


@dataclass(frozen=True)
class MixSummary:
    totals: MixTotals
    hours_per_week: float
    travel_days_per_month: float
    utilization: float | None
    hands_on_share: float
    gross_margin: float
    meets_target: bool
    net_gap: float
    remaining_hours_per_week: float | None
    remaining_service_days: float
    remaining_travel_days_per_month: float | None


@dataclass(frozen=True)
class MixCandidate:
    mix: dict[str, ServiceOption]
    summary: MixSummary
    violations: tuple[MixViolation, ...]


@dataclass(frozen=True)
class MixConstraints:
    """Limits every candidate mix is checked against."""

    target_net: float
    active_months: float
    billable_weeks: float
    hours_limit_per_week: float | None
    service_days_limit: float
    travel_limit_per_month: float | None
    hands_on_minimum: float


@dataclass(frozen=True)
class MixOptimization:
    candidates: tuple[MixCandidate, ...]
    constraints: MixConstraints
    evaluated: int


__all__ = [
    "CapacityMetrics",
    "CostLine",
    "CostMetrics",
    "CostTotals",
    "DerivedState",
    "HourlyCostLine",
    "IncomeTargetDefaults",
    "IncomeTargetMetrics",
    "MixCandidate",
    "MixConstraints",
    "MixOptimization",
    "MixSummary",
    "MixTotals",
    "MixViolation",
    "PricingFenceStatus",
    "RateTarget",
    "ScenarioModifiers",
    "ServiceHours",
    "ServiceOption",
    "ServiceResult",
    "ServiceRevenue",
    "ServiceTargets",
    "TaxBreakdown",
    "TaxReserve",
    "TravelCostLine",
    "VariableCostBreakdown",
    "VolumeTarget",
]
