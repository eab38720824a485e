"""Typed planner state tree.

The state is a frozen pydantic model with one sub-model per section. Numeric
leaves are lenient: anything that does not parse into a finite number is kept
as ``None`` and resolved to its documented fallback by the derivers, so a bad
keystroke never blocks a patch. Structural problems (unknown keys, wrong
shapes) are rejected with :class:`StateError`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from plancalc.backend.app.services.calculators.constants import (
    BASE_WORK_DAYS_PER_WEEK,
    BASIS_ALIASES,
    DEFAULT_SESSION_LENGTH,
    MONTHS_PER_YEAR,
    TARGET_INCOME_MODES,
    TARGET_NET_BASIS_VALUES,
    TARGET_NET_DEFAULT,
    WEEKS_PER_CYCLE,
    WEEKS_PER_YEAR,
)
from plancalc.backend.app.services.calculators.utils import is_truthy_flag, to_number

STATE_VERSION = 1


class StateError(ValueError):
    """Raised when a state replacement or patch has an invalid structure."""


def _lenient_number(value: Any) -> float | None:
    return to_number(value, None)


def _lenient_flag(value: Any) -> bool | None:
    if value is None:
        return None
    return is_truthy_flag(value)


def _normalise_choice(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


LenientNumber = Annotated[float | None, BeforeValidator(_lenient_number)]
LenientFlag = Annotated[bool | None, BeforeValidator(_lenient_flag)]


class StateSection(BaseModel):
    """Base class for state sections: frozen, closed and camelCase-aware."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class IncomeTargetsState(StateSection):
    mode: Literal["net", "gross"] = "net"
    basis: str = "year"
    year: LenientNumber = TARGET_NET_DEFAULT
    week: LenientNumber = 2000.0
    month: LenientNumber = 5000.0
    average_week: LenientNumber = round(TARGET_NET_DEFAULT / WEEKS_PER_YEAR, 2)
    average_month: LenientNumber = round(TARGET_NET_DEFAULT / MONTHS_PER_YEAR, 2)

    @field_validator("mode", mode="before")
    @classmethod
    def _normalise_mode(cls, value: Any) -> Any:
        return _normalise_choice(value)

    @field_validator("basis", mode="before")
    @classmethod
    def _resolve_basis_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            basis = value.strip()
            return BASIS_ALIASES.get(basis, basis)
        return value


class ModifiersState(StateSection):
    """Scenario levers; the unsuffixed names are legacy spellings."""

    comfort_margin_percent: LenientNumber = 10.0
    seasonality_percent: LenientNumber = 0.0
    travel_friction_percent: LenientNumber = 0.0
    hands_on_quota_percent: LenientNumber = 50.0
    comfort_margin: LenientNumber = None
    seasonality: LenientNumber = None
    travel_friction: LenientNumber = None
    hands_on_quota: LenientNumber = None


class CapacityState(StateSection):
    months_off: LenientNumber = 2.0
    weeks_off_cycle: LenientNumber = 1.0
    days_off_week: LenientNumber = 2.0
    utilization_percent: LenientNumber = 70.0
    travel_days_per_month: LenientNumber = None
    travel_days_per_cycle: LenientNumber = None
    travel_days_per_year: LenientNumber = None


class CostsState(StateSection):
    tax_rate_percent: LenientNumber = 40.0
    vat_rate_percent: LenientNumber = 21.0
    buffer_percent: LenientNumber = 15.0
    fixed_costs: LenientNumber = 25140.0
    fixed_cost_breakdown: dict[str, LenientNumber] | None = None
    variable_cost_per_working_day: LenientNumber = None
    variable_cost_per_class: LenientNumber = 0.0
    variable_cost_per_billable_day: LenientNumber = None
    travel_cost_per_day: LenientNumber = None
    travel_allowance_per_day: LenientNumber = None
    variable_costs_annual: LenientNumber = None
    additional_variable_annual: LenientNumber = None


class TaxState(StateSection):
    mode: Literal["simple", "dutch2025"] = "simple"
    zelfstandigenaftrek: LenientFlag = True
    startersaftrek: LenientFlag = False
    mkb_vrijstelling: LenientFlag = True
    include_zvw: LenientFlag = True

    @field_validator("mode", mode="before")
    @classmethod
    def _normalise_mode(cls, value: Any) -> Any:
        return _normalise_choice(value)


class PricingFencesState(StateSection):
    min: LenientNumber = None
    target: LenientNumber = None
    stretch: LenientNumber = None


class ServiceSettings(StateSection):
    """Caller overrides for one catalogue service.

    Every field is optional; unset fields fall back to the catalogue defaults.
    Legacy spellings (``capacity_share``, ``cost_per_unit``, ``rate_locked``,
    ``volume_locked``) are honoured after their canonical counterparts.
    """

    share_of_capacity: LenientNumber = None
    capacity_share: LenientNumber = None
    days_per_unit: LenientNumber = None
    hours_per_unit: LenientNumber = None
    units_per_month: LenientNumber = None
    units_per_year: LenientNumber = None
    base_price: LenientNumber = None
    price_per_unit: LenientNumber = None
    price_per_unit_override: LenientNumber = None
    locked_price_per_unit: LenientNumber = None
    fixed_price_per_unit: LenientNumber = None
    buffer_override: LenientNumber = None
    direct_cost_per_unit: LenientNumber = None
    cost_per_unit: LenientNumber = None
    fixed_cost_share: LenientNumber = None
    variable_cost_share: LenientNumber = None
    target_net_share: LenientNumber = None
    target_net: LenientNumber = None
    tax_rate: LenientNumber = None
    travel_days_per_unit: LenientNumber = None
    travel_hours_per_unit: LenientNumber = None
    locked_rate: LenientFlag = None
    rate_locked: LenientFlag = None
    locked_volume: LenientFlag = None
    volume_locked: LenientFlag = None
    lock: str | None = None
    lock_mode: str | None = None
    hands_on: LenientFlag = None
    hands_on_weight: LenientNumber = None
    min_price_per_unit: LenientNumber = None
    max_price_per_unit: LenientNumber = None
    comfort_buffer: LenientNumber = None
    pricing_fences: PricingFencesState | None = None


class CalendarConfig(StateSection):
    months_per_year: int = MONTHS_PER_YEAR
    weeks_per_year: int = WEEKS_PER_YEAR
    weeks_per_cycle: int = WEEKS_PER_CYCLE
    base_work_days_per_week: int = BASE_WORK_DAYS_PER_WEEK


class TargetConfig(StateSection):
    modes: tuple[str, ...] = TARGET_INCOME_MODES
    basis_values: tuple[str, ...] = TARGET_NET_BASIS_VALUES
    default_net: float = TARGET_NET_DEFAULT


class IncomeTargetDefaultsState(StateSection):
    """Per-basis defaults recomputed from capacity after every mutation."""

    year: LenientNumber = None
    week: LenientNumber = None
    month: LenientNumber = None
    average_week: LenientNumber = None
    average_month: LenientNumber = None


class ConfigDefaults(StateSection):
    income_targets: IncomeTargetDefaultsState = Field(
        default_factory=IncomeTargetDefaultsState
    )


class ConfigState(StateSection):
    currency_symbol: str = "€"
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    targets: TargetConfig = Field(default_factory=TargetConfig)
    defaults: ConfigDefaults = Field(default_factory=ConfigDefaults)


class PlannerState(StateSection):
    """Complete, versioned planner state."""

    version: int = STATE_VERSION
    income_targets: IncomeTargetsState = Field(default_factory=IncomeTargetsState)
    modifiers: ModifiersState = Field(default_factory=ModifiersState)
    session_length: LenientNumber = DEFAULT_SESSION_LENGTH
    capacity: CapacityState = Field(default_factory=CapacityState)
    costs: CostsState = Field(default_factory=CostsState)
    tax: TaxState = Field(default_factory=TaxState)
    services: dict[str, ServiceSettings] = Field(default_factory=dict)
    config: ConfigState = Field(default_factory=ConfigState)


def initial_state() -> PlannerState:
    """Return a fresh copy of the template every store starts from."""

    return PlannerState()


__all__ = [
    "CalendarConfig",
    "CapacityState",
    "ConfigDefaults",
    "ConfigState",
    "CostsState",
    "IncomeTargetDefaultsState",
    "IncomeTargetsState",
    "LenientFlag",
    "LenientNumber",
    "ModifiersState",
    "PlannerState",
    "PricingFencesState",
    "STATE_VERSION",
    "ServiceSettings",
    "StateError",
    "StateSection",
    "TargetConfig",
    "TaxState",
    "initial_state",
]
