"""Income target defaults and the authoritative annual target per basis."""

from __future__ import annotations

from typing import Any

from plancalc.backend.app.models.derived import (
    CapacityMetrics,
    IncomeTargetDefaults,
    IncomeTargetMetrics,
)

from .constants import (
    BASIS_ALIASES,
    MONTHS_PER_YEAR,
    TARGET_INCOME_MODES,
    TARGET_NET_BASIS_VALUES,
    TARGET_NET_DEFAULT,
    WEEKS_PER_YEAR,
)
from .utils import read_field, to_number


def derive_target_net_defaults(capacity: CapacityMetrics) -> IncomeTargetDefaults:
    """Spread the default annual net target over the capacity denominators."""

    working_weeks = capacity.working_weeks
    active_months = capacity.active_months
    return IncomeTargetDefaults(
        year=TARGET_NET_DEFAULT,
        week=TARGET_NET_DEFAULT / working_weeks if working_weeks > 0 else TARGET_NET_DEFAULT,
        month=TARGET_NET_DEFAULT / active_months if active_months > 0 else TARGET_NET_DEFAULT,
        average_week=TARGET_NET_DEFAULT / WEEKS_PER_YEAR,
        average_month=TARGET_NET_DEFAULT / MONTHS_PER_YEAR,
    )


def resolve_basis(raw: Any) -> str:
    """Return a canonical basis name, falling back to ``year``."""

    if isinstance(raw, str):
        basis = BASIS_ALIASES.get(raw.strip(), raw.strip())
        if basis in TARGET_NET_BASIS_VALUES:
            return basis
    return "year"


def resolve_income_mode(raw: Any) -> str:
    if isinstance(raw, str) and raw.strip().lower() in TARGET_INCOME_MODES:
        return raw.strip().lower()
    return TARGET_INCOME_MODES[0]


def _stored_defaults(state: Any) -> IncomeTargetDefaults | None:
    stored = read_field(read_field(read_field(state, "config"), "defaults"), "income_targets")
    values = {
        key: to_number(read_field(stored, key), None)
        for key in ("year", "week", "month", "average_week", "average_month")
    }
    if any(value is None for value in values.values()):
        return None
    return IncomeTargetDefaults(**values)


def annualise_target(
    basis: str,
    values: dict[str, float],
    capacity: CapacityMetrics,
) -> float:
    """Re-annualise the raw figure of ``basis``; zero denominators keep ``year``."""

    year = values["year"]
    if basis == "week":
        target = values["week"] * capacity.working_weeks if capacity.working_weeks > 0 else year
    elif basis == "month":
        target = values["month"] * capacity.active_months if capacity.active_months > 0 else year
    elif basis == "avgWeek":
        target = values["average_week"] * WEEKS_PER_YEAR
    elif basis == "avgMonth":
        target = values["average_month"] * MONTHS_PER_YEAR
    else:
        target = year
    return max(target, 0.0)


def derive_income_targets(state: Any, capacity: CapacityMetrics) -> IncomeTargetMetrics:
    """Resolve the income target for the selected basis and mode."""

    section = read_field(state, "income_targets")
    defaults = _stored_defaults(state) or derive_target_net_defaults(capacity)
    mode = resolve_income_mode(read_field(section, "mode"))
    basis = resolve_basis(read_field(section, "basis"))

    values = {
        key: max(to_number(read_field(section, key), 0.0) or 0.0, 0.0)
        for key in ("year", "week", "month", "average_week", "average_month")
    }
    target_annual = annualise_target(basis, values, capacity)

    has_working_weeks = capacity.working_weeks > 0
    has_active_months = capacity.active_months > 0

    return IncomeTargetMetrics(
        mode=mode,
        basis=basis,
        year=values["year"],
        week=values["week"],
        month=values["month"],
        average_week=values["average_week"],
        average_month=values["average_month"],
        target_annual=target_annual,
        target_per_week=target_annual / capacity.working_weeks if has_working_weeks else None,
        target_per_month=target_annual / capacity.active_months if has_active_months else None,
        target_average_per_week=target_annual / WEEKS_PER_YEAR,
        target_average_per_month=target_annual / MONTHS_PER_YEAR,
        target_net=target_annual if mode == "net" else None,
        target_gross=target_annual if mode == "gross" else None,
        has_working_weeks=has_working_weeks,
        has_active_months=has_active_months,
        defaults=defaults,
    )


__all__ = [
    "annualise_target",
    "derive_income_targets",
    "derive_target_net_defaults",
    "resolve_basis",
    "resolve_income_mode",
]
