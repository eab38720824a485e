"""Planner store: the single source of truth for state and derived metrics.

Every mutation goes through :meth:`PlannerStore.set` or
:meth:`PlannerStore.patch`. Both replace the whole state value, rerun the
derivation pipeline (capacity, then costs, then income target defaults and
targets) and notify subscribers with the committed state and snapshot.
Service economics and the tax reserve are not part of the snapshot; they are
computed on demand through the read helpers.

A subscriber may mutate the store while it is being notified. The mutation is
committed straight away, but its notification is queued behind the round in
progress, so listeners are never re-entered and always finish on the latest
state.
"""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from plancalc.backend.app.models import (
    CapacityMetrics,
    ConfigDefaults,
    DerivedState,
    IncomeTargetDefaults,
    IncomeTargetDefaultsState,
    MixOptimization,
    PlannerState,
    StateError,
    TaxReserve,
    build_state,
    initial_state,
    merge_state,
)
from plancalc.backend.config.catalog import ServiceCatalog, load_service_catalog

from .calculators import (
    ServiceDescriptor,
    apply_modifier_defaults,
    build_service_descriptors,
    calculate_tax_reserve,
    clamp,
    compute_costs,
    derive_capacity,
    derive_income_targets,
    derive_target_net_defaults,
    evaluate_services,
    is_truthy_flag,
    modifier_range,
    optimize_service_mix,
    to_number,
)
from .calculators.constants import (
    BASE_WORK_DAYS_PER_WEEK,
    BASIS_ALIASES,
    DEFAULT_SESSION_LENGTH,
    MONTHS_PER_YEAR,
    SESSION_LENGTH_RANGE,
    TARGET_INCOME_MODES,
    TARGET_NET_BASIS_VALUES,
    TAX_MODE_VALUES,
    WEEKS_PER_CYCLE,
)
from .calculators.optimizer import DEFAULT_MAX_CANDIDATES

_LOGGER = logging.getLogger(__name__)

MAX_NOTIFICATION_ROUNDS = 32

Listener = Callable[[PlannerState, DerivedState], None]

_INCOME_VALUE_KEYS = {
    "year": "year",
    "week": "week",
    "month": "month",
    "average_week": "average_week",
    "averageWeek": "average_week",
    "avgWeek": "average_week",
    "average_month": "average_month",
    "averageMonth": "average_month",
    "avgMonth": "average_month",
}


class ReentrancyError(RuntimeError):
    """Raised when listeners keep mutating the store without settling."""


def _profiling_enabled() -> bool:
    """Return ``True`` when derivation profiling should be captured."""

    flag = os.getenv("PLANCALC_PROFILE_DERIVATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None) -> Iterator[None]:
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _with_income_defaults(
    state: PlannerState, defaults: IncomeTargetDefaults
) -> PlannerState:
    refreshed = IncomeTargetDefaultsState(**defaults.to_dict())
    if state.config.defaults.income_targets == refreshed:
        return state
    config = state.config.model_copy(
        update={"defaults": ConfigDefaults(income_targets=refreshed)}
    )
    return state.model_copy(update={"config": config})


def run_pipeline(state: PlannerState) -> tuple[PlannerState, DerivedState]:
    """Derive the full snapshot for ``state``.

    The returned state carries the refreshed income target defaults under
    ``config.defaults.income_targets``.
    """

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    with _profile_section("capacity", timings):
        capacity = derive_capacity(state.capacity, state.modifiers, state.session_length)
    with _profile_section("costs", timings):
        costs = compute_costs(state, capacity)
    with _profile_section("income_defaults", timings):
        state = _with_income_defaults(state, derive_target_net_defaults(capacity))
    with _profile_section("income_targets", timings):
        income_targets = derive_income_targets(state, capacity)

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "Derivation timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    return state, DerivedState(
        capacity=capacity, costs=costs, income_targets=income_targets
    )


class PlannerStore:
    """Holds one planner state, its derived snapshot and the subscribers."""

    def __init__(
        self,
        initial: PlannerState | Mapping[str, Any] | None = None,
        *,
        catalog: ServiceCatalog | None = None,
        descriptors: Sequence[ServiceDescriptor] | None = None,
    ) -> None:
        self._catalog = catalog
        self._descriptors = tuple(descriptors) if descriptors is not None else None
        self._listeners: list[Listener] = []
        self._notifying = False
        self._pending = False
        state = initial_state() if initial is None else build_state(initial)
        self._state, self._derived = run_pipeline(state)

    # -- core API ---------------------------------------------------------

    def get(self) -> PlannerState:
        """Return the live state.

        Attribute assignment is rejected, but the ``services`` and
        ``costs.fixed_cost_breakdown`` maps are plain dicts shared with the
        store. Change state through :meth:`patch` or :meth:`set`, never by
        writing into those maps.
        """

        return self._state

    def get_derived(self) -> DerivedState:
        return copy.deepcopy(self._derived)

    def set(self, next_state: PlannerState | Mapping[str, Any]) -> PlannerState:
        """Replace the whole state with a detached copy of ``next_state``."""

        return self._commit(build_state(next_state))

    def patch(self, partial: Any) -> PlannerState:
        """Deep-merge ``partial`` into the state, all or nothing."""

        return self._commit(merge_state(self._state, partial))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: PlannerState) -> PlannerState:
        self._state, self._derived = run_pipeline(state)
        self._notify()
        return self._state

    def _notify(self) -> None:
        if self._notifying:
            self._pending = True
            return

        self._notifying = True
        rounds = 0
        try:
            while True:
                self._pending = False
                rounds += 1
                if rounds > MAX_NOTIFICATION_ROUNDS:
                    raise ReentrancyError(
                        f"Listeners kept mutating the store after {MAX_NOTIFICATION_ROUNDS} "
                        "notification rounds"
                    )
                state, derived = self._state, self._derived
                for listener in list(self._listeners):
                    listener(state, derived)
                if not self._pending:
                    break
        finally:
            self._notifying = False
            self._pending = False

    # -- convenience setters ----------------------------------------------

    @staticmethod
    def _parse(
        raw: Any,
        fallback: float | None,
        minimum: float = float("-inf"),
        maximum: float = float("inf"),
    ) -> float:
        value = to_number(raw, fallback if fallback is not None else 0.0)
        return clamp(value, minimum, maximum)

    def _patch_leaf(self, section: str, key: str, value: Any) -> Any:
        self.patch({section: {key: value}})
        return value

    def set_target_net_basis(self, basis: Any) -> str:
        """Select the authoritative basis; unknown values leave it unchanged."""

        if isinstance(basis, str):
            candidate = BASIS_ALIASES.get(basis.strip(), basis.strip())
            if candidate in TARGET_NET_BASIS_VALUES:
                self._patch_leaf("income_targets", "basis", candidate)
        return self._state.income_targets.basis

    def set_income_target_mode(self, mode: Any) -> str:
        normalised = mode.strip().lower() if isinstance(mode, str) else None
        if normalised not in TARGET_INCOME_MODES:
            normalised = TARGET_INCOME_MODES[0]
        return self._patch_leaf("income_targets", "mode", normalised)

    def set_income_target_value(self, key: str, raw: Any) -> float:
        field_name = _INCOME_VALUE_KEYS.get(key)
        if field_name is None:
            raise StateError(f"Unknown income target '{key}'")
        defaults = self._state.config.defaults.income_targets
        fallback = getattr(defaults, field_name)
        if fallback is None:
            fallback = getattr(self._state.income_targets, field_name)
        value = max(self._parse(raw, fallback or 0.0), 0.0)
        return self._patch_leaf("income_targets", field_name, value)

    def _set_capacity(self, key: str, raw: Any, maximum: float) -> CapacityMetrics:
        current = getattr(self._state.capacity, key)
        self._patch_leaf("capacity", key, self._parse(raw, current or 0.0, 0.0, maximum))
        return self.capacity_metrics()

    def set_months_off(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("months_off", raw, MONTHS_PER_YEAR)

    def set_weeks_off_cycle(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("weeks_off_cycle", raw, WEEKS_PER_CYCLE)

    def set_days_off_week(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("days_off_week", raw, BASE_WORK_DAYS_PER_WEEK)

    def set_utilization_percent(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("utilization_percent", raw, 100.0)

    def set_travel_days_per_month(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("travel_days_per_month", raw, BASE_WORK_DAYS_PER_WEEK * 4)

    def set_travel_days_per_cycle(self, raw: Any) -> CapacityMetrics:
        return self._set_capacity("travel_days_per_cycle", raw, BASE_WORK_DAYS_PER_WEEK)

    def set_session_length(self, raw: Any) -> float:
        current = self._state.session_length
        fallback = current if current is not None else DEFAULT_SESSION_LENGTH
        minimum, maximum = SESSION_LENGTH_RANGE
        value = self._parse(raw, fallback, minimum, maximum)
        self.patch({"session_length": value})
        return value

    def set_tax_mode(self, mode: Any) -> str:
        normalised = mode.strip().lower() if isinstance(mode, str) else None
        if normalised not in TAX_MODE_VALUES:
            normalised = TAX_MODE_VALUES[0]
        return self._patch_leaf("tax", "mode", normalised)

    def set_zelfstandigenaftrek_enabled(self, raw: Any) -> bool:
        return self._patch_leaf("tax", "zelfstandigenaftrek", is_truthy_flag(raw))

    def set_startersaftrek_enabled(self, raw: Any) -> bool:
        return self._patch_leaf("tax", "startersaftrek", is_truthy_flag(raw))

    def set_mkb_vrijstelling_enabled(self, raw: Any) -> bool:
        return self._patch_leaf("tax", "mkb_vrijstelling", is_truthy_flag(raw))

    def set_include_zvw_enabled(self, raw: Any) -> bool:
        return self._patch_leaf("tax", "include_zvw", is_truthy_flag(raw))

    def _set_cost(self, key: str, raw: Any, default: float, maximum: float) -> float:
        current = getattr(self._state.costs, key)
        fallback = current if current is not None else default
        return self._patch_leaf("costs", key, self._parse(raw, fallback, 0.0, maximum))

    def set_tax_rate_percent(self, raw: Any) -> float:
        return self._set_cost("tax_rate_percent", raw, 40.0, 99.9)

    def set_variable_cost_per_class(self, raw: Any) -> float:
        return self._set_cost("variable_cost_per_class", raw, 0.0, float("inf"))

    def set_vat_rate_percent(self, raw: Any) -> float:
        return self._set_cost("vat_rate_percent", raw, 21.0, float("inf"))

    def set_buffer_percent(self, raw: Any) -> float:
        return self._set_cost("buffer_percent", raw, 15.0, float("inf"))

    def set_currency_symbol(self, raw: Any) -> str:
        symbol = raw.strip() if isinstance(raw, str) else ""
        return self._patch_leaf("config", "currency_symbol", symbol or "€")

    def _set_modifier(self, key: str, raw: Any) -> float:
        current = getattr(self._state.modifiers, key)
        fallback = current if current is not None else apply_modifier_defaults(
            self._state.modifiers
        )[key]
        minimum, maximum = modifier_range(key)
        return self._patch_leaf("modifiers", key, self._parse(raw, fallback, minimum, maximum))

    def set_comfort_margin_percent(self, raw: Any) -> float:
        return self._set_modifier("comfort_margin_percent", raw)

    def set_seasonality_percent(self, raw: Any) -> float:
        return self._set_modifier("seasonality_percent", raw)

    def set_travel_friction_percent(self, raw: Any) -> float:
        return self._set_modifier("travel_friction_percent", raw)

    def set_hands_on_quota_percent(self, raw: Any) -> float:
        return self._set_modifier("hands_on_quota_percent", raw)

    def set_service_override(self, service_id: str, **values: Any) -> PlannerState:
        """Merge ``values`` into the overrides stored for ``service_id``."""

        self._require_service(service_id)
        return self.patch({"services": {service_id: values}})

    def clear_service_overrides(self, service_id: str) -> PlannerState:
        self._require_service(service_id)
        return self.patch({"services": {service_id: None}})

    # -- read helpers -----------------------------------------------------

    def capacity_metrics(self) -> CapacityMetrics:
        return copy.deepcopy(self._derived.capacity)

    def billable_hours(self) -> float:
        return self._derived.capacity.billable_hours_per_year

    def non_billable_share(self) -> float:
        return self._derived.capacity.non_billable_share

    def travel_days_per_year(self) -> float:
        return self._derived.capacity.travel_allowance_days

    def calendar_config(self) -> dict[str, Any]:
        return self._state.config.calendar.model_dump()

    def target_config(self) -> dict[str, Any]:
        return self._state.config.targets.model_dump()

    def service_catalog(self) -> ServiceCatalog:
        if self._catalog is None:
            self._catalog = load_service_catalog()
        return self._catalog

    @property
    def descriptors(self) -> tuple[ServiceDescriptor, ...]:
        if self._descriptors is None:
            self._descriptors = build_service_descriptors(self.service_catalog())
        return self._descriptors

    def service_ids(self) -> tuple[str, ...]:
        return tuple(descriptor.id for descriptor in self.descriptors)

    def _require_service(self, service_id: str) -> ServiceDescriptor:
        for descriptor in self.descriptors:
            if descriptor.id == service_id:
                return descriptor
        raise StateError(f"Unknown service '{service_id}'")

    def compute_services(self) -> dict[str, Any]:
        """Compute economics for every service against the current state."""

        return evaluate_services(
            self.descriptors, self._state, self._derived.capacity, self._derived.costs
        )

    def compute_service(self, service_id: str) -> Any:
        descriptor = self._require_service(service_id)
        return evaluate_services(
            (descriptor,), self._state, self._derived.capacity, self._derived.costs
        )[service_id]

    def tax_reserve(self) -> TaxReserve:
        return calculate_tax_reserve(
            self._state,
            self._derived.capacity,
            self._derived.costs,
            self._derived.income_targets,
        )

    def optimize_service_mix(
        self,
        *,
        multipliers: Sequence[float] | None = None,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ) -> MixOptimization:
        """Rank candidate service mixes against the current state."""

        return optimize_service_mix(
            self._state,
            multipliers=multipliers,
            max_candidates=max_candidates,
            descriptors=self.descriptors,
            capacity=self._derived.capacity,
            costs=self._derived.costs,
            income_targets=self._derived.income_targets,
        )


__all__ = [
    "Listener",
    "MAX_NOTIFICATION_ROUNDS",
    "PlannerStore",
    "ReentrancyError",
    "run_pipeline",
]
