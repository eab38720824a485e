"""Typed state models and derived-result containers shared across the planner.

The planner state is a tree of frozen Pydantic sections so every mutation is
validated against one known shape, while the derivers return lightweight
frozen dataclasses. Centralising both here keeps the store, the derivation
pipeline and the HTTP serialisation in sync.
"""

from __future__ import annotations

from .derived import (
    CapacityMetrics,
    CostLine,
    CostMetrics,
    CostTotals,
    DerivedState,
    HourlyCostLine,
    IncomeTargetDefaults,
    IncomeTargetMetrics,
    MixCandidate,
    MixConstraints,
    MixOptimization,
    MixSummary,
    MixTotals,
    MixViolation,
    PricingFenceStatus,
    RateTarget,
    ScenarioModifiers,
    ServiceHours,
    ServiceOption,
    ServiceResult,
    ServiceRevenue,
    ServiceTargets,
    TaxBreakdown,
    TaxReserve,
    TravelCostLine,
    VariableCostBreakdown,
    VolumeTarget,
)
from .merge import UNSET, build_state, format_state_error, merge_patch, merge_state
from .state import (
    CalendarConfig,
    CapacityState,
    ConfigDefaults,
    ConfigState,
    CostsState,
    IncomeTargetDefaultsState,
    IncomeTargetsState,
    ModifiersState,
    PlannerState,
    STATE_VERSION,
    ServiceSettings,
    StateError,
    TargetConfig,
    TaxState,
    initial_state,
)

__all__ = [
    "CalendarConfig",
    "CapacityMetrics",
    "CapacityState",
    "ConfigDefaults",
    "ConfigState",
    "CostLine",
    "CostMetrics",
    "CostTotals",
    "CostsState",
    "DerivedState",
    "HourlyCostLine",
    "IncomeTargetDefaults",
    "IncomeTargetDefaultsState",
    "IncomeTargetMetrics",
    "IncomeTargetsState",
    "MixCandidate",
    "MixConstraints",
    "MixOptimization",
    "MixSummary",
    "MixTotals",
    "MixViolation",
    "ModifiersState",
    "PlannerState",
    "PricingFenceStatus",
    "RateTarget",
    "STATE_VERSION",
    "ScenarioModifiers",
    "ServiceHours",
    "ServiceOption",
    "ServiceResult",
    "ServiceRevenue",
    "ServiceSettings",
    "ServiceTargets",
    "StateError",
    "TargetConfig",
    "TaxBreakdown",
    "TaxReserve",
    "TaxState",
    "TravelCostLine",
    "UNSET",
    "VariableCostBreakdown",
    "VolumeTarget",
    "build_state",
    "format_state_error",
    "initial_state",
    "merge_patch",
    "merge_state",
]
