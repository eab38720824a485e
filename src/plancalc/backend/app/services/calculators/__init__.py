"""Pure derivation helpers for capacity, costs, income targets and services."""

from .utils import (
    calculate_progressive_tax,
    clamp,
    finite_or_zero,
    is_truthy_flag,
    normalize_percent,
    read_field,
    round_units,
    safe_divide,
    to_number,
    to_positive,
)
from .modifiers import (
    DEFAULT_MODIFIERS,
    MODIFIER_SPECS,
    apply_modifier_defaults,
    modifier_range,
    normalize_scenario_modifiers,
)
from .capacity import derive_capacity, resolve_session_length
from .costs import (
    aggregate_cost_totals,
    compute_costs,
    compute_variable_cost_totals,
    sum_fixed_costs,
)
from .income import (
    derive_income_targets,
    derive_target_net_defaults,
    resolve_basis,
    resolve_income_mode,
)
from .tax_reserve import (
    TaxSettings,
    calculate_tax_reserve,
    compute_tax_breakdown,
    resolve_tax_mode,
    resolve_tax_settings,
    solve_tax_breakdown,
)
from .service_economics import (
    ServiceDescriptor,
    build_service_descriptors,
    compute_service,
    compute_service_hours,
    compute_service_revenue,
    evaluate_services,
    is_rate_locked,
    is_volume_locked,
    merge_service_config,
    solve_service_rate_target,
    solve_service_volume_target,
)
from .optimizer import (
    DEFAULT_MULTIPLIERS,
    build_unit_range,
    optimize_service_mix,
    resolve_hands_on_weight,
)

__all__ = [
    "DEFAULT_MODIFIERS",
    "DEFAULT_MULTIPLIERS",
    "MODIFIER_SPECS",
    "ServiceDescriptor",
    "TaxSettings",
    "aggregate_cost_totals",
    "apply_modifier_defaults",
    "build_service_descriptors",
    "build_unit_range",
    "calculate_progressive_tax",
    "calculate_tax_reserve",
    "clamp",
    "compute_costs",
    "compute_service",
    "compute_service_hours",
    "compute_service_revenue",
    "compute_tax_breakdown",
    "compute_variable_cost_totals",
    "derive_capacity",
    "derive_income_targets",
    "derive_target_net_defaults",
    "evaluate_services",
    "finite_or_zero",
    "is_rate_locked",
    "is_truthy_flag",
    "is_volume_locked",
    "merge_service_config",
    "modifier_range",
    "normalize_percent",
    "normalize_scenario_modifiers",
    "optimize_service_mix",
    "read_field",
    "resolve_basis",
    "resolve_hands_on_weight",
    "resolve_income_mode",
    "resolve_session_length",
    "resolve_tax_mode",
    "resolve_tax_settings",
    "round_units",
    "safe_divide",
    "solve_service_rate_target",
    "solve_service_volume_target",
    "solve_tax_breakdown",
    "sum_fixed_costs",
    "to_number",
    "to_positive",
]
