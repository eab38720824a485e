"""Normalise scenario modifiers into bounded percents and rates."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, NamedTuple

from plancalc.backend.app.models.derived import ScenarioModifiers

from .utils import normalize_percent


class ModifierSpec(NamedTuple):
    canonical: str
    legacy: str
    default: float
    minimum: float
    maximum: float


# Resolution order for every lever: canonical key, then legacy key, then default.
MODIFIER_SPECS: tuple[ModifierSpec, ...] = (
    ModifierSpec("comfort_margin_percent", "comfort_margin", 10.0, 0.0, 60.0),
    ModifierSpec("seasonality_percent", "seasonality", 0.0, 0.0, 75.0),
    ModifierSpec("travel_friction_percent", "travel_friction", 0.0, 0.0, 150.0),
    ModifierSpec("hands_on_quota_percent", "hands_on_quota", 50.0, 0.0, 100.0),
)

DEFAULT_MODIFIERS: Mapping[str, float] = {
    spec.canonical: spec.default for spec in MODIFIER_SPECS
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _read(raw: Any, key: str) -> Any:
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        value = raw.get(key)
        if value is None:
            value = raw.get(_camel(key))
        return value
    return getattr(raw, key, None)


def resolve_modifier(raw: Any, spec: ModifierSpec) -> float:
    """Return the bounded percent for one lever."""

    value = _read(raw, spec.canonical)
    if value is None:
        value = _read(raw, spec.legacy)
    return normalize_percent(value, spec.default, spec.minimum, spec.maximum)


def modifier_range(key: str) -> tuple[float, float]:
    for spec in MODIFIER_SPECS:
        if key in (spec.canonical, spec.legacy):
            return spec.minimum, spec.maximum
    raise KeyError(key)


def normalize_scenario_modifiers(raw: Any = None) -> ScenarioModifiers:
    """Normalise a modifiers section, mapping or ``None`` into percents and rates."""

    comfort, seasonality, friction, hands_on = (
        resolve_modifier(raw, spec) for spec in MODIFIER_SPECS
    )
    return ScenarioModifiers(
        comfort_margin_percent=comfort,
        comfort_margin=comfort / 100,
        seasonality_percent=seasonality,
        seasonality=seasonality / 100,
        travel_friction_percent=friction,
        travel_friction=friction / 100,
        hands_on_quota_percent=hands_on,
        hands_on_quota=hands_on / 100,
    )


def apply_modifier_defaults(raw: Any = None) -> dict[str, float]:
    """Return the canonical percent mapping with defaults filled in."""

    return {spec.canonical: resolve_modifier(raw, spec) for spec in MODIFIER_SPECS}


__all__ = [
    "DEFAULT_MODIFIERS",
    "MODIFIER_SPECS",
    "ModifierSpec",
    "apply_modifier_defaults",
    "modifier_range",
    "normalize_scenario_modifiers",
    "resolve_modifier",
]
