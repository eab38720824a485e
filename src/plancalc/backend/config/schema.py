"""Pydantic models describing the service catalogue and tax regime files."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class PricingFences(ImmutableModel):
    """Minimum, target and stretch price per unit for a service."""

    min: float = Field(ge=0)
    target: float = Field(ge=0)
    stretch: float = Field(ge=0)

    @model_validator(mode="after")
    def _validate_order(self) -> Self:
        if not self.min <= self.target <= self.stretch:
            raise ConfigurationError(
                "Pricing fences must satisfy min <= target <= stretch"
            )
        return self


class ServiceCopy(ImmutableModel):
    """Display copy for a catalogue entry."""

    title: str
    subtitle: str | None = None
    description: str | None = None


class ServiceDefaults(ImmutableModel):
    """Default economics for a service before caller overrides are applied."""

    share_of_capacity: float = Field(ge=0, le=1)
    days_per_unit: float = Field(gt=0)
    base_price: float = Field(ge=0)
    direct_cost_per_unit: float = Field(default=0.0, ge=0)
    fixed_cost_share: float | None = Field(default=None, ge=0, le=1)
    variable_cost_share: float | None = Field(default=None, ge=0, le=1)
    target_net_share: float | None = Field(default=None, ge=0, le=1)
    travel_days_per_unit: float = Field(default=0.0, ge=0)
    travel_hours_per_unit: float = Field(default=0.0, ge=0)
    hours_per_unit: float | None = Field(default=None, gt=0)
    locked_rate: bool = False
    locked_volume: bool = False
    hands_on: bool = False
    hands_on_weight: float | None = Field(default=None, ge=0, le=1)
    pricing_fences: PricingFences | None = None


class ServiceBlueprint(ImmutableModel):
    """Catalogue entry combining identifiers, copy and default economics."""

    id: str
    archetype: str | None = None
    display: ServiceCopy = Field(alias="copy")
    defaults: ServiceDefaults

    @field_validator("id")
    @classmethod
    def _validate_identifier(cls, value: str) -> str:
        identifier = value.strip()
        if not identifier:
            raise ConfigurationError("Service identifiers must be non-empty")
        return identifier


class ServiceCatalog(ImmutableModel):
    """Ordered collection of service blueprints."""

    services: Sequence[ServiceBlueprint]

    @model_validator(mode="after")
    def _validate_unique_ids(self) -> Self:
        seen: set[str] = set()
        for blueprint in self.services:
            if blueprint.id in seen:
                raise ConfigurationError(
                    f"Duplicate service id '{blueprint.id}' declared in the catalogue"
                )
            seen.add(blueprint.id)
        return self

    @computed_field
    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(blueprint.id for blueprint in self.services)

    def get(self, service_id: str) -> ServiceBlueprint:
        for blueprint in self.services:
            if blueprint.id == service_id:
                return blueprint
        raise KeyError(service_id)


class TaxBracket(ImmutableModel):
    """Represents a single progressive tax bracket."""

    upper_bound: float | None = Field(default=None, alias="upper")
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> Self:
        if self.rate < 0 or self.rate > 1:
            raise ConfigurationError("Tax rates must be between 0 and 1")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ConfigurationError("Upper bounds must be positive values")
        return self


class SolverSettings(ImmutableModel):
    """Tuning for the profit-before-tax bisection."""

    epsilon: float = Field(default=0.5, gt=0)
    max_iterations: int = Field(default=60, gt=0)
    expansion_limit: int = Field(default=25, gt=0)


class TaxRegimeConfig(ImmutableModel):
    """Structured representation of a progressive tax regime."""

    id: str
    label: str
    year: int
    zelfstandigenaftrek: float = Field(ge=0)
    startersaftrek: float = Field(ge=0)
    mkb_vrijstelling_rate: float = Field(ge=0, le=1)
    zvw_rate: float = Field(ge=0, le=1)
    zvw_maximum_income: float = Field(gt=0)
    brackets: Sequence[TaxBracket]
    solver: SolverSettings = Field(default_factory=SolverSettings)

    @model_validator(mode="after")
    def _validate_brackets(self) -> Self:
        if not self.brackets:
            raise ConfigurationError("At least one tax bracket must be defined")
        last_upper: float | None = None
        for bracket in self.brackets:
            upper = bracket.upper_bound
            if last_upper is not None and upper is not None and upper <= last_upper:
                raise ConfigurationError("Tax brackets must be in ascending order")
            last_upper = upper if upper is not None else last_upper
        if self.brackets[-1].upper_bound is not None:
            raise ConfigurationError("Final tax bracket must have an open upper bound")
        return self


class TaxRegimeEntry(ImmutableModel):
    """Manifest entry pointing at a tax regime file."""

    id: str
    filename: str | None = None
    status: str = "active"

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.id}.yaml"


class CatalogManifest(ImmutableModel):
    """Manifest describing the catalogue and tax regime files on disk."""

    services_file: str = "services.yaml"
    tax_regimes: Sequence[TaxRegimeEntry] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def _coerce_regimes(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Manifest must define a mapping at the top level")
        prepared = dict(data)
        if prepared.get("tax_regimes") is None:
            prepared["tax_regimes"] = []
        return prepared

    @model_validator(mode="after")
    def _validate_regimes(self) -> Self:
        seen: set[str] = set()
        for entry in self.tax_regimes:
            if entry.id in seen:
                raise ConfigurationError(
                    f"Duplicate tax regime '{entry.id}' declared in the manifest"
                )
            seen.add(entry.id)
        return self

    def get_entry(self, regime_id: str) -> TaxRegimeEntry:
        for entry in self.tax_regimes:
            if entry.id == regime_id:
                return entry
        raise KeyError(regime_id)

    @computed_field
    @property
    def regime_ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.tax_regimes)


__all__ = [
    "CatalogManifest",
    "ConfigurationError",
    "ImmutableModel",
    "PricingFences",
    "ServiceBlueprint",
    "ServiceCatalog",
    "ServiceCopy",
    "ServiceDefaults",
    "SolverSettings",
    "TaxBracket",
    "TaxRegimeConfig",
    "TaxRegimeEntry",
    "ValidationError",
]
