"""Configuration loader wrapping the catalogue and tax regime schema models."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from .schema import (
    CatalogManifest,
    ConfigurationError,
    PricingFences,
    ServiceBlueprint,
    ServiceCatalog,
    ServiceCopy,
    ServiceDefaults,
    SolverSettings,
    TaxBracket,
    TaxRegimeConfig,
    TaxRegimeEntry,
)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"

_LOGGER = logging.getLogger(__name__)


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must define a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def load_manifest() -> CatalogManifest:
    """Load and cache the configuration manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Configuration manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return CatalogManifest.model_validate(raw_manifest)
    except ValidationError as error:
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


@lru_cache(maxsize=1)
def load_service_catalog() -> ServiceCatalog:
    """Load the service catalogue declared in the manifest."""

    catalog_file = CONFIG_DIRECTORY / load_manifest().services_file
    if not catalog_file.exists():
        raise FileNotFoundError(f"Service catalogue missing: {catalog_file.name}")

    raw_catalog = _load_yaml(catalog_file)

    try:
        catalog = ServiceCatalog.model_validate(raw_catalog)
    except ValidationError as error:
        raise ConfigurationError(f"Service catalogue validation failed: {error}") from error

    _LOGGER.debug("Loaded %d services from %s", len(catalog.services), catalog_file.name)
    return catalog


@lru_cache(maxsize=8)
def load_tax_regime(regime_id: str) -> TaxRegimeConfig:
    """Load configuration for the named tax regime from disk."""

    try:
        entry = load_manifest().get_entry(regime_id)
    except KeyError as exc:
        raise FileNotFoundError(
            f"Tax regime '{regime_id}' not declared in manifest"
        ) from exc

    regime_file = CONFIG_DIRECTORY / entry.resolved_filename
    if not regime_file.exists():
        raise FileNotFoundError(
            f"Configuration file for tax regime '{regime_id}' missing: {regime_file.name}"
        )

    raw_regime = _load_yaml(regime_file)
    raw_regime.setdefault("id", regime_id)

    try:
        regime = TaxRegimeConfig.model_validate(raw_regime)
    except ValidationError as error:
        raise ConfigurationError(
            f"Tax regime validation failed for {regime_id}: {error}"
        ) from error

    if regime.id != regime_id:
        raise ConfigurationError(
            f"Tax regime id mismatch: expected {regime_id}, found {regime.id}"
        )

    return regime


def available_tax_regimes() -> Sequence[str]:
    """Return the tax regime identifiers declared in the manifest."""

    return load_manifest().regime_ids


def clear_caches() -> None:
    """Drop cached configuration so the next load re-reads the YAML files."""

    load_manifest.cache_clear()
    load_service_catalog.cache_clear()
    load_tax_regime.cache_clear()


__all__ = [
    "CONFIG_DIRECTORY",
    "CatalogManifest",
    "ConfigurationError",
    "MANIFEST_FILE",
    "PricingFences",
    "ServiceBlueprint",
    "ServiceCatalog",
    "ServiceCopy",
    "ServiceDefaults",
    "SolverSettings",
    "TaxBracket",
    "TaxRegimeConfig",
    "TaxRegimeEntry",
    "available_tax_regimes",
    "clear_caches",
    "load_manifest",
    "load_service_catalog",
    "load_tax_regime",
]
