"""YAML-backed configuration for the service catalogue and tax regimes."""

from .catalog import (
    ConfigurationError,
    available_tax_regimes,
    clear_caches,
    load_manifest,
    load_service_catalog,
    load_tax_regime,
)

__all__ = [
    "ConfigurationError",
    "available_tax_regimes",
    "clear_caches",
    "load_manifest",
    "load_service_catalog",
    "load_tax_regime",
]
