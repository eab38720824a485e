"""Expose configuration metadata consumed by the front-end.

The service catalogue and the tax regimes live in YAML files; these endpoints
let a client populate its forms without duplicating that data.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify

from plancalc.backend.app.http import get_store
from plancalc.backend.app.services.calculators.constants import (
    TARGET_INCOME_MODES,
    TARGET_NET_BASIS_VALUES,
    TAX_MODE_VALUES,
)
from plancalc.backend.config import available_tax_regimes
from plancalc.backend.config.schema import ServiceBlueprint
from plancalc.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    return {
        "version": get_project_version(),
        "tax_regimes": list(available_tax_regimes()),
        "tax_modes": list(TAX_MODE_VALUES),
    }


def _serialise_blueprint(service: ServiceBlueprint) -> dict[str, Any]:
    return {
        "id": service.id,
        "archetype": service.archetype,
        "copy": service.display.model_dump(mode="json"),
        "defaults": service.defaults.model_dump(mode="json", exclude_none=True),
    }


@blueprint.get("/meta")
def read_metadata():
    """Return version, tax regimes and the accepted target options."""

    payload = {
        **get_configuration_metadata(),
        "income_target_modes": list(TARGET_INCOME_MODES),
        "target_net_basis_values": list(TARGET_NET_BASIS_VALUES),
    }
    return jsonify(payload)


@blueprint.get("/services")
def read_service_catalog():
    catalog = get_store().service_catalog()
    return jsonify({"services": [_serialise_blueprint(item) for item in catalog.services]})
