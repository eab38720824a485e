"""REST endpoint for the tax reserve of the selected tax mode."""

from __future__ import annotations

from typing import Any

from flask import Blueprint

from plancalc.backend.app.http import get_store
from plancalc.backend.services import build_json_response

blueprint = Blueprint("tax", __name__, url_prefix="/api/v1/tax")


@blueprint.get("/reserve")
def read_tax_reserve() -> tuple[Any, int]:
    return build_json_response(get_store().tax_reserve())
