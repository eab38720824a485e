"""REST endpoints exposing per-service economics and overrides."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request
from werkzeug.exceptions import BadRequest

from plancalc.backend.app.http import get_store, unknown_service_response
from plancalc.backend.services import build_json_response, parse_json_object

blueprint = Blueprint("services", __name__, url_prefix="/api/v1/services")

MAX_MULTIPLIERS = 8


def _service_payload(service_id: str) -> dict[str, Any]:
    store = get_store()
    return {
        "id": service_id,
        "overrides": store.get().services.get(service_id),
        "result": store.compute_service(service_id),
    }


@blueprint.get("")
def list_services() -> tuple[Any, int]:
    """Compute economics for every catalogue service."""

    return build_json_response({"services": get_store().compute_services()})


@blueprint.get("/optimize")
def optimize_mix() -> tuple[Any, int]:
    """Rank service mixes; `?multipliers=0,1,1.5&max_candidates=3` narrow the search."""

    raw = request.args.get("multipliers", "")
    try:
        multipliers = [float(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise BadRequest("multipliers must be a comma-separated list of numbers") from exc
    if len(multipliers) > MAX_MULTIPLIERS:
        raise BadRequest(f"At most {MAX_MULTIPLIERS} multipliers are accepted")

    max_candidates = request.args.get("max_candidates", type=int)
    options: dict[str, Any] = {"multipliers": multipliers or None}
    if max_candidates is not None:
        options["max_candidates"] = max_candidates
    return build_json_response(get_store().optimize_service_mix(**options))


@blueprint.get("/<service_id>")
def read_service(service_id: str) -> tuple[Any, int]:
    if service_id not in get_store().service_ids():
        return unknown_service_response(service_id)
    return build_json_response(_service_payload(service_id))


@blueprint.put("/<service_id>/overrides")
def update_overrides(service_id: str) -> tuple[Any, int]:
    """Merge the submitted overrides into the service's stored settings."""

    if service_id not in get_store().service_ids():
        return unknown_service_response(service_id)
    get_store().set_service_override(service_id, **parse_json_object(request))
    return build_json_response(_service_payload(service_id))


@blueprint.delete("/<service_id>/overrides")
def clear_overrides(service_id: str) -> tuple[Any, int]:
    if service_id not in get_store().service_ids():
        return unknown_service_response(service_id)
    get_store().clear_service_overrides(service_id)
    return build_json_response(_service_payload(service_id))
