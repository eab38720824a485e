"""REST endpoints for reading and mutating the planner state."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from plancalc.backend.app.http import get_store
from plancalc.backend.services import build_json_response, parse_json_object

blueprint = Blueprint("state", __name__, url_prefix="/api/v1/state")


def _snapshot(*, include_derived: bool) -> dict[str, Any]:
    store = get_store()
    payload: dict[str, Any] = {"state": store.get()}
    if include_derived:
        payload["derived"] = store.get_derived()
    return payload


@blueprint.get("")
def read_state() -> tuple[Any, int]:
    return build_json_response(_snapshot(include_derived=False))


@blueprint.put("")
def replace_state() -> tuple[Any, int]:
    """Replace the whole state with the submitted JSON object."""

    get_store().set(parse_json_object(request))
    return build_json_response(_snapshot(include_derived=True))


@blueprint.patch("")
def patch_state() -> tuple[Any, int]:
    """Deep-merge the submitted JSON object into the current state."""

    get_store().patch(parse_json_object(request))
    return build_json_response(_snapshot(include_derived=True))


@blueprint.get("/derived")
def read_derived() -> tuple[Any, int]:
    return build_json_response(get_store().get_derived())
