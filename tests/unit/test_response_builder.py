"""Unit tests for response formatting helpers."""

from __future__ import annotations

from flask import Flask

from plancalc.backend.app.models import CostLine, initial_state
from plancalc.backend.services.response_builder import build_json_response, to_payload


def test_build_json_response_returns_json(app: Flask) -> None:
    with app.app_context():
        response, status = build_json_response({"foo": "bar"})

    assert status == 200
    assert response.get_json() == {"foo": "bar"}


def test_build_json_response_honours_status(app: Flask) -> None:
    with app.app_context():
        _, status = build_json_response({}, status=201)

    assert status == 201


def test_to_payload_serialises_models_and_dataclasses() -> None:
    payload = to_payload({"state": initial_state(), "line": CostLine(annual=12.0, monthly=1.0)})

    assert payload["line"] == {"annual": 12.0, "monthly": 1.0}
    assert payload["state"]["capacity"]["months_off"] == 2.0
    assert payload["state"]["config"]["targets"]["modes"] == ["net", "gross"]
