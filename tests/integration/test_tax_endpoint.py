"""Integration tests for the tax reserve endpoint."""

from http import HTTPStatus

import pytest
from flask.testing import FlaskClient


def test_simple_reserve(client: FlaskClient) -> None:
    response = client.get("/api/v1/tax/reserve")

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["mode"] == "simple"
    assert payload["tax_reserve"] == pytest.approx(50_000 / 0.6 - 50_000)


def test_dutch_reserve_after_switching_mode(client: FlaskClient) -> None:
    client.patch("/api/v1/state", json={"tax": {"mode": "dutch2025", "startersaftrek": True}})

    payload = client.get("/api/v1/tax/reserve").get_json()

    assert payload["mode"] == "dutch2025"
    assert payload["startersaftrek"] > 0
    assert payload["profit_before_tax"] - payload["tax_reserve"] == pytest.approx(50_000, abs=0.5)
