"""Test configuration utilities and shared fixtures."""

import sys
from pathlib import Path

# Ensure the ``src`` directory is importable when tests run without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402
from flask import Flask  # noqa: E402
from flask.testing import FlaskClient  # noqa: E402

from plancalc.backend.app import create_app  # noqa: E402
from plancalc.backend.app.services.store import PlannerStore  # noqa: E402


@pytest.fixture()
def store() -> PlannerStore:
    """Return a store seeded with the default planner state."""

    return PlannerStore()


@pytest.fixture()
def app(store: PlannerStore) -> Flask:
    """Return a configured Flask application bound to ``store``."""

    application = create_app(store)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Provide a test client bound to the configured Flask app."""

    return app.test_client()
