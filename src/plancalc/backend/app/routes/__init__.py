"""Blueprint registrations for application routes."""

from flask import Flask

from .config import blueprint as config_blueprint
from .services import blueprint as services_blueprint
from .state import blueprint as state_blueprint
from .tax import blueprint as tax_blueprint


def register_routes(app: Flask) -> None:
    """Register all Flask blueprints with the provided application."""

    app.register_blueprint(state_blueprint)
    app.register_blueprint(services_blueprint)
    app.register_blueprint(tax_blueprint)
    app.register_blueprint(config_blueprint)
