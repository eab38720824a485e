"""Problem payloads and store access shared by the Flask blueprints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import current_app, jsonify

from .services.store import PlannerStore

STORE_EXTENSION = "plancalc.store"


@dataclass(frozen=True)
class ProblemResponse:
    """Error body of the form ``{"error": ..., "message": ..., **extra}``."""

    error: str
    status: int
    message: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        payload.update(self.extra)
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    return ProblemResponse(error=error, status=status, message=message, extra=extra)


def unknown_service_response(service_id: str) -> tuple[Any, int]:
    """404 body for a service id missing from the catalogue."""

    return problem_response(
        "not_found",
        status=404,
        message=f"Unknown service '{service_id}'",
        service_id=service_id,
    ).to_response()


def get_store() -> PlannerStore:
    """Return the planner store bound to the active application."""

    return current_app.extensions[STORE_EXTENSION]


__all__ = [
    "ProblemResponse",
    "STORE_EXTENSION",
    "get_store",
    "problem_response",
    "unknown_service_response",
]
