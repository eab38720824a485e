"""Utilities for serialising store snapshots into JSON responses."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from typing import Any, Tuple

from flask import jsonify
from pydantic import BaseModel

ResponseTuple = Tuple[Any, int]


def to_payload(value: Any) -> Any:
    """Convert models, dataclasses and containers into JSON-ready values."""

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, Mapping):
        return {str(key): to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return value


def build_json_response(payload: Any, status: int = 200) -> ResponseTuple:
    """Return a Flask JSON response for ``payload``."""

    return jsonify(to_payload(payload)), status
