"""Request and response helpers shared by the HTTP blueprints."""

from .request_parser import parse_json_object
from .response_builder import build_json_response, to_payload

__all__ = [
    "build_json_response",
    "parse_json_object",
    "to_payload",
]
