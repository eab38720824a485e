"""Deep-merge patches into the planner state.

Merging only walks the known shape of :class:`PlannerState`: mapping values
recurse into nested sections and into per-id maps (``services``,
``fixed_cost_breakdown``), everything else replaces the existing value
wholesale. Keys may use either the snake_case field name or its camelCase
alias. The merged tree is validated as a whole before it is returned, so a
rejected patch never leaves a half-merged state behind.
"""

from __future__ import annotations

import copy
import types
import typing
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from .state import PlannerState, StateError


class _Unset:
    """Marker for patch entries that should be ignored."""

    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Unset":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "_Unset":
        return self


UNSET = _Unset()


def format_state_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid state update: {details}"


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


def _nested_target(annotation: Any) -> tuple[str, type[BaseModel] | None] | None:
    """Describe how mapping values for a field should be merged."""

    annotation = _strip_optional(annotation)
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "model", annotation

    origin = typing.get_origin(annotation)
    if origin in (dict, Mapping):
        args = typing.get_args(annotation)
        value_type = _strip_optional(args[1]) if len(args) == 2 else None
        if typing.get_origin(value_type) is typing.Annotated:
            value_type = typing.get_args(value_type)[0]
        if isinstance(value_type, type) and issubclass(value_type, BaseModel):
            return "map", value_type
        return "map", None

    return None


def _resolve_field(model_cls: type[BaseModel], key: Any) -> str | None:
    if not isinstance(key, str):
        return None
    fields = model_cls.model_fields
    if key in fields:
        return key
    for name, info in fields.items():
        if info.alias == key:
            return name
    return None


def _dotted(path: tuple[str, ...], key: Any) -> str:
    return ".".join((*path, str(key)))


def _merge_map(
    value_cls: type[BaseModel] | None,
    current: Any,
    patch: Mapping[Any, Any],
    path: tuple[str, ...],
) -> dict[str, Any]:
    merged: dict[str, Any] = dict(current) if isinstance(current, Mapping) else {}
    for key, value in patch.items():
        if value is UNSET:
            continue
        entry_key = str(key)
        if value is None:
            merged.pop(entry_key, None)
            continue
        existing = merged.get(entry_key)
        if value_cls is not None and isinstance(value, Mapping):
            base = existing if isinstance(existing, Mapping) else {}
            merged[entry_key] = merge_patch(value_cls, base, value, (*path, entry_key))
        else:
            merged[entry_key] = copy.deepcopy(value)
    return merged


def merge_patch(
    model_cls: type[BaseModel],
    current: Mapping[str, Any],
    patch: Mapping[Any, Any],
    path: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Merge ``patch`` into the field-name keyed ``current`` mapping of ``model_cls``.

    ``None`` clears a leaf back to its fallback; inside per-id maps it removes
    the entry. :data:`UNSET` values are skipped.
    """

    merged = dict(current)
    for key, value in patch.items():
        if value is UNSET:
            continue

        name = _resolve_field(model_cls, key)
        if name is None:
            raise StateError(f"Unknown state key '{_dotted(path, key)}'")

        nested = _nested_target(model_cls.model_fields[name].annotation)
        existing = merged.get(name)
        if nested is not None and isinstance(value, Mapping):
            kind, target = nested
            if kind == "model" and target is not None:
                base = existing if isinstance(existing, Mapping) else {}
                merged[name] = merge_patch(target, base, value, (*path, name))
            else:
                merged[name] = _merge_map(target, existing, value, (*path, name))
        else:
            merged[name] = copy.deepcopy(value)
    return merged


def build_state(data: Any) -> PlannerState:
    """Validate ``data`` into a detached :class:`PlannerState`."""

    if isinstance(data, PlannerState):
        return data.model_copy(deep=True)
    if not isinstance(data, Mapping):
        raise StateError("State must be a mapping or a PlannerState instance")
    try:
        return PlannerState.model_validate(copy.deepcopy(dict(data)))
    except ValidationError as error:
        raise StateError(format_state_error(error)) from error


def merge_state(state: PlannerState, patch: Any) -> PlannerState:
    """Return a new state with ``patch`` merged into ``state``.

    A :class:`PlannerState` patch is a full replacement. Any other
    non-mapping patch is rejected before anything is merged.
    """

    if isinstance(patch, PlannerState):
        return patch.model_copy(deep=True)
    if not isinstance(patch, Mapping):
        raise StateError(
            f"Patch must be a mapping, received {type(patch).__name__}"
        )
    merged = merge_patch(PlannerState, state.model_dump(), patch)
    return build_state(merged)


__all__ = [
    "UNSET",
    "build_state",
    "format_state_error",
    "merge_patch",
    "merge_state",
]
