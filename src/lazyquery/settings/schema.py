"""JSON schema, defaults and typed view options for ``settings.json``."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Mapping

from jsonschema import Draft202012Validator

from ..config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_CACHE_SIZE,
    SETTINGS_SCHEMA_ID,
    UNLIMITED_QUERY_SIZE,
)

_VIEW_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "batch_size": {"type": "integer", "minimum": 1},
        "max_cache_size": {"type": "integer", "minimum": 0},
        "max_query_size": {"type": "integer", "minimum": UNLIMITED_QUERY_SIZE},
        "discard_on_refresh": {"type": "boolean"},
    },
    "additionalProperties": True,
}

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "lazyquery/settings.schema.json",
    "type": "object",
    "required": ["schema", "view"],
    "properties": {
        "schema": {"const": SETTINGS_SCHEMA_ID},
        "view": _VIEW_SCHEMA,
    },
    "additionalProperties": True,
}


@dataclass(frozen=True)
class ViewOptions:
    """The ``view`` section, typed."""

    batch_size: int = DEFAULT_BATCH_SIZE
    max_cache_size: int = DEFAULT_MAX_CACHE_SIZE
    max_query_size: int = UNLIMITED_QUERY_SIZE
    discard_on_refresh: bool = True

    @classmethod
    def from_mapping(cls, section: Mapping[str, Any]) -> "ViewOptions":
        return cls(
            batch_size=section["batch_size"],
            max_cache_size=section["max_cache_size"],
            max_query_size=section["max_query_size"],
            discard_on_refresh=section["discard_on_refresh"],
        )


DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": SETTINGS_SCHEMA_ID,
    "view": {
        "batch_size": DEFAULT_BATCH_SIZE,
        "max_cache_size": DEFAULT_MAX_CACHE_SIZE,
        "max_query_size": UNLIMITED_QUERY_SIZE,
        "discard_on_refresh": True,
    },
}

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def _overlay(base: dict[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _overlay(current, value)
        else:
            base[key] = deepcopy(value)


def merge_with_defaults(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Overlay *data* on :data:`DEFAULT_SETTINGS` and validate the result.

    Nested objects are merged key by key, so a document that only sets
    ``view.batch_size`` keeps every other default.  Unknown keys survive.
    """

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        _overlay(merged, data)
    _validator.validate(merged)
    return merged


def validate_settings(data: Mapping[str, Any]) -> None:
    """Raise :class:`jsonschema.ValidationError` if *data* is not a valid document."""

    _validator.validate(data)


__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_SCHEMA",
    "ViewOptions",
    "merge_with_defaults",
    "validate_settings",
]
