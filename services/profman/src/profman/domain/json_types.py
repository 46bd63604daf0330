from __future__ import annotations

import json
from typing import TypeAlias, TypeGuard

JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonScalar | dict[str, "JsonValue"] | list["JsonValue"]
JsonDict: TypeAlias = dict[str, JsonValue]
JsonList: TypeAlias = list[JsonValue]


def is_json_dict(value: object) -> TypeGuard[dict[object, object]]:
    return isinstance(value, dict)


def is_json_list(value: object) -> TypeGuard[list[object]]:
    return isinstance(value, list)


def coerce_json_value(value: object) -> JsonValue:
    if is_json_dict(value):
        return {str(k): coerce_json_value(v) for k, v in value.items()}
    if is_json_list(value) or isinstance(value, (tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return [coerce_json_value(item) for item in items]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def as_json_dict(value: object) -> JsonDict:
    if not is_json_dict(value):
        return {}
    return {str(k): coerce_json_value(v) for k, v in value.items()}


def as_json_list(value: object) -> JsonList:
    if not is_json_list(value):
        return []
    return [coerce_json_value(item) for item in value]


def as_str_list(value: object) -> list[str]:
    return [str(item) for item in as_json_list(value) if item is not None]


def canonical_json(value: object) -> bytes:
    """Compact, key-sorted JSON; equal values always encode to equal bytes."""
    return json.dumps(coerce_json_value(value), sort_keys=True, separators=(",", ":")).encode()
