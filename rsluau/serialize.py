"""Serialization of tokens and trees to JSON-compatible structures."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure.

    Dataclass instances become dicts tagged with "_type", fields in
    declaration order.
    """
    if obj is None:
        return None
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, (int, float)):
        return obj
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, Mapping):
        return {str(k): serialize(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        result: dict[str, object] = {"_type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            result[f.name] = serialize(getattr(obj, f.name))
        return result
    raise TypeError("cannot serialize " + type(obj).__name__)


def to_json(obj: object) -> str:
    return json.dumps(serialize(obj), indent=2)
