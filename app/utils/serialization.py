"""Helpers for JSON payloads stored in Text columns."""

import json
from typing import Any


def loads_json(value: Any, default: Any = None) -> Any:
    """Decode a Text column; dict/list values (JSONB drivers) pass through."""
    if value is None or value == "":
        return default
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


def dumps_json(value: Any) -> str:
    return json.dumps(value, default=str)
