"""
Helpers for moving records between snake_case dataclasses and camelCase JSON.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def convert_keys(
    value: Any, direction: Literal["snake_to_camel", "camel_to_snake"]
) -> Any:
    """Recursively rename dict keys. Lists are walked, other values are kept."""
    convert = snake_to_camel if direction == "snake_to_camel" else camel_to_snake
    if isinstance(value, dict):
        return {convert(k): convert_keys(v, direction) for k, v in value.items()}
    if isinstance(value, list):
        return [convert_keys(item, direction) for item in value]
    return value


def encode_datetimes(value: Any) -> Any:
    """Replace datetimes with ISO-8601 strings so the value is JSON serializable."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: encode_datetimes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode_datetimes(item) for item in value]
    return value
