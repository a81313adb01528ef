# src/portal_workqueue/tasks/codec.py

"""
JSON codec for task arguments and cached results.

Only structure is preserved here: dataclasses come back as dicts and tuples
as lists. Task classes rebuild their own domain types from that (see
``Task.decode_args`` / ``Task.decode_result``).
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from ..errors import TaskDecodeError


# Largest integer a JSON consumer using IEEE-754 doubles can hold exactly.
MAX_SAFE_INT = 2**53 - 1

_BIGINT = "__bigint__"
_DATETIME = "__datetime__"
_BYTES = "__bytes__"


def encode_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str, float)):
        return value
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INT:
            return {_BIGINT: str(value)}
        return value
    if isinstance(value, Enum):
        return encode_value(value.value)
    if isinstance(value, datetime):
        return {_DATETIME: value.isoformat()}
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES: bytes(value).hex()}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: encode_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    if callable(value):
        return None
    raise TypeError(f"Cannot encode value of type {type(value).__name__}")


def _object_hook(obj: dict[str, Any]) -> Any:
    if len(obj) != 1:
        return obj
    if _BIGINT in obj:
        return int(obj[_BIGINT])
    if _DATETIME in obj:
        return datetime.fromisoformat(obj[_DATETIME])
    if _BYTES in obj:
        return bytes.fromhex(obj[_BYTES])
    return obj


def dumps(value: Any) -> str:
    return json.dumps(encode_value(value), ensure_ascii=False, separators=(",", ":"))


def loads(text: str) -> Any:
    try:
        return json.loads(text, object_hook=_object_hook)
    except (TypeError, ValueError) as e:
        raise TaskDecodeError(f"Malformed encoded value: {e}") from e
