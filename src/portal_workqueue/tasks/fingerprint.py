# src/portal_workqueue/tasks/fingerprint.py

"""
Content fingerprint of a task's argument tuple.

The arguments are flattened into one level of ``path -> tagged leaf`` pairs
and hashed as canonical JSON (sorted keys), so two structurally equal
argument tuples always produce the same digest regardless of how their
mappings were built. Leaves carry a type tag: ``1``, ``1.0``, ``True`` and
``"1"`` all fingerprint differently, and integers keep full precision.

Callables are rendered as null, so callbacks carried inside arguments never
change a fingerprint.
"""

from __future__ import annotations

import abc
import dataclasses
import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

FINGERPRINT_VERSION = 2


def _leaf(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return f"bool:{'true' if value else 'false'}"
    if isinstance(value, int):
        return f"int:{value}"
    if isinstance(value, float):
        return f"float:{value!r}"
    if isinstance(value, str):
        return f"str:{value}"
    if isinstance(value, (bytes, bytearray)):
        return f"bytes:{bytes(value).hex()}"
    if isinstance(value, (datetime, date)):
        return f"datetime:{value.isoformat()}"
    raise TypeError(f"Cannot fingerprint value of type {type(value).__name__}")


def _flatten(value: Any, path: str, out: dict[str, str | None]) -> None:
    if isinstance(value, Enum):
        _flatten(value.value, path, out)
        return

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        items = [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
        if not items:
            out[path] = "empty:object"
        for name, item in items:
            _flatten(item, f"{path}.{name}" if path else name, out)
        return

    if isinstance(value, Mapping):
        if not value:
            out[path] = "empty:map"
        for k, item in value.items():
            # Quoted, so "a.b" and a nested "a" -> "b" never share a path.
            key = json.dumps(str(k), ensure_ascii=False)
            _flatten(item, f"{path}.{key}" if path else key, out)
        return

    if isinstance(value, (list, tuple)):
        if not value:
            out[path] = "empty:list"
        for i, item in enumerate(value):
            _flatten(item, f"{path}[{i}]", out)
        return

    if callable(value):
        out[path] = None
        return

    out[path] = _leaf(value)


def flatten_arguments(args: tuple[Any, ...] | list[Any]) -> dict[str, str | None]:
    out: dict[str, str | None] = {}
    _flatten(tuple(args), "", out)
    return out


def canonical_text(args: tuple[Any, ...] | list[Any]) -> str:
    return json.dumps(
        {"v": FINGERPRINT_VERSION, "fields": flatten_arguments(args)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def fingerprint(args: tuple[Any, ...] | list[Any]) -> str:
    """SHA-256 hex digest of the canonical argument text."""
    return hashlib.sha256(canonical_text(args).encode("utf-8")).hexdigest()


class Arguments(abc.ABC):
    """An argument tuple that knows its own fingerprint."""

    def __init__(self, args: tuple[Any, ...] | list[Any]) -> None:
        self._args = tuple(args)

    def values(self) -> tuple[Any, ...]:
        return self._args

    @abc.abstractmethod
    def fingerprint(self) -> str: ...

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Arguments):
            return NotImplemented
        return self.fingerprint() == other.fingerprint()

    def __hash__(self) -> int:
        return hash(self.fingerprint())

    def __len__(self) -> int:
        return len(self._args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._args!r})"


class JsonArguments(Arguments):
    """Default fingerprint: canonical JSON of the flattened arguments."""

    def __init__(self, args: tuple[Any, ...] | list[Any]) -> None:
        super().__init__(args)
        self._digest: str | None = None

    def fingerprint(self) -> str:
        if self._digest is None:
            self._digest = fingerprint(self._args)
        return self._digest
