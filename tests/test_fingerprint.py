# tests/test_fingerprint.py

from __future__ import annotations

from dataclasses import dataclass

import pytest

from portal_workqueue.models import Currency, CurrencyKind
from portal_workqueue.tasks.fingerprint import (
    JsonArguments,
    canonical_text,
    fingerprint,
    flatten_arguments,
)


@dataclass(frozen=True)
class _Point:
    x: int
    y: int


def test_fingerprint_is_stable_and_order_independent_for_mappings() -> None:
    a = fingerprint(({"b": 2, "a": 1}, "x"))
    b = fingerprint(({"a": 1, "b": 2}, "x"))
    assert a == b
    assert len(a) == 64


def test_fingerprint_distinguishes_leaf_types() -> None:
    digests = {fingerprint((v,)) for v in (1, 1.0, True, "1")}
    assert len(digests) == 4


def test_fingerprint_keeps_big_integers_exact() -> None:
    assert fingerprint((2**64,)) != fingerprint((2**64 + 1,))


def test_flatten_paths_for_nested_values() -> None:
    flat = flatten_arguments((_Point(1, 2), [None, "a"], {}))
    assert flat == {
        "[0].x": "int:1",
        "[0].y": "int:2",
        "[1][0]": None,
        "[1][1]": "str:a",
        "[2]": "empty:map",
    }


def test_mapping_keys_are_quoted_in_paths() -> None:
    assert flatten_arguments(({"a": {"b": 1}},)) == {'[0]."a"."b"': "int:1"}
    assert fingerprint(({"a.b": 1},)) != fingerprint(({"a": {"b": 1}},))
    assert fingerprint(({"a[0]": 1},)) != fingerprint(({"a": [1]},))


def test_enums_fingerprint_by_value() -> None:
    assert fingerprint((CurrencyKind.FIAT,)) == fingerprint(("fiat",))
    assert fingerprint((Currency.fiat("EUR"),)) != fingerprint((Currency.fiat("USD"),))


def test_callables_do_not_change_the_fingerprint() -> None:
    assert fingerprint(({"cb": print, "n": 1},)) == fingerprint(({"cb": len, "n": 1},))


def test_canonical_text_is_versioned_and_compact() -> None:
    text = canonical_text(("a",))
    assert text.startswith('{"fields":')
    assert '"v":2' in text
    assert " " not in text


def test_unsupported_leaf_raises_type_error() -> None:
    with pytest.raises(TypeError):
        fingerprint((object(),))


def test_json_arguments_compare_by_fingerprint() -> None:
    a = JsonArguments(({"k": [1, 2]},))
    b = JsonArguments([{"k": [1, 2]}])
    c = JsonArguments(({"k": [2, 1]},))
    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert len(a) == 1
    assert a.values() == ({"k": [1, 2]},)
