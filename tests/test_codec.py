# tests/test_codec.py

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from portal_workqueue.errors import TaskDecodeError
from portal_workqueue.models import Currency, PaymentStatus, PaymentStatusKind
from portal_workqueue.tasks import codec


def test_dataclasses_and_enums_encode_as_plain_json() -> None:
    text = codec.dumps([Currency.fiat("EUR"), PaymentStatus.approved()])
    decoded = codec.loads(text)
    assert decoded[0] == {"kind": "fiat", "code": "EUR"}
    assert decoded[1]["kind"] == PaymentStatusKind.APPROVED.value
    assert PaymentStatus.from_dict(decoded[1]) == PaymentStatus.approved()


def test_tagged_values_survive() -> None:
    when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    value = {"big": 2**70, "small": 42, "when": when, "raw": b"\x00\xff"}
    assert codec.loads(codec.dumps(value)) == value


def test_safe_integers_stay_plain_numbers() -> None:
    assert codec.dumps(codec.MAX_SAFE_INT) == str(codec.MAX_SAFE_INT)
    assert "__bigint__" in codec.dumps(codec.MAX_SAFE_INT + 1)


def test_callables_encode_as_null() -> None:
    assert codec.dumps({"cb": print}) == '{"cb":null}'


def test_unencodable_value_raises_type_error() -> None:
    with pytest.raises(TypeError):
        codec.dumps(object())


def test_malformed_text_raises_decode_error() -> None:
    with pytest.raises(TaskDecodeError):
        codec.loads("{not json")
