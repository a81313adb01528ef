# tests/test_provider_registry.py

from __future__ import annotations

import pytest

from portal_workqueue.core.providers import ProviderName, ProviderRegistry
from portal_workqueue.errors import ProviderNotFoundError
from portal_workqueue.tasks.task_base import Task
from portal_workqueue.workflows.relays import CheckRelayStatusTask

from .fakes import FakeRelayStatus


class _Named:
    pass


def test_register_defaults_to_type_name_and_last_registration_wins() -> None:
    reg = ProviderRegistry()
    first, second = _Named(), _Named()
    reg.register(first)
    reg.register(second)
    assert reg.require("_Named") is second
    assert "_Named" in reg
    assert reg.names() == ["_Named"]


def test_require_missing_raises_provider_not_found() -> None:
    reg = ProviderRegistry()
    with pytest.raises(ProviderNotFoundError) as exc:
        reg.require(ProviderName.STORAGE)
    assert exc.value.name == "Storage"
    assert reg.get("Storage") is None


def test_resolve_keeps_declared_order() -> None:
    reg = ProviderRegistry()
    a, b = object(), object()
    reg.register(a, "A")
    reg.register(b, "B")
    assert reg.resolve(["B", "A"]) == (b, a)


def test_unregister_removes_binding() -> None:
    reg = ProviderRegistry()
    reg.register(object(), "A")
    reg.unregister("A")
    assert "A" not in reg


def test_task_construction_fails_when_a_required_provider_is_missing(state) -> None:
    state.providers.unregister(ProviderName.RELAY_STATUS)
    with pytest.raises(ProviderNotFoundError):
        CheckRelayStatusTask(state)


def test_task_resolves_providers_at_construction(state) -> None:
    task = CheckRelayStatusTask(state)

    replacement = FakeRelayStatus(default=False)
    state.providers.register(replacement, ProviderName.RELAY_STATUS)

    # Already-built tasks keep what they resolved; new ones see the replacement.
    assert task.providers[0] is not replacement
    assert CheckRelayStatusTask(state).providers == (replacement,)
    assert isinstance(task, Task)
