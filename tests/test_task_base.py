# tests/test_task_base.py

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from portal_workqueue.errors import TaskDecodeError, UnknownTaskError
from portal_workqueue.tasks import codec
from portal_workqueue.tasks.task_base import Task, TaskRegistry, task_registry
from portal_workqueue.tasks.task_models import EXPIRED, TaskRecord
from portal_workqueue.workflows import TaskKind
from portal_workqueue.workflows.activity import UpdateActivityStatusTask
from portal_workqueue.workflows.relays import CheckRelayStatusTask


class Counter:
    def __init__(self) -> None:
        self.calls = 0
        self.gate: asyncio.Event | None = None
        self.fail = False


COUNTER = Counter()


class AddTask(Task[int]):
    ttl = 60.0

    async def execute(self, providers: tuple[Any, ...], a: int, b: int) -> int:
        COUNTER.calls += 1
        if COUNTER.gate is not None:
            await COUNTER.gate.wait()
        if COUNTER.fail:
            raise RuntimeError("boom")
        return a + b


@task_registry.register
class OrderTotalTask(Task[dict[str, Any]]):
    async def execute(
        self, providers: tuple[Any, ...], order_id: int, order: dict[str, Any], on_done: Any = None
    ) -> dict[str, Any]:
        COUNTER.calls += 1
        items = order["items"]
        return {
            "order_id": order_id,
            "total_msat": sum(item["qty"] * item["msat"] for item in items.values()),
            "skus": sorted(items),
        }


class NeverCachedTask(Task[str]):
    def expiry_for(self, now: float, *args: Any) -> float | None:
        return EXPIRED

    async def execute(self, providers: tuple[Any, ...], text: str) -> str:
        COUNTER.calls += 1
        return text.upper()


@pytest.fixture(autouse=True)
def _reset_counter():
    COUNTER.calls = 0
    COUNTER.gate = None
    COUNTER.fail = False
    yield


@pytest.mark.asyncio
async def test_run_memoizes_result_until_expiry(state, clock) -> None:
    assert await AddTask(state, 1, 2).run() == 3
    assert await AddTask(state, 1, 2).run() == 3
    assert COUNTER.calls == 1

    clock.advance(61)
    assert await AddTask(state, 1, 2).run() == 3
    assert COUNTER.calls == 2


@pytest.mark.asyncio
async def test_different_arguments_execute_separately(state) -> None:
    assert await AddTask(state, 1, 2).run() == 3
    assert await AddTask(state, 2, 1).run() == 3
    assert COUNTER.calls == 2


@pytest.mark.asyncio
async def test_concurrent_identical_runs_execute_once(state) -> None:
    COUNTER.gate = asyncio.Event()
    runs = [asyncio.ensure_future(AddTask(state, 2, 3).run()) for _ in range(5)]
    await asyncio.sleep(0)
    assert len(state.inflight) == 1

    COUNTER.gate.set()
    assert await asyncio.gather(*runs) == [5] * 5
    assert COUNTER.calls == 1
    assert len(state.inflight) == 0


@pytest.mark.asyncio
async def test_failure_reaches_every_waiter_and_is_not_cached(state) -> None:
    COUNTER.gate = asyncio.Event()
    COUNTER.fail = True
    runs = [asyncio.ensure_future(AddTask(state, 4, 4).run()) for _ in range(3)]
    await asyncio.sleep(0)
    COUNTER.gate.set()

    results = await asyncio.gather(*runs, return_exceptions=True)
    assert all(isinstance(r, RuntimeError) for r in results)
    assert COUNTER.calls == 1
    assert len(state.inflight) == 0

    COUNTER.fail = False
    COUNTER.gate = None
    assert await AddTask(state, 4, 4).run() == 8
    assert COUNTER.calls == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_execution(state) -> None:
    COUNTER.gate = asyncio.Event()
    first = asyncio.ensure_future(AddTask(state, 7, 1).run())
    second = asyncio.ensure_future(AddTask(state, 7, 1).run())
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    COUNTER.gate.set()

    assert await second == 8
    assert first.cancelled()
    assert COUNTER.calls == 1


@pytest.mark.asyncio
async def test_expired_results_are_never_stored(state, storage) -> None:
    task = NeverCachedTask(state, "abc")
    assert await task.run() == "ABC"
    assert await NeverCachedTask(state, "abc").run() == "ABC"
    assert COUNTER.calls == 2
    assert storage.cache_get(task.cache_key, now_ts=0.0) is None


def test_cache_key_is_name_and_fingerprint(state) -> None:
    task = AddTask(state, 1, 2)
    name, digest = task.cache_key.split(":")
    assert name == "AddTask"
    assert len(digest) == 64
    assert AddTask(state, 1, 2).cache_key == task.cache_key


def test_serialize_captures_name_arguments_and_expiry(state, clock) -> None:
    record = AddTask(state, 1, 2).serialize()
    assert record.task_name == "AddTask"
    assert codec.loads(record.arguments) == [1, 2]
    assert record.added_at == clock.now()
    assert record.expires_at == clock.now() + 60.0


def test_deserialize_rebuilds_registered_task(state) -> None:
    task = UpdateActivityStatusTask(state, "act-1", "positive", "done")
    rebuilt = Task.deserialize(state, task.serialize())
    assert isinstance(rebuilt, UpdateActivityStatusTask)
    assert rebuilt.cache_key == task.cache_key


@pytest.mark.asyncio
async def test_revived_task_returns_what_a_direct_run_returns(state, storage) -> None:
    order = {"items": {"b-2": {"qty": 3, "msat": 2**60}, "a-1": {"qty": 1, "msat": 5}}, "note": None}
    task = OrderTotalTask(state, 2**53 + 7, order, print)

    direct = await task.run()
    storage.cache_delete(task.cache_key)

    revived = Task.deserialize(state, task.serialize())
    assert revived.args.values() == (2**53 + 7, order, None)
    assert revived.cache_key == task.cache_key

    assert await revived.run() == direct
    assert direct["total_msat"] == 3 * 2**60 + 5
    assert COUNTER.calls == 2


def test_deserialize_unknown_task_name(state) -> None:
    record = TaskRecord(
        id=1, task_name="NoSuchTask", arguments="[]", added_at=0.0, expires_at=None
    )
    with pytest.raises(UnknownTaskError) as exc:
        Task.deserialize(state, record)
    assert "Task constructor not found" in str(exc.value)


@pytest.mark.parametrize(
    "arguments",
    [
        "{not json",
        '{"a": 1}',
        "[]",
        '["act-1", "not-a-status", "x"]',
    ],
)
def test_deserialize_rejects_bad_arguments(state, arguments: str) -> None:
    record = TaskRecord(
        id=1,
        task_name="UpdateActivityStatusTask",
        arguments=arguments,
        added_at=0.0,
        expires_at=None,
    )
    with pytest.raises(TaskDecodeError):
        Task.deserialize(state, record)


def test_deserialize_rejects_wrong_arity(state) -> None:
    record = TaskRecord(
        id=1, task_name="CheckRelayStatusTask", arguments="[1]", added_at=0.0, expires_at=None
    )
    with pytest.raises(TaskDecodeError):
        Task.deserialize(state, record)


def test_registry_rejects_a_second_class_under_the_same_name() -> None:
    reg = TaskRegistry()
    reg.register(AddTask)
    reg.register(AddTask)

    other = type("AddTask", (NeverCachedTask,), {})
    with pytest.raises(ValueError):
        reg.register(other)


def test_workflow_registry_matches_task_kinds() -> None:
    workflow_names = {
        name
        for name in task_registry.names()
        if task_registry.require(name).__module__.startswith("portal_workqueue.")
    }
    assert workflow_names == {str(k) for k in TaskKind}
    assert "AddTask" not in task_registry
    assert CheckRelayStatusTask.task_name() in task_registry


def test_registry_verify_complete_reports_mismatch() -> None:
    reg = TaskRegistry()
    reg.register(AddTask)
    with pytest.raises(RuntimeError):
        reg.verify_complete(["AddTask", "Missing"], package=__name__)
    with pytest.raises(RuntimeError):
        reg.verify_complete([], package=__name__)
    reg.verify_complete(["AddTask"], package=__name__)
