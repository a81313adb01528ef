# tests/test_task_drainer.py

from __future__ import annotations

import pytest

from portal_workqueue.models import ActivityStatus, ActivityType, NewActivity
from portal_workqueue.tasks.task_drainer import drain_queue_once, enqueue_and_run, queue_for
from portal_workqueue.workflows.activity import SaveActivityTask, UpdateActivityStatusTask
from portal_workqueue.workflows.relays import CheckRelayStatusTask


def _activity(clock, request_id: str = "req-1") -> NewActivity:
    return NewActivity(
        type=ActivityType.AUTH,
        service_key="svc",
        service_name="Service",
        detail="User approved login",
        date=clock.now(),
        request_id=request_id,
        status=ActivityStatus.POSITIVE,
    )


@pytest.mark.asyncio
async def test_drain_runs_queued_tasks_and_empties_the_queue(state, storage, activities, clock) -> None:
    queue = queue_for(state)
    queue.enqueue_task(SaveActivityTask(state, _activity(clock, "r1")))
    queue.enqueue_task(SaveActivityTask(state, _activity(clock, "r2")))

    report = await drain_queue_once(state)

    assert (report.processed, report.succeeded, report.failed) == (2, 2, 0)
    assert storage.queue_count() == 0
    assert activities.has_activity_with_request_id("r1")
    assert activities.has_activity_with_request_id("r2")


@pytest.mark.asyncio
async def test_drain_drops_failing_records_and_continues(state, storage, activities, clock) -> None:
    queue = queue_for(state)
    queue.enqueue("NoSuchTask", "[]", None, priority=9)
    queue.enqueue("UpdateActivityStatusTask", '["x", "bogus", "y"]', None, priority=5)
    queue.enqueue_task(SaveActivityTask(state, _activity(clock)))

    report = await drain_queue_once(state)

    assert (report.processed, report.succeeded, report.failed) == (3, 1, 2)
    assert storage.queue_count() == 0
    assert activities.has_activity_with_request_id("req-1")


@pytest.mark.asyncio
async def test_drain_skips_expired_records(state, storage, clock) -> None:
    queue_for(state).enqueue("CheckRelayStatusTask", "[]", clock.now() - 1)
    report = await drain_queue_once(state)
    assert report.processed == 0
    assert storage.queue_count() == 1


@pytest.mark.asyncio
async def test_drained_task_sees_current_provider_bindings(state, relays) -> None:
    queue_for(state).enqueue_task(CheckRelayStatusTask(state))
    relays.default = False

    report = await drain_queue_once(state)
    assert report.succeeded == 1
    assert relays.calls == 1


@pytest.mark.asyncio
async def test_enqueue_and_run_returns_result_and_deletes_record(state, storage, activities, clock) -> None:
    activity_id = await enqueue_and_run(state, SaveActivityTask(state, _activity(clock)))
    assert activities.get_activity(activity_id) is not None
    assert storage.queue_count() == 0


@pytest.mark.asyncio
async def test_enqueue_and_run_deletes_record_on_failure(state, storage, relays) -> None:
    class Broken(Exception):
        pass

    def _boom() -> bool:
        raise Broken()

    relays.are_relays_connected = _boom  # type: ignore[method-assign]

    with pytest.raises(Broken):
        await enqueue_and_run(state, CheckRelayStatusTask(state))
    assert storage.queue_count() == 0


@pytest.mark.asyncio
async def test_enqueue_and_run_leaves_other_records_alone(state, storage, clock) -> None:
    queue_for(state).enqueue("SomethingElse", "[]", None)
    await enqueue_and_run(state, UpdateActivityStatusTask(state, "missing", ActivityStatus.NEGATIVE, "x"))
    remaining = queue_for(state).pending()
    assert [r.task_name for r in remaining] == ["SomethingElse"]
