# src/portal_workqueue/tasks/task_drainer.py

from __future__ import annotations

"""
Queue drainer.

Runs persisted task records one at a time until the queue is empty:
- extract the next record (left in storage),
- rebuild the task against the current provider bindings,
- run it,
- delete the record whatever happened.

A record that fails is dropped after that one attempt; the failure is logged.
"""

import logging
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState
from .task_base import Task
from .task_models import TaskRecord
from .task_queue import DurableQueue

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(slots=True, frozen=True)
class DrainReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0


def queue_for(state: AppState) -> DurableQueue:
    return DurableQueue(state.providers.storage, state.clock)


async def run_record(state: AppState, record: TaskRecord) -> Any:
    """Deserialize and run one record, then delete it. Errors propagate after the delete."""
    queue = queue_for(state)
    try:
        logger.debug("Running queued task id=%s name=%s", record.id, record.task_name)
        task = Task.deserialize(state, record)
        result = await task.run()
        logger.debug("Queued task done id=%s name=%s", record.id, record.task_name)
        return result
    finally:
        queue.delete(record.id)


async def drain_queue_once(state: AppState) -> DrainReport:
    queue = queue_for(state)
    processed = succeeded = failed = 0

    while True:
        record = queue.extract_next()
        if record is None:
            break

        processed += 1
        try:
            await run_record(state, record)
            succeeded += 1
        except Exception:
            failed += 1
            logger.exception(
                "Queued task failed id=%s name=%s (dropped)", record.id, record.task_name
            )

    if processed:
        logger.info(
            "Queue drained processed=%d succeeded=%d failed=%d", processed, succeeded, failed
        )
    return DrainReport(processed=processed, succeeded=succeeded, failed=failed)


async def enqueue_and_run(state: AppState, task: Task[R], priority: int | None = None) -> R:
    """
    Persist ``task`` then run it inline.

    If the process dies mid-run the record stays queued for the next drain.
    """
    queue = queue_for(state)
    record_id = queue.enqueue_task(task, priority=priority)
    try:
        return await task.run()
    finally:
        queue.delete(record_id)
