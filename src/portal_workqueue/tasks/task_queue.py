# src/portal_workqueue/tasks/task_queue.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..core.ports import Clock, Storage
from .task_models import TaskRecord

if TYPE_CHECKING:
    from .task_base import Task

logger = logging.getLogger(__name__)


class DurableQueue:
    """
    Persisted priority queue of TaskRecords.

    ``extract_next`` does not delete: whoever runs the record deletes it after
    the attempt, whatever the outcome. A crash in between leaves the record
    for the next drain.
    """

    def __init__(self, storage: Storage, clock: Clock) -> None:
        self._storage = storage
        self._clock = clock

    def enqueue(
        self,
        task_name: str,
        arguments: str,
        expires_at: float | None,
        priority: int = 0,
        *,
        added_at: float | None = None,
    ) -> int:
        record_id = self._storage.queue_enqueue(
            task_name=task_name,
            arguments=arguments,
            added_at=self._clock.now() if added_at is None else float(added_at),
            expires_at=expires_at,
            priority=int(priority),
        )
        logger.info(
            "Enqueued task id=%s name=%s priority=%s expires_at=%s",
            record_id,
            task_name,
            priority,
            expires_at,
        )
        return record_id

    def enqueue_task(self, task: Task[Any], priority: int | None = None) -> int:
        record = task.serialize()
        return self.enqueue(
            record.task_name,
            record.arguments,
            record.expires_at,
            record.priority if priority is None else priority,
            added_at=record.added_at,
        )

    def extract_next(self) -> TaskRecord | None:
        """Highest priority, oldest, non-expired record (left in place)."""
        return self._storage.queue_extract_next(now_ts=self._clock.now())

    def delete(self, record_id: int) -> None:
        self._storage.queue_delete(record_id)

    def cleanup_expired(self) -> int:
        removed = self._storage.queue_cleanup_expired(now_ts=self._clock.now())
        if removed:
            logger.info("Removed %d expired queued task(s)", removed)
        return removed

    def pending(self, *, limit: int | None = None) -> list[TaskRecord]:
        return self._storage.queue_list(exclude_expired=True, now_ts=self._clock.now(), limit=limit)

    def pending_count(self) -> int:
        return len(self.pending())
