# src/portal_workqueue/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass


# An expiry that is already in the past: results are never reused.
EXPIRED = 0.0

DAY_SECONDS = 60 * 60 * 24


@dataclass(frozen=True, slots=True)
class TaskRecord:
    """
    One persisted unit of deferred work.

    ``id`` is 0 until the storage engine assigns a row id.
    ``expires_at`` is unix seconds; None means the record never expires.
    """

    id: int
    task_name: str
    arguments: str
    added_at: float
    expires_at: float | None
    priority: int = 0

    def is_expired(self, now_ts: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now_ts
