# src/portal_workqueue/errors.py

"""Exception types raised by the work queue and its workflows."""

from __future__ import annotations


class WorkQueueError(Exception):
    """Base class for work queue errors."""


class ProviderNotFoundError(WorkQueueError, LookupError):
    """A task declared a provider name that nothing is registered under."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Provider {name!r} not found")
        self.name = name


class UnknownTaskError(WorkQueueError, LookupError):
    """A persisted record names a task type with no registered class."""

    def __init__(self, task_name: str) -> None:
        super().__init__(f"Task constructor not found: {task_name!r}")
        self.task_name = task_name


class TaskDecodeError(WorkQueueError, ValueError):
    """Encoded task arguments or cached results could not be decoded."""


class RelaysNotConnectedError(WorkQueueError, TimeoutError):
    """No relay reported a connection within the polling budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Relays did not connect in time (attempts={attempts})")
        self.attempts = attempts
