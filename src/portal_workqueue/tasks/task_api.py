# src/portal_workqueue/tasks/task_api.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from ..core.state import AppState
from ..models import (
    AuthChallengeEvent,
    IncomingRequest,
    RecurringPaymentRequest,
    SinglePaymentRequest,
)
from ..workflows.auth import ProcessAuthRequestTask
from ..workflows.recurring_payment import HandleRecurringPaymentRequestTask
from ..workflows.single_payment import HandleSinglePaymentRequestTask
from .task_base import Task
from .task_drainer import DrainReport, drain_queue_once, enqueue_and_run, queue_for

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MaintenanceReport:
    cache_removed: int = 0
    queue_removed: int = 0


def task_for_request(state: AppState, request: IncomingRequest) -> Task[Any]:
    """Top-level workflow for an inbound protocol request."""
    if isinstance(request, AuthChallengeEvent):
        return ProcessAuthRequestTask(state, request)
    if isinstance(request, SinglePaymentRequest):
        return HandleSinglePaymentRequestTask(state, request)
    if isinstance(request, RecurringPaymentRequest):
        return HandleRecurringPaymentRequestTask(state, request)
    raise TypeError(f"Unsupported request type: {type(request).__name__}")


async def handle_incoming_request(state: AppState, request: IncomingRequest) -> None:
    task = task_for_request(state, request)
    logger.info("Handling %s event_id=%s", task.task_name(), request.event_id)
    await enqueue_and_run(state, task)


def spawn_incoming_request(state: AppState, request: IncomingRequest) -> asyncio.Task[None]:
    """
    Handle a request in the background (listeners must not block on user approval).

    The asyncio task is kept on ``state.background`` until it finishes.
    """
    # Build the task now so a missing provider fails at the call site.
    task = task_for_request(state, request)

    async def _run() -> None:
        try:
            await enqueue_and_run(state, task)
        except Exception:
            logger.exception("Background workflow failed event_id=%s", request.event_id)

    bg = asyncio.ensure_future(_run())
    state.background.add(bg)
    bg.add_done_callback(state.background.discard)
    return bg


def run_maintenance(state: AppState) -> MaintenanceReport:
    """Best-effort sweep of expired cache entries and queue records."""
    storage = state.providers.storage

    cache_removed = 0
    try:
        cache_removed = storage.cache_cleanup_expired(now_ts=state.clock.now())
    except Exception:
        logger.exception("Cache cleanup failed.")

    queue_removed = 0
    try:
        queue_removed = queue_for(state).cleanup_expired()
    except Exception:
        logger.exception("Queue cleanup failed.")

    logger.info("Maintenance cache_removed=%d queue_removed=%d", cache_removed, queue_removed)
    return MaintenanceReport(cache_removed=cache_removed, queue_removed=queue_removed)


async def startup(state: AppState) -> DrainReport:
    """Catch up after a restart: sweep, then run whatever is still queued."""
    run_maintenance(state)
    return await drain_queue_once(state)
