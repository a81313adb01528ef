# src/portal_workqueue/providers/prompt_user.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..core.ports import NotificationSink
from ..models import PendingRequest, UserPrompt

logger = logging.getLogger(__name__)


class PromptUserWithPendingCard:
    """
    Foreground prompting: keep the request as a pending card until someone
    calls ``resolve(id, decision)`` (console /approve, /decline).
    """

    def __init__(self, on_new: Callable[[PendingRequest], None] | None = None) -> None:
        self._pending: dict[str, list[PendingRequest]] = {}
        self._on_new = on_new

    def prompt_user(self, prompt: UserPrompt) -> None:
        request = prompt.pending_request
        waiters = self._pending.get(request.id)
        if waiters:
            # Same request shown once; every workflow waiting on it gets the decision.
            logger.debug("Pending request already shown id=%s", request.id)
            waiters.append(request)
            return

        self._pending[request.id] = [request]
        logger.info("Pending request added id=%s kind=%s", request.id, request.kind)
        if self._on_new is not None:
            try:
                self._on_new(request)
            except Exception:
                logger.exception("Pending request listener failed id=%s", request.id)

    def pending(self) -> list[PendingRequest]:
        return [waiters[0] for waiters in self._pending.values()]

    def get(self, request_id: str) -> PendingRequest | None:
        waiters = self._pending.get(request_id)
        return waiters[0] if waiters else None

    def resolve(self, request_id: str, decision: Any) -> bool:
        """Settle every workflow waiting on ``request_id``. False if nothing was pending."""
        waiters = self._pending.pop(request_id, None)
        if not waiters:
            return False
        logger.info("Pending request resolved id=%s waiters=%d", request_id, len(waiters))
        for request in waiters:
            request.result(decision)
        return True

    def __len__(self) -> int:
        return len(self._pending)


class PromptUserWithNotification:
    """
    Headless prompting: the user cannot answer now, so notify and settle
    with None, which stops the workflow.
    """

    def __init__(self, notifier: NotificationSink) -> None:
        self._notifier = notifier

    def prompt_user(self, prompt: UserPrompt) -> None:
        self._notifier.send_notification(prompt.notification)
        prompt.pending_request.result(None)
