# src/portal_workqueue/providers/events.py

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any] | None], None]

ACTIVITY_ADDED = "activity_added"
ACTIVITY_UPDATED = "activity_updated"
SUBSCRIPTION_ADDED = "subscription_added"


class EventBus:
    """In-process pub/sub. A failing subscriber is logged and skipped."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """Subscribe to one event name ("*" for all). Returns an unsubscribe callable."""
        self._handlers[event_name].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def emit(self, event_name: str, data: dict[str, Any] | None = None) -> None:
        logger.debug("Event %s data=%s", event_name, data)
        for handler in [*self._handlers.get(event_name, []), *self._handlers.get("*", [])]:
            try:
                handler(event_name, data)
            except Exception:
                logger.exception("Event handler failed for %s", event_name)
