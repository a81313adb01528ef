# src/portal_workqueue/providers/notification.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..models import NotificationContent

logger = logging.getLogger(__name__)


class NotificationProvider:
    """Local notifications, delivered through a host-supplied callback."""

    def __init__(self, deliver: Callable[[NotificationContent], None]) -> None:
        self._deliver = deliver

    def send_notification(self, content: NotificationContent) -> None:
        logger.debug("Notification title=%r", content.title)
        self._deliver(content)
