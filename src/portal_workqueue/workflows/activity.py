# src/portal_workqueue/workflows/activity.py

from __future__ import annotations

import logging
from typing import Any

from ..core.providers import ProviderName
from ..models import ActivityStatus, NewActivity, NewSubscription
from ..providers.events import ACTIVITY_ADDED, ACTIVITY_UPDATED, SUBSCRIPTION_ADDED
from ..tasks.task_base import Task, task_registry

logger = logging.getLogger(__name__)


@task_registry.register
class SaveActivityTask(Task[str]):
    """Store an activity and announce it. Returns the activity id."""

    requires = (ProviderName.ACTIVITIES, ProviderName.EVENTS)

    async def execute(self, providers: tuple[Any, ...], activity: NewActivity) -> str:
        activities, events = providers
        activity_id = activities.add_activity(activity)
        events.emit(ACTIVITY_ADDED, {"activity_id": activity_id})
        return activity_id

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (NewActivity.from_dict(raw[0]),)


@task_registry.register
class UpdateActivityStatusTask(Task[None]):
    requires = (ProviderName.ACTIVITIES, ProviderName.EVENTS)

    async def execute(
        self,
        providers: tuple[Any, ...],
        activity_id: str,
        status: ActivityStatus,
        detail: str,
    ) -> None:
        activities, events = providers
        activities.update_activity_status(activity_id, ActivityStatus(status), detail)
        events.emit(ACTIVITY_UPDATED, {"activity_id": activity_id})

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        activity_id, status, detail = raw
        return str(activity_id), ActivityStatus(status), str(detail)


@task_registry.register
class SaveSubscriptionTask(Task[str]):
    """Store an approved subscription. Returns its id."""

    requires = (ProviderName.ACTIVITIES, ProviderName.EVENTS)

    async def execute(self, providers: tuple[Any, ...], subscription: NewSubscription) -> str:
        activities, events = providers
        subscription_id = activities.add_subscription(subscription)
        events.emit(SUBSCRIPTION_ADDED, {"subscription_id": subscription_id})
        logger.info(
            "Subscription saved id=%s service=%s", subscription_id, subscription.service_name
        )
        return subscription_id

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (NewSubscription.from_dict(raw[0]),)
