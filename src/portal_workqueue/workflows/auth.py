# src/portal_workqueue/workflows/auth.py

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..core.providers import ProviderName
from ..models import (
    ActivityStatus,
    ActivityType,
    AuthChallengeEvent,
    AuthResponseStatus,
    NewActivity,
    NotificationContent,
    PendingRequestKind,
    Profile,
)
from ..tasks.task_base import Task, task_registry
from ..tasks.task_models import DAY_SECONDS
from .activity import SaveActivityTask
from .approval import require_user_approval
from .relays import WaitForRelaysConnectedTask

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE = "Unknown Service"


@task_registry.register
class ProcessAuthRequestTask(Task[bool]):
    """
    Login challenge from a service: ask the user, reply to the service,
    record the outcome as an auth activity.

    Returns False when the request was only deferred to a notification.
    """

    def expiry_for(self, now: float, event: AuthChallengeEvent) -> float | None:
        return float(event.expires_at)

    async def execute(self, providers: tuple[Any, ...], event: AuthChallengeEvent) -> bool:
        response = await RequireAuthUserApprovalTask(self.state, event).run()
        if response is None:
            # Headless: a notification was shown instead.
            logger.info("Auth request %s deferred to notification", event.event_id)
            return False

        await SendAuthChallengeResponseTask(self.state, event, response).run()

        name = await resolve_service_name(self.state, event.service_key)
        await SaveActivityTask(
            self.state,
            NewActivity(
                type=ActivityType.AUTH,
                service_key=event.service_key,
                service_name=name,
                detail="User approved login" if response.approved else "User declined login",
                date=self.state.clock.now(),
                request_id=event.event_id,
                status=ActivityStatus.POSITIVE if response.approved else ActivityStatus.NEGATIVE,
            ),
        ).run()
        return True

    def should_cache(self, result: bool) -> bool:
        # Deferred: handle it again once someone can answer.
        return result

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (AuthChallengeEvent.from_dict(raw[0]),)


@task_registry.register
class RequireAuthUserApprovalTask(Task[AuthResponseStatus | None]):
    requires = (ProviderName.PROMPT_USER,)

    async def execute(
        self, providers: tuple[Any, ...], event: AuthChallengeEvent
    ) -> AuthResponseStatus | None:
        (prompt_user,) = providers
        return await require_user_approval(
            prompt_user,
            self.state.clock,
            request_id=event.event_id,
            kind=PendingRequestKind.LOGIN,
            metadata=event,
            notification=NotificationContent(
                title="Authentication Request",
                body="Authentication request requires approval",
                data={"type": "authentication_request", "request_id": event.event_id},
            ),
        )

    def should_cache(self, result: AuthResponseStatus | None) -> bool:
        # No decision yet: prompt again next time.
        return result is not None

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (AuthChallengeEvent.from_dict(raw[0]),)

    @classmethod
    def decode_result(cls, raw: Any) -> AuthResponseStatus | None:
        return None if raw is None else AuthResponseStatus.from_dict(raw)


@task_registry.register
class SendAuthChallengeResponseTask(Task[None]):
    requires = (ProviderName.PROTOCOL,)

    async def execute(
        self,
        providers: tuple[Any, ...],
        event: AuthChallengeEvent,
        response: AuthResponseStatus,
    ) -> None:
        (protocol,) = providers
        await WaitForRelaysConnectedTask(self.state).run()
        await protocol.reply_auth_challenge(event, response)

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return AuthChallengeEvent.from_dict(raw[0]), AuthResponseStatus.from_dict(raw[1])


@task_registry.register
class FetchServiceNameTask(Task[Profile | None]):
    """Profile of a service key. Cached for a day."""

    requires = (ProviderName.PROTOCOL,)
    ttl = DAY_SECONDS

    async def execute(self, providers: tuple[Any, ...], service_key: str) -> Profile | None:
        (protocol,) = providers
        await WaitForRelaysConnectedTask(self.state).run()
        return await protocol.fetch_profile(service_key)

    @classmethod
    def decode_result(cls, raw: Any) -> Profile | None:
        return None if raw is None else Profile.from_dict(raw)


async def resolve_service_name(state: AppState, service_key: str) -> str:
    """Display name for a service; a failed lookup is not fatal."""
    try:
        profile = await FetchServiceNameTask(state, service_key).run()
    except Exception:
        logger.warning("Profile lookup failed for %s", service_key, exc_info=True)
        return UNKNOWN_SERVICE
    name = profile.service_name() if profile is not None else None
    return name or UNKNOWN_SERVICE
