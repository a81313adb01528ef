# src/portal_workqueue/workflows/recurring_payment.py

from __future__ import annotations

import logging
from typing import Any

from ..core.providers import ProviderName
from ..models import (
    NewSubscription,
    NotificationContent,
    PendingRequestKind,
    RecurringPaymentRequest,
    RecurringPaymentResponse,
)
from ..tasks.task_base import Task, task_registry
from .activity import SaveSubscriptionTask
from .amounts import format_amount, stored_amount
from .approval import require_user_approval
from .auth import resolve_service_name
from .relays import WaitForRelaysConnectedTask

logger = logging.getLogger(__name__)


@task_registry.register
class HandleRecurringPaymentRequestTask(Task[bool]):
    """
    Subscription offer: ask the user, reply, store the subscription if approved.

    Returns False when the request was only deferred to a notification.
    """

    def expiry_for(self, now: float, request: RecurringPaymentRequest) -> float | None:
        return float(request.expires_at)

    def should_cache(self, result: bool) -> bool:
        return result

    async def execute(self, providers: tuple[Any, ...], request: RecurringPaymentRequest) -> bool:
        amount, currency = stored_amount(request.content)
        response = await RequireRecurringPaymentUserApprovalTask(
            self.state,
            request,
            "Subscription Request",
            f"Subscription request of: {format_amount(amount, currency)}",
        ).run()
        if response is None:
            logger.info("Subscription request %s deferred to notification", request.event_id)
            return False

        await SendRecurringPaymentResponseTask(self.state, request, response).run()

        if not response.approved or not response.subscription_id:
            return True

        recurrence = request.content.recurrence
        service_name = await resolve_service_name(self.state, request.service_key)
        await SaveSubscriptionTask(
            self.state,
            NewSubscription(
                id=response.subscription_id,
                request_id=request.event_id,
                service_key=request.service_key,
                service_name=service_name,
                amount=amount,
                currency=currency,
                recurrence_calendar=recurrence.calendar,
                recurrence_first_payment_due=float(recurrence.first_payment_due),
                recurrence_max_payments=recurrence.max_payments,
                recurrence_until=None if recurrence.until is None else float(recurrence.until),
            ),
        ).run()
        return True

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (RecurringPaymentRequest.from_dict(raw[0]),)


@task_registry.register
class RequireRecurringPaymentUserApprovalTask(Task[RecurringPaymentResponse | None]):
    requires = (ProviderName.PROMPT_USER,)

    async def execute(
        self,
        providers: tuple[Any, ...],
        request: RecurringPaymentRequest,
        title: str,
        body: str,
    ) -> RecurringPaymentResponse | None:
        (prompt_user,) = providers
        return await require_user_approval(
            prompt_user,
            self.state.clock,
            request_id=request.event_id,
            kind=PendingRequestKind.SUBSCRIPTION,
            metadata=request,
            notification=NotificationContent(
                title=title,
                body=body,
                data={"type": "subscription", "request_id": request.event_id},
            ),
        )

    def should_cache(self, result: RecurringPaymentResponse | None) -> bool:
        return result is not None

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        request, title, body = raw
        return RecurringPaymentRequest.from_dict(request), str(title), str(body)

    @classmethod
    def decode_result(cls, raw: Any) -> RecurringPaymentResponse | None:
        return None if raw is None else RecurringPaymentResponse.from_dict(raw)


@task_registry.register
class SendRecurringPaymentResponseTask(Task[None]):
    requires = (ProviderName.PROTOCOL,)

    async def execute(
        self,
        providers: tuple[Any, ...],
        request: RecurringPaymentRequest,
        response: RecurringPaymentResponse,
    ) -> None:
        (protocol,) = providers
        await WaitForRelaysConnectedTask(self.state).run()
        await protocol.reply_recurring_payment_request(request, response)

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return RecurringPaymentRequest.from_dict(raw[0]), RecurringPaymentResponse.from_dict(raw[1])
