# src/portal_workqueue/workflows/single_payment.py

"""
Single payment requests.

A service asks the user to pay an invoice, either as a one-off (needs the
user's approval) or as the next charge of an existing subscription (checked
against the stored subscription and paid automatically). Every path ends
with a reply to the service: rejected, or approved and then success/failed
from StartPaymentTask.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.providers import ProviderName
from ..models import (
    ActivityStatus,
    ActivityType,
    CurrencyKind,
    NewActivity,
    NotificationContent,
    PaymentStatus,
    PaymentStatusKind,
    PendingRequestKind,
    SinglePaymentRequest,
    Subscription,
)
from ..tasks.task_base import Task, task_registry
from .activity import SaveActivityTask
from .amounts import (
    amount_tolerance,
    convert_for_display,
    format_amount,
    preferred_currency,
    same_amount,
    stored_amount,
)
from .approval import require_user_approval
from .auth import resolve_service_name
from .start_payment import SendSinglePaymentResponseTask, StartPaymentTask
from .wallet import GetWalletInfoTask

logger = logging.getLogger(__name__)


class _Rejected(Exception):
    """Stop the workflow and reply with this reason."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@task_registry.register
class HandleSinglePaymentRequestTask(Task[bool]):
    """Returns False when the request was only deferred to a notification."""

    requires = (ProviderName.ACTIVITIES, ProviderName.PROTOCOL, ProviderName.CURRENCY)

    def expiry_for(self, now: float, request: SinglePaymentRequest) -> float | None:
        return float(request.expires_at)

    def should_cache(self, result: bool) -> bool:
        return result

    async def execute(self, providers: tuple[Any, ...], request: SinglePaymentRequest) -> bool:
        try:
            return await self._handle(providers, request)
        except _Rejected as r:
            logger.warning("Payment %s rejected: %s", request.event_id, r.reason)
            await SendSinglePaymentResponseTask(
                self.state, request, PaymentStatus.rejected(r.reason)
            ).run()
            return True
        except Exception as e:
            logger.exception("Payment %s failed unexpectedly", request.event_id)
            reason = (
                f"An unexpected error occurred while processing the payment: {e}.\n"
                "Please try again or contact support if the issue persists."
            )
            await SendSinglePaymentResponseTask(
                self.state, request, PaymentStatus.rejected(reason)
            ).run()
            return True

    async def _handle(self, providers: tuple[Any, ...], request: SinglePaymentRequest) -> bool:
        activities, protocol, converter = providers
        content = request.content

        if not await CheckAmountTask(self.state, request).run():
            raise _Rejected("Invoice amount does not match the requested amount.")

        # Re-delivered request: it was already handled once.
        try:
            if activities.has_activity_with_request_id(request.event_id):
                logger.warning("Skipping duplicate payment request %s", request.event_id)
                return True
        except Exception:
            logger.exception("Duplicate check failed for %s; continuing", request.event_id)

        amount, currency = stored_amount(content)
        converted_amount, converted_currency = await convert_for_display(
            converter, content, preferred_currency(self.state.settings)
        )

        subscription_id = content.subscription_id
        if not subscription_id:
            shown_amount = converted_amount if converted_amount is not None else amount
            shown_currency = converted_currency or currency
            decision = await RequireSinglePaymentUserApprovalTask(
                self.state,
                request,
                "Payment Request",
                f"Payment request of: {format_amount(shown_amount, shown_currency)}",
            ).run()
            if decision is None:
                logger.info("Payment request %s deferred to notification", request.event_id)
                return False
            if decision.kind != PaymentStatusKind.APPROVED:
                await SendSinglePaymentResponseTask(self.state, request, decision).run()
                return True
            service_name = await resolve_service_name(self.state, request.service_key)
            detail = "Payment"
        else:
            subscription = self._load_subscription(activities, subscription_id)
            self._check_subscription(protocol, subscription, amount, currency)
            service_name = subscription.service_name
            detail = "Recurrent payment"

        activity = NewActivity(
            type=ActivityType.PAY,
            service_key=request.service_key,
            service_name=service_name,
            detail=detail,
            date=self.state.clock.now(),
            request_id=request.event_id,
            status=ActivityStatus.PENDING,
            amount=amount,
            currency=currency,
            converted_amount=converted_amount,
            converted_currency=converted_currency,
            subscription_id=subscription_id,
            invoice=content.invoice,
        )

        wallet_info = await GetWalletInfoTask(self.state).run()
        if wallet_info is None:
            await self._record_failure(activity, f"{detail} failed: wallet not provided.")
            raise _Rejected(f"{detail} failed: no wallet provided.")

        invoice_sats = -(-protocol.parse_invoice(content.invoice).amount_msat // 1000)
        if wallet_info.balance_sats < invoice_sats:
            await self._record_failure(activity, f"{detail} failed: insufficient wallet balance.")
            raise _Rejected(f"{detail} failed: insufficient wallet balance.")

        await StartPaymentTask(self.state, activity, request, subscription_id).run()
        return True

    @staticmethod
    def _load_subscription(activities: Any, subscription_id: str) -> Subscription:
        try:
            subscription = activities.get_subscription(subscription_id)
        except Exception:
            logger.exception("Failed to load subscription %s", subscription_id)
            raise _Rejected(
                "Failed to retrieve subscription from database. "
                "Please try again or contact support if the issue persists."
            ) from None
        if subscription is None:
            raise _Rejected(f"Subscription with ID {subscription_id} not found in database")
        return subscription

    def _check_subscription(
        self, protocol: Any, subscription: Subscription, amount: float, currency: str
    ) -> None:
        if not same_amount(amount, subscription.amount) or currency != subscription.currency:
            raise _Rejected(
                "Payment amount does not match subscription amount.\n"
                f"Expected: {subscription.amount} {subscription.currency}\n"
                f"Received: {amount} {currency}"
            )

        # Nothing paid yet: the first charge is due at first_payment_due.
        next_due: float | None = subscription.recurrence_first_payment_due
        if subscription.last_payment_date is not None:
            next_due = protocol.next_occurrence(
                subscription.recurrence_calendar, subscription.last_payment_date
            )
        if next_due is None or next_due > self.state.clock.now():
            raise _Rejected("Payment is not due yet. Please wait till the next payment is scheduled.")

    async def _record_failure(self, activity: NewActivity, detail: str) -> None:
        await SaveActivityTask(
            self.state,
            NewActivity(
                type=activity.type,
                service_key=activity.service_key,
                service_name=activity.service_name,
                detail=detail,
                date=activity.date,
                request_id=activity.request_id,
                status=ActivityStatus.NEGATIVE,
                amount=activity.amount,
                currency=activity.currency,
                converted_amount=activity.converted_amount,
                converted_currency=activity.converted_currency,
                subscription_id=activity.subscription_id,
            ),
        ).run()

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (SinglePaymentRequest.from_dict(raw[0]),)


@task_registry.register
class CheckAmountTask(Task[bool]):
    """Does the invoice match the requested amount (within tolerance)?"""

    requires = (ProviderName.PROTOCOL, ProviderName.CURRENCY)

    async def execute(self, providers: tuple[Any, ...], request: SinglePaymentRequest) -> bool:
        protocol, converter = providers
        content = request.content
        invoice_msat = int(protocol.parse_invoice(content.invoice).amount_msat)

        if content.currency.kind == CurrencyKind.MILLISATS:
            requested_msat = int(content.amount)
        else:
            converted = await converter.convert_amount(
                content.amount / 100, content.currency.symbol(), "MSATS"
            )
            requested_msat = round(converted)

        ok = abs(invoice_msat - requested_msat) <= amount_tolerance(invoice_msat)
        if not ok:
            logger.warning(
                "Invoice amount mismatch request=%s invoice_msat=%s requested_msat=%s",
                request.event_id,
                invoice_msat,
                requested_msat,
            )
        return ok

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return (SinglePaymentRequest.from_dict(raw[0]),)


@task_registry.register
class RequireSinglePaymentUserApprovalTask(Task[PaymentStatus | None]):
    requires = (ProviderName.PROMPT_USER,)

    async def execute(
        self,
        providers: tuple[Any, ...],
        request: SinglePaymentRequest,
        title: str,
        body: str,
    ) -> PaymentStatus | None:
        (prompt_user,) = providers
        return await require_user_approval(
            prompt_user,
            self.state.clock,
            request_id=request.event_id,
            kind=PendingRequestKind.PAYMENT,
            metadata=request,
            notification=NotificationContent(
                title=title,
                body=body,
                data={"type": "payment", "request_id": request.event_id},
            ),
        )

    def should_cache(self, result: PaymentStatus | None) -> bool:
        return result is not None

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        request, title, body = raw
        return SinglePaymentRequest.from_dict(request), str(title), str(body)

    @classmethod
    def decode_result(cls, raw: Any) -> PaymentStatus | None:
        return None if raw is None else PaymentStatus.from_dict(raw)
