# src/portal_workqueue/workflows/start_payment.py

from __future__ import annotations

import logging
from typing import Any

from ..core.providers import ProviderName
from ..models import (
    ActivityStatus,
    NewActivity,
    PaymentAction,
    PaymentStatus,
    SinglePaymentRequest,
)
from ..tasks.task_base import Task, task_registry
from ..tasks.task_models import DAY_SECONDS
from .activity import SaveActivityTask, UpdateActivityStatusTask
from .relays import WaitForRelaysConnectedTask

logger = logging.getLogger(__name__)


@task_registry.register
class StartPaymentTask(Task[None]):
    """
    Pay an approved request and keep the service and the activity log in step:
    pending activity, "approved" reply, payment, then "success"/"failed".
    """

    requires = (ProviderName.PROTOCOL,)
    ttl = DAY_SECONDS

    async def execute(
        self,
        providers: tuple[Any, ...],
        activity: NewActivity,
        request: SinglePaymentRequest,
        subscription_id: str | None = None,
    ) -> None:
        (protocol,) = providers
        invoice = request.content.invoice

        await WaitForRelaysConnectedTask(self.state).run()

        activity_id = await SaveActivityTask(self.state, activity).run()
        await SendSinglePaymentResponseTask(self.state, request, PaymentStatus.approved()).run()
        await AddPaymentStatusTask(self.state, invoice, PaymentAction.STARTED).run()

        amount_msat = int(protocol.parse_invoice(invoice).amount_msat)
        try:
            preimage = await PayInvoiceTask(self.state, invoice, amount_msat).run()
        except Exception as e:
            logger.exception("Paying invoice failed request=%s", request.event_id)
            await AddPaymentStatusTask(self.state, invoice, PaymentAction.FAILED).run()
            await UpdateActivityStatusTask(
                self.state, activity_id, ActivityStatus.NEGATIVE, "Payment approved but failed to process"
            ).run()
            await SendSinglePaymentResponseTask(
                self.state, request, PaymentStatus.failed(f"Payment failed: {e}")
            ).run()
            return

        if not preimage:
            await AddPaymentStatusTask(self.state, invoice, PaymentAction.FAILED).run()
            await UpdateActivityStatusTask(
                self.state, activity_id, ActivityStatus.NEGATIVE, "Payment failed: no wallet is connected."
            ).run()
            await SendSinglePaymentResponseTask(
                self.state, request, PaymentStatus.failed("Payment failed: user has no linked wallet")
            ).run()
            return

        await SendSinglePaymentResponseTask(self.state, request, PaymentStatus.success(preimage)).run()
        if subscription_id:
            await UpdateSubscriptionLastPaymentTask(
                self.state, subscription_id, self.state.clock.now()
            ).run()
        await AddPaymentStatusTask(self.state, invoice, PaymentAction.COMPLETED).run()
        await UpdateActivityStatusTask(
            self.state, activity_id, ActivityStatus.POSITIVE, "Payment completed"
        ).run()
        logger.info("Payment completed request=%s", request.event_id)

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        activity, request, *rest = raw
        return (
            NewActivity.from_dict(activity),
            SinglePaymentRequest.from_dict(request),
            *rest,
        )


@task_registry.register
class SendSinglePaymentResponseTask(Task[None]):
    requires = (ProviderName.PROTOCOL,)

    async def execute(
        self,
        providers: tuple[Any, ...],
        request: SinglePaymentRequest,
        status: PaymentStatus,
    ) -> None:
        (protocol,) = providers
        await WaitForRelaysConnectedTask(self.state).run()
        await protocol.reply_single_payment_request(request, status)

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        return SinglePaymentRequest.from_dict(raw[0]), PaymentStatus.from_dict(raw[1])


@task_registry.register
class AddPaymentStatusTask(Task[int]):
    requires = (ProviderName.ACTIVITIES,)

    async def execute(self, providers: tuple[Any, ...], invoice: str, action: PaymentAction) -> int:
        (activities,) = providers
        return activities.add_payment_status_entry(invoice, PaymentAction(action), self.state.clock.now())

    @classmethod
    def decode_args(cls, raw: list[Any]) -> tuple[Any, ...]:
        invoice, action = raw
        return str(invoice), PaymentAction(action)


@task_registry.register
class PayInvoiceTask(Task[str | None]):
    """
    Pay through the active wallet. Returns the preimage, or None without a wallet.

    A paid invoice stays cached, so a replayed workflow never pays twice.
    """

    requires = (ProviderName.ACTIVE_WALLET,)

    async def execute(self, providers: tuple[Any, ...], invoice: str, amount_msat: int) -> str | None:
        (active_wallet,) = providers
        wallet = active_wallet.get_wallet()
        if wallet is None:
            return None
        preimage = await wallet.send_payment(invoice, int(amount_msat))
        logger.info("Invoice paid amount_msat=%s", amount_msat)
        return preimage

    def should_cache(self, result: str | None) -> bool:
        return bool(result)


@task_registry.register
class UpdateSubscriptionLastPaymentTask(Task[None]):
    requires = (ProviderName.ACTIVITIES,)

    async def execute(self, providers: tuple[Any, ...], subscription_id: str, paid_at: float) -> None:
        (activities,) = providers
        activities.update_subscription_last_payment(subscription_id, float(paid_at))
