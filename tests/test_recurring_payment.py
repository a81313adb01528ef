# tests/test_recurring_payment.py

from __future__ import annotations

import pytest

from portal_workqueue.models import (
    Currency,
    RecurrenceInfo,
    RecurringPaymentContent,
    RecurringPaymentRequest,
    SubscriptionStatus,
)
from portal_workqueue.workflows.recurring_payment import HandleRecurringPaymentRequestTask


def _request(clock, *, currency: Currency | None = None, amount: int = 2_000_000) -> RecurringPaymentRequest:
    return RecurringPaymentRequest(
        event_id="recurring-1",
        service_key="svc-key",
        expires_at=int(clock.now()) + 300,
        content=RecurringPaymentContent(
            amount=amount,
            currency=currency or Currency.millisats(),
            recurrence=RecurrenceInfo(
                calendar="weekly",
                first_payment_due=int(clock.now()) + 60,
                max_payments=12,
            ),
            description="Weekly plan",
        ),
    )


@pytest.mark.asyncio
async def test_approved_subscription_is_stored(
    state, clock, protocol, activities, events, prompt_user
) -> None:
    await HandleRecurringPaymentRequestTask(state, _request(clock)).run()

    (prompt,) = prompt_user.prompts
    assert prompt.notification.title == "Subscription Request"
    assert prompt.notification.body == "Subscription request of: 2,000 sats"

    (reply,) = protocol.replies
    assert reply.kind == "subscription"
    assert reply.payload.approved
    subscription_id = reply.payload.subscription_id
    assert subscription_id

    subscription = activities.get_subscription(subscription_id)
    assert subscription is not None
    assert subscription.request_id == "recurring-1"
    assert (subscription.amount, subscription.currency) == (2000.0, "SATS")
    assert subscription.recurrence_calendar == "weekly"
    assert subscription.recurrence_max_payments == 12
    assert subscription.recurrence_first_payment_due == clock.now() + 60
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.last_payment_date is None
    assert "subscription_added" in events.names()


@pytest.mark.asyncio
async def test_fiat_subscription_stores_whole_units(state, clock, protocol, activities) -> None:
    await HandleRecurringPaymentRequestTask(
        state, _request(clock, currency=Currency.fiat("eur"), amount=999)
    ).run()

    subscription = activities.get_subscription(protocol.replies[0].payload.subscription_id)
    assert subscription is not None
    assert (subscription.amount, subscription.currency) == (9.99, "EUR")


@pytest.mark.asyncio
async def test_declined_subscription_is_not_stored(
    state, clock, protocol, events, prompt_user
) -> None:
    prompt_user.decide = lambda _req: False

    await HandleRecurringPaymentRequestTask(state, _request(clock)).run()

    (reply,) = protocol.replies
    assert not reply.payload.approved
    assert reply.payload.subscription_id is None
    assert "subscription_added" not in events.names()


@pytest.mark.asyncio
async def test_unanswered_subscription_sends_nothing(state, clock, protocol, prompt_user) -> None:
    prompt_user.decide = lambda _req: None

    await HandleRecurringPaymentRequestTask(state, _request(clock)).run()

    assert protocol.replies == []


@pytest.mark.asyncio
async def test_unanswered_subscription_is_handled_when_asked_again(
    state, clock, protocol, activities, prompt_user
) -> None:
    request = _request(clock)
    prompt_user.decide = lambda _req: None
    assert await HandleRecurringPaymentRequestTask(state, request).run() is False

    prompt_user.decide = lambda _req: True
    clock.advance(5)

    assert await HandleRecurringPaymentRequestTask(state, request).run() is True
    assert len(prompt_user.prompts) == 2
    (reply,) = protocol.replies
    assert reply.payload.approved
    assert activities.get_subscription(reply.payload.subscription_id) is not None
