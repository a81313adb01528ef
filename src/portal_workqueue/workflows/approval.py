# src/portal_workqueue/workflows/approval.py

"""
Waiting for a human decision.

A workflow hands a PendingRequest to the PromptUser provider and suspends
until its ``result`` callback fires. Foreground providers fire it with the
decision (approve/decline); headless ones fire it with None after posting a
notification, which the workflows treat as "stop here".
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from ..core.ports import Clock, PromptUser
from ..models import (
    AuthResponseStatus,
    NotificationContent,
    PaymentStatus,
    PendingRequest,
    PendingRequestKind,
    RecurringPaymentResponse,
    UserPrompt,
)

logger = logging.getLogger(__name__)


async def require_user_approval(
    prompt_user: PromptUser,
    clock: Clock,
    *,
    request_id: str,
    kind: PendingRequestKind,
    metadata: Any,
    notification: NotificationContent,
) -> Any | None:
    loop = asyncio.get_running_loop()
    decision: asyncio.Future[Any] = loop.create_future()

    def _settle(value: Any) -> None:
        if not decision.done():
            decision.set_result(value)

    pending = PendingRequest(
        id=request_id,
        kind=kind,
        metadata=metadata,
        created_at=clock.now(),
        result=_settle,
    )
    logger.info("Requesting user approval id=%s kind=%s", request_id, kind)
    prompt_user.prompt_user(UserPrompt(pending_request=pending, notification=notification))
    return await decision


def build_decision(pending: PendingRequest, approved: bool, reason: str | None = None) -> Any:
    """The value a pending request of this kind resolves with."""
    if pending.kind == PendingRequestKind.LOGIN:
        if approved:
            return AuthResponseStatus.approve()
        return AuthResponseStatus.decline(reason or "User declined")

    if pending.kind == PendingRequestKind.PAYMENT:
        if approved:
            return PaymentStatus.approved()
        return PaymentStatus.rejected(reason or "User rejected the payment")

    if approved:
        return RecurringPaymentResponse(approved=True, subscription_id=uuid.uuid4().hex)
    return RecurringPaymentResponse(approved=False, reason=reason or "User rejected the subscription")
