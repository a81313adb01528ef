# src/portal_workqueue/workflows/__init__.py

"""
Workflow tasks.

Importing this package registers every workflow task class, then checks
that the registered set matches TaskKind exactly, so a queued record can
never name a workflow that has no class.
"""

from __future__ import annotations

from enum import StrEnum

from ..tasks.task_base import task_registry
from . import activity, auth, recurring_payment, relays, single_payment, start_payment, wallet


class TaskKind(StrEnum):
    CHECK_RELAY_STATUS = "CheckRelayStatusTask"
    WAIT_FOR_RELAYS_CONNECTED = "WaitForRelaysConnectedTask"

    SAVE_ACTIVITY = "SaveActivityTask"
    UPDATE_ACTIVITY_STATUS = "UpdateActivityStatusTask"
    SAVE_SUBSCRIPTION = "SaveSubscriptionTask"

    GET_WALLET_INFO = "GetWalletInfoTask"

    PROCESS_AUTH_REQUEST = "ProcessAuthRequestTask"
    REQUIRE_AUTH_USER_APPROVAL = "RequireAuthUserApprovalTask"
    SEND_AUTH_CHALLENGE_RESPONSE = "SendAuthChallengeResponseTask"
    FETCH_SERVICE_NAME = "FetchServiceNameTask"

    HANDLE_SINGLE_PAYMENT_REQUEST = "HandleSinglePaymentRequestTask"
    CHECK_AMOUNT = "CheckAmountTask"
    SEND_SINGLE_PAYMENT_RESPONSE = "SendSinglePaymentResponseTask"
    REQUIRE_SINGLE_PAYMENT_USER_APPROVAL = "RequireSinglePaymentUserApprovalTask"

    START_PAYMENT = "StartPaymentTask"
    ADD_PAYMENT_STATUS = "AddPaymentStatusTask"
    PAY_INVOICE = "PayInvoiceTask"
    UPDATE_SUBSCRIPTION_LAST_PAYMENT = "UpdateSubscriptionLastPaymentTask"

    HANDLE_RECURRING_PAYMENT_REQUEST = "HandleRecurringPaymentRequestTask"
    REQUIRE_RECURRING_PAYMENT_USER_APPROVAL = "RequireRecurringPaymentUserApprovalTask"
    SEND_RECURRING_PAYMENT_RESPONSE = "SendRecurringPaymentResponseTask"


task_registry.verify_complete(TaskKind, package=__name__)

__all__ = [
    "TaskKind",
    "activity",
    "auth",
    "recurring_payment",
    "relays",
    "single_payment",
    "start_payment",
    "wallet",
]
