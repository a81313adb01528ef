# src/portal_workqueue/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

Tasks depend on Protocols instead of concrete implementations.
This keeps storage, protocol clients and wallets swappable and makes testing easier.
"""

from typing import Any, Awaitable, Protocol

from ..models import (
    Activity,
    ActivityStatus,
    AuthChallengeEvent,
    AuthResponseStatus,
    InvoiceInfo,
    NewActivity,
    NewSubscription,
    NotificationContent,
    PaymentAction,
    PaymentStatus,
    PaymentStatusEntry,
    Profile,
    RecurringPaymentRequest,
    RecurringPaymentResponse,
    SinglePaymentRequest,
    Subscription,
    UserPrompt,
    WalletInfo,
)
from ..tasks.task_models import TaskRecord


class Clock(Protocol):
    """Wall clock (unix seconds) plus the matching sleep."""

    def now(self) -> float: ...
    def sleep(self, seconds: float) -> Awaitable[None]: ...


class Storage(Protocol):
    """Key/value result cache and durable task queue sharing one engine."""

    # Cache
    def cache_get(self, key: str, now_ts: float | None = None) -> str | None: ...
    def cache_set(self, key: str, value: str, expires_at: float | None) -> None: ...
    def cache_delete(self, key: str) -> None: ...
    def cache_cleanup_expired(self, now_ts: float | None = None) -> int: ...

    # Queue
    def queue_enqueue(
            self,
            *,
            task_name: str,
            arguments: str,
            added_at: float,
            expires_at: float | None,
            priority: int = 0,
    ) -> int: ...
    def queue_extract_next(self, now_ts: float | None = None) -> TaskRecord | None: ...
    def queue_get(self, record_id: int) -> TaskRecord | None: ...
    def queue_list(
            self,
            *,
            exclude_expired: bool = True,
            now_ts: float | None = None,
            limit: int | None = None,
    ) -> list[TaskRecord]: ...
    def queue_delete(self, record_id: int) -> None: ...
    def queue_cleanup_expired(self, now_ts: float | None = None) -> int: ...
    def queue_count(self) -> int: ...


class ActivityRepo(Protocol):
    # Activities
    def add_activity(self, activity: NewActivity) -> str: ...
    def has_activity_with_request_id(self, request_id: str) -> bool: ...
    def get_activity(self, activity_id: str) -> Activity | None: ...
    def update_activity_status(
            self, activity_id: str, status: ActivityStatus, detail: str | None = None
    ) -> None: ...
    def list_activities(self, *, limit: int = 20) -> list[Activity]: ...

    # Subscriptions
    def add_subscription(self, subscription: NewSubscription) -> str: ...
    def get_subscription(self, subscription_id: str) -> Subscription | None: ...
    def update_subscription_last_payment(self, subscription_id: str, paid_at: float) -> None: ...

    # Payment status log
    def add_payment_status_entry(
            self, invoice: str, action: PaymentAction, now_ts: float | None = None
    ) -> int: ...
    def get_payment_status_entries(self, invoice: str) -> list[PaymentStatusEntry]: ...


class ProtocolClient(Protocol):
    """Network side of the app: replies to peers, profile lookups, invoice/calendar helpers."""

    def reply_auth_challenge(
            self, event: AuthChallengeEvent, status: AuthResponseStatus
    ) -> Awaitable[None]: ...
    def reply_single_payment_request(
            self, request: SinglePaymentRequest, status: PaymentStatus
    ) -> Awaitable[None]: ...
    def reply_recurring_payment_request(
            self, request: RecurringPaymentRequest, response: RecurringPaymentResponse
    ) -> Awaitable[None]: ...
    def fetch_profile(self, service_key: str) -> Awaitable[Profile | None]: ...

    def parse_invoice(self, invoice: str) -> InvoiceInfo: ...
    def next_occurrence(self, calendar: str, after_ts: float) -> float | None: ...


class Wallet(Protocol):
    def get_wallet_info(self) -> Awaitable[WalletInfo]: ...
    def send_payment(self, invoice: str, amount_msat: int) -> Awaitable[str | None]: ...


class RelayStatus(Protocol):
    def are_relays_connected(self) -> bool: ...


class NotificationSink(Protocol):
    def send_notification(self, content: NotificationContent) -> None: ...


class PromptUser(Protocol):
    """
    Asks a human to decide on a pending request.

    Implementations must eventually call ``prompt.pending_request.result``:
    with the decision, or with ``None`` when they only managed to notify.
    """

    def prompt_user(self, prompt: UserPrompt) -> None: ...


class EventEmitter(Protocol):
    def emit(self, event_name: str, data: dict[str, Any] | None = None) -> None: ...


class CurrencyConverter(Protocol):
    def convert_amount(self, amount: float, source: str, target: str) -> Awaitable[float]: ...
