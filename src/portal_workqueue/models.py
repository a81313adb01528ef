# src/portal_workqueue/models.py

"""
Domain data carried through workflow tasks.

Every type here is a plain dataclass so it can be fingerprinted and encoded
by the task codec. Each one also knows how to rebuild itself from the decoded
JSON form (``from_dict``), which is what the per-task decoders call when a
queued record or a cached result is revived.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


def _opt(data: Mapping[str, Any], key: str, conv: Callable[[Any], Any]) -> Any:
    value = data.get(key)
    return None if value is None else conv(value)


class CurrencyKind(StrEnum):
    MILLISATS = "millisats"
    FIAT = "fiat"


@dataclass(frozen=True, slots=True)
class Currency:
    kind: CurrencyKind
    code: str | None = None  # ISO code for fiat, e.g. "EUR"

    @classmethod
    def millisats(cls) -> Currency:
        return cls(kind=CurrencyKind.MILLISATS)

    @classmethod
    def fiat(cls, code: str) -> Currency:
        return cls(kind=CurrencyKind.FIAT, code=code.upper())

    def symbol(self) -> str:
        """Currency label used for storage ("SATS" for millisat amounts)."""
        if self.kind == CurrencyKind.MILLISATS:
            return "SATS"
        return (self.code or "UNKNOWN").upper()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Currency:
        return cls(kind=CurrencyKind(data["kind"]), code=data.get("code"))


# ---- inbound protocol requests ----


@dataclass(frozen=True, slots=True)
class AuthChallengeEvent:
    event_id: str
    service_key: str
    expires_at: int  # unix seconds
    required_permissions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthChallengeEvent:
        return cls(
            event_id=str(data["event_id"]),
            service_key=str(data["service_key"]),
            expires_at=int(data["expires_at"]),
            required_permissions=tuple(data.get("required_permissions") or ()),
        )


@dataclass(frozen=True, slots=True)
class SinglePaymentContent:
    amount: int  # minor units: millisats or fiat cents
    currency: Currency
    invoice: str
    description: str | None = None
    subscription_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SinglePaymentContent:
        return cls(
            amount=int(data["amount"]),
            currency=Currency.from_dict(data["currency"]),
            invoice=str(data["invoice"]),
            description=data.get("description"),
            subscription_id=data.get("subscription_id"),
        )


@dataclass(frozen=True, slots=True)
class SinglePaymentRequest:
    event_id: str
    service_key: str
    expires_at: int
    content: SinglePaymentContent

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SinglePaymentRequest:
        return cls(
            event_id=str(data["event_id"]),
            service_key=str(data["service_key"]),
            expires_at=int(data["expires_at"]),
            content=SinglePaymentContent.from_dict(data["content"]),
        )


@dataclass(frozen=True, slots=True)
class RecurrenceInfo:
    calendar: str
    first_payment_due: int
    max_payments: int | None = None
    until: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurrenceInfo:
        return cls(
            calendar=str(data["calendar"]),
            first_payment_due=int(data["first_payment_due"]),
            max_payments=_opt(data, "max_payments", int),
            until=_opt(data, "until", int),
        )


@dataclass(frozen=True, slots=True)
class RecurringPaymentContent:
    amount: int
    currency: Currency
    recurrence: RecurrenceInfo
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurringPaymentContent:
        return cls(
            amount=int(data["amount"]),
            currency=Currency.from_dict(data["currency"]),
            recurrence=RecurrenceInfo.from_dict(data["recurrence"]),
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class RecurringPaymentRequest:
    event_id: str
    service_key: str
    expires_at: int
    content: RecurringPaymentContent

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurringPaymentRequest:
        return cls(
            event_id=str(data["event_id"]),
            service_key=str(data["service_key"]),
            expires_at=int(data["expires_at"]),
            content=RecurringPaymentContent.from_dict(data["content"]),
        )


IncomingRequest = AuthChallengeEvent | SinglePaymentRequest | RecurringPaymentRequest


# ---- replies ----


class AuthDecision(StrEnum):
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class AuthResponseStatus:
    decision: AuthDecision
    reason: str | None = None
    granted_permissions: tuple[str, ...] = ()

    @property
    def approved(self) -> bool:
        return self.decision == AuthDecision.APPROVED

    @classmethod
    def approve(cls, granted_permissions: tuple[str, ...] = ()) -> AuthResponseStatus:
        return cls(decision=AuthDecision.APPROVED, granted_permissions=granted_permissions)

    @classmethod
    def decline(cls, reason: str | None = None) -> AuthResponseStatus:
        return cls(decision=AuthDecision.DECLINED, reason=reason)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthResponseStatus:
        return cls(
            decision=AuthDecision(data["decision"]),
            reason=data.get("reason"),
            granted_permissions=tuple(data.get("granted_permissions") or ()),
        )


class PaymentStatusKind(StrEnum):
    APPROVED = "approved"
    REJECTED = "rejected"
    FAILED = "failed"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class PaymentStatus:
    kind: PaymentStatusKind
    reason: str | None = None
    preimage: str | None = None

    @classmethod
    def approved(cls) -> PaymentStatus:
        return cls(kind=PaymentStatusKind.APPROVED)

    @classmethod
    def rejected(cls, reason: str) -> PaymentStatus:
        return cls(kind=PaymentStatusKind.REJECTED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> PaymentStatus:
        return cls(kind=PaymentStatusKind.FAILED, reason=reason)

    @classmethod
    def success(cls, preimage: str) -> PaymentStatus:
        return cls(kind=PaymentStatusKind.SUCCESS, preimage=preimage)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PaymentStatus:
        return cls(
            kind=PaymentStatusKind(data["kind"]),
            reason=data.get("reason"),
            preimage=data.get("preimage"),
        )


@dataclass(frozen=True, slots=True)
class RecurringPaymentResponse:
    approved: bool
    subscription_id: str | None = None
    reason: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurringPaymentResponse:
        return cls(
            approved=bool(data["approved"]),
            subscription_id=data.get("subscription_id"),
            reason=data.get("reason"),
        )


# ---- wallet / profiles ----


@dataclass(frozen=True, slots=True)
class WalletInfo:
    balance_sats: int
    alias: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WalletInfo:
        return cls(balance_sats=int(data["balance_sats"]), alias=data.get("alias"))


@dataclass(frozen=True, slots=True)
class Profile:
    name: str | None = None
    display_name: str | None = None
    nip05: str | None = None

    def service_name(self) -> str | None:
        """Best human-readable name for a service profile."""
        for candidate in (self.display_name, self.name, self.nip05):
            if candidate and candidate.strip():
                return candidate.strip()
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Profile:
        return cls(
            name=data.get("name"),
            display_name=data.get("display_name"),
            nip05=data.get("nip05"),
        )


@dataclass(frozen=True, slots=True)
class InvoiceInfo:
    amount_msat: int
    payment_hash: str | None = None


@dataclass(frozen=True, slots=True)
class RelayInfo:
    url: str
    connected: bool


# ---- persisted rows ----


class ActivityType(StrEnum):
    AUTH = "auth"
    PAY = "pay"
    RECEIVE = "receive"


class ActivityStatus(StrEnum):
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    PENDING = "pending"


class PaymentAction(StrEnum):
    STARTED = "payment_started"
    COMPLETED = "payment_completed"
    FAILED = "payment_failed"


@dataclass(frozen=True, slots=True)
class NewActivity:
    """Activity fields supplied by a workflow; id and created_at are assigned on insert."""

    type: ActivityType
    service_key: str
    service_name: str
    detail: str
    date: float
    request_id: str
    status: ActivityStatus = ActivityStatus.NEUTRAL
    amount: float | None = None
    currency: str | None = None
    converted_amount: float | None = None
    converted_currency: str | None = None
    subscription_id: str | None = None
    invoice: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NewActivity:
        return cls(
            type=ActivityType(data["type"]),
            service_key=str(data["service_key"]),
            service_name=str(data["service_name"]),
            detail=str(data["detail"]),
            date=float(data["date"]),
            request_id=str(data["request_id"]),
            status=ActivityStatus(data.get("status") or ActivityStatus.NEUTRAL),
            amount=_opt(data, "amount", float),
            currency=data.get("currency"),
            converted_amount=_opt(data, "converted_amount", float),
            converted_currency=data.get("converted_currency"),
            subscription_id=data.get("subscription_id"),
            invoice=data.get("invoice"),
        )


@dataclass(frozen=True, slots=True)
class Activity:
    id: str
    created_at: float
    type: ActivityType
    service_key: str
    service_name: str
    detail: str
    date: float
    request_id: str
    status: ActivityStatus
    amount: float | None = None
    currency: str | None = None
    converted_amount: float | None = None
    converted_currency: str | None = None
    subscription_id: str | None = None
    invoice: str | None = None


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class NewSubscription:
    id: str
    request_id: str
    service_key: str
    service_name: str
    amount: float
    currency: str
    recurrence_calendar: str
    recurrence_first_payment_due: float
    recurrence_max_payments: int | None = None
    recurrence_until: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NewSubscription:
        return cls(
            id=str(data["id"]),
            request_id=str(data["request_id"]),
            service_key=str(data["service_key"]),
            service_name=str(data["service_name"]),
            amount=float(data["amount"]),
            currency=str(data["currency"]),
            recurrence_calendar=str(data["recurrence_calendar"]),
            recurrence_first_payment_due=float(data["recurrence_first_payment_due"]),
            recurrence_max_payments=_opt(data, "recurrence_max_payments", int),
            recurrence_until=_opt(data, "recurrence_until", float),
        )


@dataclass(frozen=True, slots=True)
class Subscription:
    id: str
    request_id: str
    service_key: str
    service_name: str
    amount: float
    currency: str
    recurrence_calendar: str
    recurrence_first_payment_due: float
    status: SubscriptionStatus
    created_at: float
    recurrence_max_payments: int | None = None
    recurrence_until: float | None = None
    last_payment_date: float | None = None


@dataclass(frozen=True, slots=True)
class PaymentStatusEntry:
    id: int
    invoice: str
    action: PaymentAction
    created_at: float


# ---- user prompts ----


class PendingRequestKind(StrEnum):
    LOGIN = "login"
    PAYMENT = "payment"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True, slots=True)
class NotificationContent:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PendingRequest:
    """
    A request waiting for a human decision.

    ``result`` settles the workflow that raised the prompt: called with the
    decision, or with ``None`` when the app could not prompt and notified the
    user instead.
    """

    id: str
    kind: PendingRequestKind
    metadata: Any
    created_at: float
    result: Callable[[Any], None]


@dataclass(slots=True)
class UserPrompt:
    pending_request: PendingRequest
    notification: NotificationContent
