# src/portal_workqueue/connectors/offline.py

"""
Offline deterministic collaborators used for demos when no network stack is configured.

- OfflineProtocolClient: keeps replies in memory, knows a few calendars,
  understands invoices minted by ``make_invoice``.
- OfflineWallet: in-memory balance, preimage = sha256(invoice).
- OfflineCurrencyConverter: fixed BTC rates.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..models import (
    AuthChallengeEvent,
    AuthResponseStatus,
    InvoiceInfo,
    PaymentStatus,
    Profile,
    RecurringPaymentRequest,
    RecurringPaymentResponse,
    SinglePaymentRequest,
    WalletInfo,
)

logger = logging.getLogger(__name__)

_INVOICE_RE = re.compile(r"^lnoffline(\d+)n([0-9a-f]+)$")

DAY = 24 * 60 * 60
CALENDAR_PERIODS: dict[str, float] = {
    "daily": DAY,
    "weekly": 7 * DAY,
    "monthly": 30 * DAY,
    "quarterly": 91 * DAY,
    "yearly": 365 * DAY,
}

MSAT_PER_BTC = 100_000_000_000
DEFAULT_BTC_RATES: dict[str, float] = {
    "USD": 60_000.0,
    "EUR": 55_000.0,
    "GBP": 47_000.0,
    "CHF": 53_000.0,
}


def make_invoice(amount_msat: int, memo: str = "") -> str:
    tag = hashlib.sha256(f"{amount_msat}:{memo}".encode("utf-8")).hexdigest()[:16]
    return f"lnoffline{int(amount_msat)}n{tag}"


@dataclass(slots=True)
class SentReply:
    kind: str
    request_id: str
    payload: Any


@dataclass
class OfflineProtocolClient:
    profiles: dict[str, Profile] = field(default_factory=dict)
    replies: list[SentReply] = field(default_factory=list)

    async def reply_auth_challenge(self, event: AuthChallengeEvent, status: AuthResponseStatus) -> None:
        logger.info("Auth reply event_id=%s decision=%s", event.event_id, status.decision)
        self.replies.append(SentReply("auth", event.event_id, status))

    async def reply_single_payment_request(
        self, request: SinglePaymentRequest, status: PaymentStatus
    ) -> None:
        logger.info("Payment reply event_id=%s status=%s", request.event_id, status.kind)
        self.replies.append(SentReply("payment", request.event_id, status))

    async def reply_recurring_payment_request(
        self, request: RecurringPaymentRequest, response: RecurringPaymentResponse
    ) -> None:
        logger.info("Subscription reply event_id=%s approved=%s", request.event_id, response.approved)
        self.replies.append(SentReply("subscription", request.event_id, response))

    async def fetch_profile(self, service_key: str) -> Profile | None:
        return self.profiles.get(service_key)

    def parse_invoice(self, invoice: str) -> InvoiceInfo:
        m = _INVOICE_RE.match(invoice.strip())
        if not m:
            raise ValueError(f"Unrecognized invoice: {invoice[:24]}")
        return InvoiceInfo(amount_msat=int(m.group(1)), payment_hash=m.group(2))

    def next_occurrence(self, calendar: str, after_ts: float) -> float | None:
        period = CALENDAR_PERIODS.get(calendar.strip().lower())
        if period is None:
            return None
        return float(after_ts) + period


class OfflineWallet:
    def __init__(self, balance_sats: int = 100_000, alias: str = "offline") -> None:
        self.balance_msat = int(balance_sats) * 1000
        self.alias = alias
        self.payments: list[str] = []

    async def get_wallet_info(self) -> WalletInfo:
        return WalletInfo(balance_sats=self.balance_msat // 1000, alias=self.alias)

    async def send_payment(self, invoice: str, amount_msat: int) -> str | None:
        if amount_msat > self.balance_msat:
            raise RuntimeError("Insufficient balance")
        self.balance_msat -= int(amount_msat)
        self.payments.append(invoice)
        return hashlib.sha256(invoice.encode("utf-8")).hexdigest()


class OfflineCurrencyConverter:
    """Converts between MSATS/SATS/BTC and fiat codes using fixed BTC prices."""

    def __init__(self, btc_rates: dict[str, float] | None = None) -> None:
        self._rates = {k.upper(): float(v) for k, v in (btc_rates or DEFAULT_BTC_RATES).items()}

    def _to_msat(self, amount: float, code: str) -> float:
        if code == "MSATS":
            return amount
        if code == "SATS":
            return amount * 1000
        if code == "BTC":
            return amount * MSAT_PER_BTC
        rate = self._rates.get(code)
        if rate is None:
            raise ValueError(f"Unknown currency: {code}")
        return amount / rate * MSAT_PER_BTC

    def _from_msat(self, msat: float, code: str) -> float:
        if code == "MSATS":
            return msat
        if code == "SATS":
            return msat / 1000
        if code == "BTC":
            return msat / MSAT_PER_BTC
        rate = self._rates.get(code)
        if rate is None:
            raise ValueError(f"Unknown currency: {code}")
        return msat / MSAT_PER_BTC * rate

    async def convert_amount(self, amount: float, source: str, target: str) -> float:
        src, dst = source.strip().upper(), target.strip().upper()
        if src == dst:
            return float(amount)
        return self._from_msat(self._to_msat(float(amount), src), dst)
