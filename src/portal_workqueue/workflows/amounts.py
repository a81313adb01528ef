# src/portal_workqueue/workflows/amounts.py

from __future__ import annotations

import logging
import math

from ..core.ports import CurrencyConverter
from ..models import CurrencyKind, SinglePaymentContent, RecurringPaymentContent

logger = logging.getLogger(__name__)

DEFAULT_PREFERRED_CURRENCY = "USD"

# Invoice/request mismatch allowed: 1% up to 10,000,000 msat, 0.5% above.
SMALL_INVOICE_MSAT = 10_000_000
SMALL_TOLERANCE = 0.01
LARGE_TOLERANCE = 0.005

PaymentContent = SinglePaymentContent | RecurringPaymentContent


def stored_amount(content: PaymentContent) -> tuple[float, str]:
    """
    Amount and currency label as activities store them.

    Requests carry minor units: millisats become sats ("SATS"),
    fiat cents become whole units (ISO code).
    """
    if content.currency.kind == CurrencyKind.FIAT:
        return content.amount / 100, content.currency.symbol()
    return content.amount / 1000, "SATS"


def same_amount(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=0.0, abs_tol=1e-9)


def amount_tolerance(invoice_msat: int) -> float:
    pct = SMALL_TOLERANCE if invoice_msat <= SMALL_INVOICE_MSAT else LARGE_TOLERANCE
    return invoice_msat * pct


def format_amount(amount: float, currency: str | None) -> str:
    label = (currency or "").upper()
    if label == "SATS":
        return f"{amount:,.0f} sats" if float(amount).is_integer() else f"{amount:,.3f} sats"
    return f"{amount:,.2f} {label}".strip()


def preferred_currency(settings: object) -> str:
    raw = str(getattr(settings, "preferred_currency", "") or "").strip().upper()
    return raw or DEFAULT_PREFERRED_CURRENCY


async def convert_for_display(
    converter: CurrencyConverter,
    content: PaymentContent,
    preferred: str,
) -> tuple[float | None, str | None]:
    """
    Amount in the user's preferred currency, or (None, None) when it already
    is in that currency or the conversion failed.
    """
    _, label = stored_amount(content)
    if label.upper() == preferred.upper():
        return None, None

    if content.currency.kind == CurrencyKind.FIAT:
        source, amount = label, content.amount / 100
    else:
        source, amount = "MSATS", float(content.amount)

    try:
        converted = await converter.convert_amount(amount, source, preferred)
    except Exception:
        logger.warning("Currency conversion %s -> %s failed", source, preferred, exc_info=True)
        return None, None
    return float(converted), preferred
