"""PayHere request signing and notification verification."""

from __future__ import annotations

import hashlib
import hmac
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from bookindoor.modules.payments.schemas import PayHereNotification


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def format_amount(amount: Decimal) -> str:
    """Two-decimal amount string without thousands separators, as PayHere signs it."""
    return f"{Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"


def checkout_hash(merchant_id: str, order_id: str, amount: Decimal, currency: str, merchant_secret: str) -> str:
    return _md5_upper(merchant_id + order_id + format_amount(amount) + currency + _md5_upper(merchant_secret))


def notification_signature(
    merchant_id: str,
    order_id: str,
    payhere_amount: str,
    payhere_currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    return _md5_upper(
        merchant_id + order_id + payhere_amount + payhere_currency + status_code + _md5_upper(merchant_secret),
    )


class SignatureVerifier(Protocol):
    def verify(self, notification: PayHereNotification, merchant_secret: str) -> bool: ...


class PayHereSignatureVerifier:
    """Recomputes ``md5sig`` over the fields exactly as received."""

    def verify(self, notification: PayHereNotification, merchant_secret: str) -> bool:
        if not merchant_secret or not notification.md5sig:
            return False
        expected = notification_signature(
            notification.merchant_id,
            notification.order_id,
            notification.payhere_amount,
            notification.payhere_currency,
            notification.status_code,
            merchant_secret,
        )
        return hmac.compare_digest(expected, notification.md5sig.strip().upper())
