"""Payment gateway reconciliation and checkout preparation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.config import get_settings
from bookindoor.core.database import get_db_session
from bookindoor.core.enums import (
    BookingStatusEnum,
    GatewayOutcomeEnum,
    PaymentStatusEnum,
    PaymentTierEnum,
)
from bookindoor.core.metrics import record_payment_callback
from bookindoor.modules.audit.repository import AuditRepository
from bookindoor.modules.booking.ledger import BookingLedger
from bookindoor.modules.booking.lifecycle import furthest_payment_status
from bookindoor.modules.booking.models import Booking
from bookindoor.modules.booking.service import build_ledger
from bookindoor.modules.payments.schemas import CheckoutRead, CheckoutRequest, PayHereNotification
from bookindoor.modules.payments.signature import (
    PayHereSignatureVerifier,
    SignatureVerifier,
    checkout_hash,
    format_amount,
)
from bookindoor.shared.exceptions import (
    BookingNotFoundException,
    ConflictException,
    InvalidSignatureException,
    PaymentGatewayNotConfiguredException,
)

settings = get_settings()
logger = logging.getLogger(__name__)

TIER_PAYMENT_STATUS = {
    PaymentTierEnum.ADVANCE: PaymentStatusEnum.ADVANCED_PAID,
    PaymentTierEnum.FULL: PaymentStatusEnum.FULL_PAID,
}


def amount_due(bookings: list[Booking], tier: PaymentTierEnum, advance_ratio: Decimal) -> Decimal:
    """Amount the gateway should charge for the group under ``tier``."""
    total = sum((Decimal(booking.total_amount) for booking in bookings), Decimal("0.00"))
    if tier == PaymentTierEnum.ADVANCE:
        total = total * advance_ratio
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class PaymentReconciler:
    """Applies verified PayHere notifications to booking groups.

    The signature check runs before anything else is read or written. Only
    the success status code changes bookings; every other code is
    acknowledged and ignored, so redelivered notifications are harmless.
    """

    def __init__(
        self,
        ledger: BookingLedger,
        audit_repository: AuditRepository,
        verifier: SignatureVerifier | None = None,
        merchant_id: str | None = None,
        advance_ratio: Decimal | None = None,
    ) -> None:
        self.ledger = ledger
        self.audit_repository = audit_repository
        self.verifier = verifier or PayHereSignatureVerifier()
        self.merchant_id = settings.payhere_merchant_id if merchant_id is None else merchant_id
        self.advance_ratio = settings.advance_payment_ratio if advance_ratio is None else advance_ratio

    def _reject(self, reason: str, params: Mapping[str, str]) -> InvalidSignatureException:
        logger.warning(
            "Rejected payment notification (%s) order_id=%s payment_id=%s",
            reason,
            params.get("order_id"),
            params.get("payment_id"),
        )
        record_payment_callback("invalid_signature")
        return InvalidSignatureException("Payment notification rejected")

    async def handle_callback(self, params: Mapping[str, str], merchant_secret: str) -> GatewayOutcomeEnum:
        """Verify and apply one gateway notification; returns the mapped outcome."""
        if not merchant_secret:
            logger.error("PayHere merchant secret is not configured; notification dropped")
            raise PaymentGatewayNotConfiguredException("Payment gateway is not configured")

        try:
            notification = PayHereNotification.from_params(params)
        except InvalidSignatureException:
            raise self._reject("missing fields", params) from None
        if not self.verifier.verify(notification, merchant_secret):
            raise self._reject("signature mismatch", params)
        if self.merchant_id and notification.merchant_id != self.merchant_id:
            raise self._reject("merchant mismatch", params)

        outcome = notification.outcome
        if outcome != GatewayOutcomeEnum.SUCCESS:
            logger.info(
                "Payment notification for order %s with status %s (%s); no changes applied",
                notification.order_id,
                notification.status_code,
                outcome,
            )
            record_payment_callback(str(outcome))
            return outcome

        paid_amount = notification.amount
        if paid_amount is None:
            raise self._reject("unparseable amount", params)

        bookings = await self._load_group(notification)
        if any(booking.status == BookingStatusEnum.CANCELLED for booking in bookings):
            await self.ledger.record_gateway_payment(bookings, notification.payment_id, paid_amount)
            logger.warning(
                "Payment %s received for cancelled payment group %s; booking state left unchanged",
                notification.payment_id,
                notification.order_id,
            )
            record_payment_callback("ignored_cancelled")
            return outcome

        tier = notification.tier
        target = furthest_payment_status(
            TIER_PAYMENT_STATUS[tier],
            *(booking.payment_status for booking in bookings),
        )
        await self.ledger.record_gateway_payment(bookings, notification.payment_id, paid_amount)
        bookings, changed = await self.ledger.update_group_status(
            bookings[0].payment_group_id,
            status=BookingStatusEnum.CONFIRMED,
            payment_status=target,
        )

        due = amount_due(bookings, tier, self.advance_ratio)
        if paid_amount < due:
            logger.warning(
                "Payment group %s paid %s but %s was due for tier %s",
                notification.order_id,
                notification.payhere_amount,
                format_amount(due),
                tier,
            )

        if not changed:
            logger.info("Duplicate payment notification for group %s ignored", notification.order_id)
            record_payment_callback("duplicate")
            return outcome

        group_id = str(bookings[0].payment_group_id)
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking_group",
            aggregate_id=group_id,
            event_type="booking.confirmed",
            payload={
                "payment_group_id": group_id,
                "booking_ids": [str(booking.id) for booking in bookings],
                "payment_id": notification.payment_id,
                "paid_amount": format_amount(paid_amount),
                "payment_status": str(target),
            },
        )
        logger.info(
            "Payment group %s confirmed as %s (payment %s, amount %s)",
            group_id,
            target,
            notification.payment_id,
            notification.payhere_amount,
        )
        record_payment_callback("confirmed")
        return outcome

    async def _load_group(self, notification: PayHereNotification) -> list[Booking]:
        group_id = notification.payment_group_id
        bookings = await self.ledger.list_payment_group(group_id) if group_id is not None else []
        if not bookings:
            logger.warning(
                "Verified payment %s references unknown payment group %r",
                notification.payment_id,
                notification.order_id,
            )
            record_payment_callback("unknown_group")
            raise BookingNotFoundException("Booking not found")
        return bookings


class CheckoutService:
    """Builds the signed PayHere checkout form for a payment group."""

    def __init__(
        self,
        ledger: BookingLedger,
        merchant_id: str | None = None,
        merchant_secret: str | None = None,
        currency: str | None = None,
    ) -> None:
        self.ledger = ledger
        self.merchant_id = settings.payhere_merchant_id if merchant_id is None else merchant_id
        self.merchant_secret = settings.payhere_merchant_secret if merchant_secret is None else merchant_secret
        self.currency = currency or settings.payhere_currency

    async def prepare(self, payload: CheckoutRequest) -> CheckoutRead:
        if not (self.merchant_id and self.merchant_secret):
            raise PaymentGatewayNotConfiguredException("Payment gateway is not configured")

        bookings = await self.ledger.find_by_payment_group(payload.payment_group_id)
        if any(booking.status != BookingStatusEnum.RESERVED for booking in bookings):
            raise ConflictException("Payment group is already paid or cancelled")

        total = amount_due(bookings, PaymentTierEnum.FULL, Decimal(1))
        amount = amount_due(bookings, payload.tier, settings.advance_payment_ratio)
        order_id = str(payload.payment_group_id)
        return CheckoutRead(
            checkout_url=settings.payhere_checkout_url,
            merchant_id=self.merchant_id,
            order_id=order_id,
            amount=format_amount(amount),
            currency=self.currency,
            hash=checkout_hash(self.merchant_id, order_id, amount, self.currency, self.merchant_secret),
            custom_1=payload.tier,
            total_amount=total,
            items=f"{bookings[0].sport_name} booking ({len(bookings)} day(s))",
        )


async def get_payment_reconciler(session: AsyncSession = Depends(get_db_session)) -> PaymentReconciler:
    """Dependency provider for payment reconciler."""
    return PaymentReconciler(build_ledger(session), AuditRepository(session))


async def get_checkout_service(session: AsyncSession = Depends(get_db_session)) -> CheckoutService:
    return CheckoutService(build_ledger(session))
