"""Payments API router."""

from __future__ import annotations

from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request

from bookindoor.core.config import get_settings
from bookindoor.modules.payments.schemas import CheckoutRead, CheckoutRequest, NotifyAck
from bookindoor.modules.payments.service import (
    CheckoutService,
    PaymentReconciler,
    get_checkout_service,
    get_payment_reconciler,
)

settings = get_settings()
router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/checkout", response_model=CheckoutRead)
async def prepare_checkout(
    payload: CheckoutRequest,
    service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutRead:
    """Signed checkout fields for a payment group, priced server-side."""
    return await service.prepare(payload)


@router.post("/payhere/notify", response_model=NotifyAck)
async def payhere_notify(
    request: Request,
    service: PaymentReconciler = Depends(get_payment_reconciler),
) -> NotifyAck:
    """PayHere server-to-server notification (form encoded)."""
    body = (await request.body()).decode("utf-8", errors="replace")
    params = dict(parse_qsl(body, keep_blank_values=True))
    await service.handle_callback(params, settings.payhere_merchant_secret)
    return NotifyAck()
