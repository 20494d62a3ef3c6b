"""Cancellation API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from bookindoor.core.config import get_settings
from bookindoor.modules.booking.schemas import BookingRead
from bookindoor.modules.cancellation.schemas import CancellationRead, CancellationRequest, EligibilityRead
from bookindoor.modules.cancellation.service import CancellationPolicy, get_cancellation_policy

settings = get_settings()
router = APIRouter(prefix="/booking/cancel", tags=["cancellation"])


@router.get("", response_model=EligibilityRead)
async def check_cancellation(
    payment_group_id: UUID = Query(alias="id"),
    policy: CancellationPolicy = Depends(get_cancellation_policy),
) -> EligibilityRead:
    """Whether the group behind a cancellation link can still be cancelled."""
    eligibility = await policy.check_eligibility(payment_group_id)
    return EligibilityRead(
        payment_group_id=payment_group_id,
        earliest_start=eligibility.earliest_start.astimezone(settings.venue_zone),
        is_eligible=eligibility.is_eligible,
        reason=eligibility.reason,
        bookings=[BookingRead.model_validate(booking) for booking in eligibility.bookings],
    )


@router.post("", response_model=CancellationRead)
async def cancel_booking(
    payload: CancellationRequest,
    policy: CancellationPolicy = Depends(get_cancellation_policy),
) -> CancellationRead:
    result = await policy.cancel(payload.payment_group_id)
    message = "Booking was already cancelled" if result.already_cancelled else "Booking cancelled successfully"
    return CancellationRead(
        payment_group_id=payload.payment_group_id,
        already_cancelled=result.already_cancelled,
        message=message,
        bookings=[BookingRead.model_validate(booking) for booking in result.bookings],
    )
