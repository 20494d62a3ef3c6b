"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from bookindoor.core.config import get_settings
from bookindoor.core.enums import RoleEnum
from bookindoor.modules.booking.schemas import (
    BookingRead,
    BookingStatusUpdate,
    ReservationCreate,
    ReservationRead,
)
from bookindoor.modules.booking.service import ReservationService, get_reservation_service
from bookindoor.modules.identity.service import get_optional_user, require_roles
from bookindoor.shared.pagination import Page, build_page, get_pagination_params

settings = get_settings()
router = APIRouter(prefix="/booking", tags=["booking"])

require_operator = require_roles(RoleEnum.ADMIN, RoleEnum.SUPER_ADMIN)


@router.post("", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(get_optional_user),
) -> ReservationRead:
    """Reserve slots; the returned amount is the one to charge."""
    result = await service.create_reservation(payload, current_user)
    return ReservationRead(
        booking_ids=result.booking_ids,
        payment_group_id=result.payment_group_id,
        amount=result.amount,
        currency=settings.payhere_currency,
    )


@router.get("", response_model=Page[BookingRead])
async def list_bookings(
    ground_id: UUID | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(require_operator),
) -> Page[BookingRead]:
    """List bookings of the operator's grounds."""
    items, total = await service.list_bookings(current_user, ground_id, pagination.limit, pagination.offset)
    serialized = [BookingRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{booking_id:uuid}", response_model=BookingRead)
async def get_booking(
    booking_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(require_operator),
) -> BookingRead:
    booking = await service.get_booking(booking_id, current_user)
    return BookingRead.model_validate(booking)


@router.patch("/{booking_id:uuid}", response_model=BookingRead)
async def update_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    service: ReservationService = Depends(get_reservation_service),
    current_user=Depends(require_operator),
) -> BookingRead:
    """Override status and/or payment status (operators)."""
    booking = await service.update_booking_status(booking_id, payload, current_user)
    return BookingRead.model_validate(booking)
