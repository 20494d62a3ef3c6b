"""Single write path for bookings.

Every component that creates or mutates a booking goes through
``BookingLedger`` so slot uniqueness and the lifecycle rules are enforced in
one place.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Collection
from decimal import Decimal
from uuid import UUID

from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum
from bookindoor.modules.booking.lifecycle import check_payment_transition, check_status_transition
from bookindoor.modules.booking.models import Booking
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.booking.schemas import BookingDraft
from bookindoor.shared.exceptions import BookingNotFoundException, SlotConflictException
from bookindoor.shared.utils import utc_now

logger = logging.getLogger(__name__)


class BookingLedger:
    def __init__(self, repository: BookingRepository) -> None:
        self.repository = repository

    async def find_conflicts(
        self,
        ground_id: UUID,
        date: dt.date,
        candidate_start_times: Collection[str],
    ) -> set[str]:
        """Start times among the candidates already held by a live booking."""
        if not candidate_start_times:
            return set()
        return await self.repository.list_active_claims(ground_id, date, candidate_start_times)

    async def create(self, draft: BookingDraft) -> Booking:
        """Persist a booking; fails SlotConflictException if any slot is taken."""
        taken = await self.find_conflicts(draft.ground_id, draft.date, draft.start_times)
        if taken:
            raise SlotConflictException(
                f"Some time slots on {draft.date.isoformat()} are already booked: "
                f"{', '.join(sorted(taken))}",
                taken,
            )
        booking = await self.repository.add_booking(draft)
        logger.info(
            "Booking %s created for ground %s on %s (%s)",
            booking.id,
            draft.ground_id,
            draft.date.isoformat(),
            ", ".join(draft.start_times),
        )
        return booking

    async def get(self, booking_id: UUID) -> Booking:
        booking = await self.repository.get_booking_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException("Booking not found")
        return booking

    async def list_payment_group(self, payment_group_id: UUID) -> list[Booking]:
        """Bookings of the group, possibly none."""
        return await self.repository.list_by_payment_group(payment_group_id)

    async def find_by_payment_group(self, payment_group_id: UUID) -> list[Booking]:
        bookings = await self.list_payment_group(payment_group_id)
        if not bookings:
            raise BookingNotFoundException("Booking not found")
        return bookings

    async def list_booked_start_times(self, ground_id: UUID, date: dt.date) -> set[str]:
        return await self.repository.list_active_claims(ground_id, date)

    async def list_bookings(
        self,
        ground_ids: Collection[UUID] | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        return await self.repository.list_bookings(ground_ids, limit, offset)

    async def update_status(
        self,
        booking_id: UUID,
        *,
        status: BookingStatusEnum | None = None,
        payment_status: PaymentStatusEnum | None = None,
    ) -> Booking:
        booking = await self.get(booking_id)
        await self._apply([booking], status=status, payment_status=payment_status)
        return booking

    async def update_group_status(
        self,
        payment_group_id: UUID,
        *,
        status: BookingStatusEnum | None = None,
        payment_status: PaymentStatusEnum | None = None,
    ) -> tuple[list[Booking], bool]:
        """Transition every booking of the group; returns (bookings, changed).

        All transitions are validated before any booking is touched, so the
        group moves together or not at all.
        """
        bookings = await self.find_by_payment_group(payment_group_id)
        changed = await self._apply(bookings, status=status, payment_status=payment_status)
        return bookings, changed

    async def record_gateway_payment(
        self,
        bookings: list[Booking],
        gateway_payment_id: str,
        paid_amount: Decimal,
    ) -> None:
        """Store gateway correlation fields; these never drive pricing."""
        paid_at = utc_now()
        for booking in bookings:
            if booking.gateway_payment_id == gateway_payment_id and booking.paid_amount == paid_amount:
                continue
            booking.gateway_payment_id = gateway_payment_id
            booking.paid_amount = paid_amount
            booking.paid_at = paid_at
            await self.repository.save(booking)

    async def _apply(
        self,
        bookings: list[Booking],
        *,
        status: BookingStatusEnum | None,
        payment_status: PaymentStatusEnum | None,
    ) -> bool:
        plan: list[tuple[Booking, bool, bool]] = []
        for booking in bookings:
            status_changes = status is not None and check_status_transition(booking.status, status)
            payment_changes = payment_status is not None and check_payment_transition(
                booking.payment_status,
                payment_status,
            )
            plan.append((booking, status_changes, payment_changes))

        now = utc_now()
        changed = False
        for booking, status_changes, payment_changes in plan:
            if not (status_changes or payment_changes):
                continue
            changed = True
            if payment_changes:
                booking.payment_status = payment_status
            if status_changes:
                booking.status = status
                if status == BookingStatusEnum.CONFIRMED:
                    booking.confirmed_at = now
                elif status == BookingStatusEnum.CANCELLED:
                    booking.cancelled_at = now
                    await self.repository.release_claims(booking)
            await self.repository.save(booking)
        return changed
