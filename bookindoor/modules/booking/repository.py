"""Booking repository layer."""

from __future__ import annotations

import datetime as dt
from collections.abc import Collection
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookindoor.core.database import is_constraint_violation
from bookindoor.modules.booking.models import ACTIVE_CLAIM_INDEX, Booking, BookingSlot
from bookindoor.modules.booking.schemas import BookingDraft
from bookindoor.modules.grounds.models import Ground
from bookindoor.shared.exceptions import SlotConflictException


class BookingRepository:
    """DB operations for booking domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active_claims(
        self,
        ground_id: UUID,
        date: dt.date,
        start_times: Collection[str] | None = None,
    ) -> set[str]:
        stmt = select(BookingSlot.start_time).where(
            BookingSlot.ground_id == ground_id,
            BookingSlot.date == date,
            BookingSlot.is_active.is_(True),
        )
        if start_times is not None:
            stmt = stmt.where(BookingSlot.start_time.in_(list(start_times)))
        return set((await self.session.scalars(stmt)).all())

    async def add_booking(self, draft: BookingDraft) -> Booking:
        """Insert booking and its slot claims atomically.

        The claim index is the final arbiter: a concurrent insert that won the
        race surfaces here as SlotConflictException even when the earlier
        availability check passed.
        """
        guest = draft.guest
        booking = Booking(
            ground_id=draft.ground_id,
            sport_name=draft.sport_name,
            user_id=draft.user_id,
            guest_name=guest.name if guest else None,
            guest_phone=guest.phone if guest else None,
            guest_email=str(guest.email) if guest and guest.email else None,
            guest_national_id=guest.national_id if guest else None,
            date=draft.date,
            total_amount=draft.total_amount,
            status=draft.status,
            payment_status=draft.payment_status,
            payment_group_id=draft.payment_group_id,
            slots=[
                BookingSlot(
                    ground_id=draft.ground_id,
                    date=draft.date,
                    start_time=start_time,
                    is_active=True,
                )
                for start_time in draft.start_times
            ],
        )
        try:
            async with self.session.begin_nested():
                self.session.add(booking)
                await self.session.flush()
        except IntegrityError as exc:
            if not is_constraint_violation(exc, ACTIVE_CLAIM_INDEX):
                raise
            raise SlotConflictException(
                f"Some time slots on {draft.date.isoformat()} were just booked by someone else",
                set(draft.start_times),
            ) from exc
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Booking | None:
        stmt = select(Booking).options(selectinload(Booking.slots)).where(Booking.id == booking_id)
        return await self.session.scalar(stmt)

    async def list_by_payment_group(self, payment_group_id: UUID) -> list[Booking]:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.slots))
            .where(Booking.payment_group_id == payment_group_id)
            .order_by(Booking.date.asc(), Booking.created_at.asc())
            .with_for_update()
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_group_with_contacts(self, payment_group_id: UUID) -> list[Booking]:
        """Group bookings with ground, owner and user loaded for messaging."""
        stmt = (
            select(Booking)
            .options(
                selectinload(Booking.slots),
                selectinload(Booking.user),
                selectinload(Booking.ground).selectinload(Ground.owner),
            )
            .where(Booking.payment_group_id == payment_group_id)
            .order_by(Booking.date.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_bookings(
        self,
        ground_ids: Collection[UUID] | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        base_stmt: Select[tuple[Booking]] = select(Booking).options(selectinload(Booking.slots))
        if ground_ids is not None:
            base_stmt = base_stmt.where(Booking.ground_id.in_(list(ground_ids)))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Booking.date.desc(), Booking.created_at.desc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def release_claims(self, booking: Booking) -> None:
        for slot in booking.slots:
            slot.is_active = False
        await self.session.flush()

    async def save(self, booking: Booking) -> Booking:
        await self.session.flush()
        return booking
