"""Scheduling business logic layer."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.config import get_settings
from bookindoor.core.database import get_db_session
from bookindoor.modules.booking.ledger import BookingLedger
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.grounds.repository import GroundsRepository
from bookindoor.modules.scheduling.calendar import AnnotatedSlot, annotate, generate_slots
from bookindoor.shared.exceptions import GroundNotFoundException

settings = get_settings()


class SchedulingService:
    """Builds the per-day slot calendar of a ground."""

    def __init__(self, grounds_repository: GroundsRepository, ledger: BookingLedger) -> None:
        self.grounds_repository = grounds_repository
        self.ledger = ledger

    async def list_slots(self, ground_id: UUID, date: dt.date) -> list[AnnotatedSlot]:
        """All slots of the operating window, each marked available or booked."""
        ground = await self.grounds_repository.get_ground_by_id(ground_id)
        if ground is None:
            raise GroundNotFoundException("Ground not found")

        slot_minutes = settings.slot_duration_minutes
        slots = generate_slots(ground.open_from, ground.open_to, slot_minutes)
        booked = await self.ledger.list_booked_start_times(ground_id, date)
        return annotate(slots, booked, slot_minutes)


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(GroundsRepository(session), BookingLedger(BookingRepository(session)))
