"""Scheduling API router."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from bookindoor.core.config import get_settings
from bookindoor.modules.scheduling.schemas import DayCalendarRead, SlotRead
from bookindoor.modules.scheduling.service import SchedulingService, get_scheduling_service

settings = get_settings()
router = APIRouter(prefix="/grounds", tags=["scheduling"])


@router.get("/{ground_id}/slots", response_model=DayCalendarRead)
async def list_slots(
    ground_id: UUID,
    date: dt.date = Query(...),
    service: SchedulingService = Depends(get_scheduling_service),
) -> DayCalendarRead:
    """Day calendar of a ground. Public."""
    slots = await service.list_slots(ground_id, date)
    return DayCalendarRead(
        ground_id=ground_id,
        date=date,
        slot_minutes=settings.slot_duration_minutes,
        slots=[
            SlotRead(time_slot=slot.time_slot, start_time=slot.start_time, end_time=slot.end_time, status=slot.status)
            for slot in slots
        ],
    )
