"""Scheduling schemas."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from bookindoor.core.enums import SlotAvailabilityEnum


class SlotRead(BaseModel):
    """One slot of the day calendar."""

    model_config = ConfigDict(from_attributes=True)

    time_slot: str
    start_time: str
    end_time: str
    status: SlotAvailabilityEnum


class DayCalendarRead(BaseModel):
    ground_id: UUID
    date: dt.date
    slot_minutes: int
    slots: list[SlotRead]
