"""Cancellation schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from bookindoor.modules.booking.schemas import BookingRead


class CancellationRequest(BaseModel):
    payment_group_id: UUID = Field(validation_alias=AliasChoices("id", "payment_group_id"))


class EligibilityRead(BaseModel):
    payment_group_id: UUID
    earliest_start: datetime
    is_eligible: bool
    reason: str | None
    bookings: list[BookingRead]


class CancellationRead(BaseModel):
    payment_group_id: UUID
    already_cancelled: bool
    message: str
    bookings: list[BookingRead]
