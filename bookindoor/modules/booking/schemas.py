"""Booking schemas."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum


class GuestDetails(BaseModel):
    """Contact details of a customer booking without an account."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=5, max_length=32)
    email: EmailStr | None = None
    national_id: str | None = Field(default=None, max_length=32)


class ReservationItem(BaseModel):
    """Slots requested on one date."""

    model_config = ConfigDict(extra="ignore")

    date: dt.date
    time_slots: list[str] = Field(default_factory=list)

    @field_validator("time_slots", mode="before")
    @classmethod
    def accept_slot_objects(cls, value: object) -> object:
        """Accept ``["09:00"]`` as well as ``[{"start_time": "09:00"}]``."""
        if isinstance(value, list):
            return [
                item.get("start_time", item.get("startTime")) if isinstance(item, dict) else item
                for item in value
            ]
        return value

    @field_validator("time_slots")
    @classmethod
    def dedupe_and_sort(cls, value: list[str]) -> list[str]:
        return sorted(set(value))


class ReservationCreate(BaseModel):
    """Create reservation request.

    Client-side totals are not part of the contract; an ``amount`` or
    ``total_amount`` field in the body is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    ground_id: UUID
    sport_name: str = Field(min_length=1, max_length=64)
    bookings: list[ReservationItem] = Field(default_factory=list)
    guest: GuestDetails | None = None
    payment_status: PaymentStatusEnum | None = None
    payment_group_id: UUID | None = None

    @model_validator(mode="after")
    def merge_same_dates(self) -> "ReservationCreate":
        merged: dict[dt.date, set[str]] = {}
        for item in self.bookings:
            merged.setdefault(item.date, set()).update(item.time_slots)
        self.bookings = [
            ReservationItem(date=day, time_slots=sorted(starts))
            for day, starts in sorted(merged.items())
        ]
        return self


class BookingStatusUpdate(BaseModel):
    """Operator override of booking state."""

    model_config = ConfigDict(extra="ignore")

    status: BookingStatusEnum | None = None
    payment_status: PaymentStatusEnum | None = None

    @model_validator(mode="after")
    def require_change(self) -> "BookingStatusUpdate":
        if self.status is None and self.payment_status is None:
            raise ValueError("Provide status and/or payment_status")
        return self


@dataclass(frozen=True, slots=True)
class BookingDraft:
    """Validated, priced booking ready to be persisted."""

    ground_id: UUID
    sport_name: str
    date: dt.date
    start_times: tuple[str, ...]
    total_amount: Decimal
    payment_status: PaymentStatusEnum
    payment_group_id: UUID
    user_id: UUID | None = None
    guest: GuestDetails | None = None
    status: BookingStatusEnum = BookingStatusEnum.RESERVED


class BookingRead(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ground_id: UUID
    sport_name: str
    user_id: UUID | None
    guest_name: str | None
    guest_phone: str | None
    guest_email: str | None
    date: dt.date
    time_slots: list[str]
    total_amount: Decimal
    status: BookingStatusEnum
    payment_status: PaymentStatusEnum
    payment_group_id: UUID
    gateway_payment_id: str | None
    paid_amount: Decimal | None
    confirmed_at: dt.datetime | None
    cancelled_at: dt.datetime | None
    created_at: dt.datetime


class ReservationRead(BaseModel):
    """Identifiers and the authoritative amount to charge."""

    booking_ids: list[UUID]
    payment_group_id: UUID
    amount: Decimal
    currency: str
