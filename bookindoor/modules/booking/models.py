"""Booking ORM models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookindoor.core.database import Base, BaseModelMixin
from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum

if TYPE_CHECKING:
    from bookindoor.modules.grounds.models import Ground
    from bookindoor.modules.identity.models import User

ACTIVE_CLAIM_INDEX = "uq_booking_slots_active_claim"


class Booking(BaseModelMixin, Base):
    """One reservation of slots on a single date.

    Bookings reserved together share ``payment_group_id`` and are paid and
    cancelled as a unit.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (guest_phone IS NULL)", name="single_identity"),
        CheckConstraint("total_amount >= 0", name="non_negative_total"),
    )

    ground_id: Mapped[UUID] = mapped_column(
        ForeignKey("grounds.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sport_name: Mapped[str] = mapped_column(String(64), nullable=False)

    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    guest_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guest_national_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[BookingStatusEnum] = mapped_column(
        SAEnum(BookingStatusEnum, name="booking_status_enum", native_enum=False),
        default=BookingStatusEnum.RESERVED,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatusEnum] = mapped_column(
        SAEnum(PaymentStatusEnum, name="payment_status_enum", native_enum=False),
        default=PaymentStatusEnum.ADVANCED_PAID,
        nullable=False,
    )
    payment_group_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)

    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    paid_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    slots: Mapped[list["BookingSlot"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingSlot.start_time",
    )
    ground: Mapped["Ground"] = relationship()
    user: Mapped["User | None"] = relationship()

    @property
    def time_slots(self) -> list[str]:
        return [slot.start_time for slot in self.slots]

    @property
    def contact_name(self) -> str | None:
        if self.guest_name is not None:
            return self.guest_name
        return self.user.name if self.user is not None else None

    @property
    def contact_email(self) -> str | None:
        if self.guest_email is not None:
            return self.guest_email
        return self.user.email if self.user is not None else None


class BookingSlot(Base):
    """Claim of one slot start by a booking.

    The partial unique index admits a single active claim per
    (ground, date, start_time); cancelling releases the claim.
    """

    __tablename__ = "booking_slots"
    __table_args__ = (
        Index(
            ACTIVE_CLAIM_INDEX,
            "ground_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    booking_id: Mapped[UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    start_time: Mapped[str] = mapped_column(String(5), primary_key=True)
    ground_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    booking: Mapped[Booking] = relationship(back_populates="slots")
