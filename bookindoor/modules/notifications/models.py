"""Notifications ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from bookindoor.core.database import Base, BaseModelMixin
from bookindoor.core.enums import NotificationStatusEnum


class Notification(BaseModelMixin, Base):
    """Message rendered for one recipient of a booking event.

    Delivery itself is done by the mail relay reading ``pending``/``sent``
    rows; guests have no user row, so the address is stored directly.
    """

    __tablename__ = "notifications"

    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    payment_group_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    channel: Mapped[str] = mapped_column(String(32), default="email", nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatusEnum] = mapped_column(
        SAEnum(NotificationStatusEnum, name="notification_status_enum", native_enum=False),
        default=NotificationStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
