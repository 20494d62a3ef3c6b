"""Ground directory ORM models (owned by ground management, read here)."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookindoor.core.database import Base, BaseModelMixin

if TYPE_CHECKING:
    from bookindoor.modules.identity.models import User


class Ground(BaseModelMixin, Base):
    """Bookable venue with a daily operating window."""

    __tablename__ = "grounds"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(512), nullable=False)
    contact_number: Mapped[str] = mapped_column(String(32), nullable=False)
    ground_type: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "HH:MM", local venue time; open_to is exclusive
    open_from: Mapped[str] = mapped_column(String(5), nullable=False)
    open_to: Mapped[str] = mapped_column(String(5), nullable=False)

    owner_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    owner: Mapped["User"] = relationship(back_populates="grounds")
    sports: Mapped[list["GroundSport"]] = relationship(
        back_populates="ground",
        cascade="all, delete-orphan",
        order_by="GroundSport.name",
    )


class GroundSport(BaseModelMixin, Base):
    """Sport offered on a ground with its hourly price."""

    __tablename__ = "ground_sports"
    __table_args__ = (
        UniqueConstraint("ground_id", "name", name="uq_ground_sports_ground_id_name"),
        CheckConstraint("price_per_hour > 0", name="positive_price"),
    )

    ground_id: Mapped[UUID] = mapped_column(
        ForeignKey("grounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    ground: Mapped[Ground] = relationship(back_populates="sports")
