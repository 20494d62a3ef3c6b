"""Identity ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookindoor.core.database import Base, BaseModelMixin
from bookindoor.core.enums import RoleEnum

if TYPE_CHECKING:
    from bookindoor.modules.grounds.models import Ground


class Role(BaseModelMixin, Base):
    """System role model."""

    __tablename__ = "roles"

    name: Mapped[RoleEnum] = mapped_column(
        SAEnum(RoleEnum, name="role_enum", native_enum=False),
        unique=True,
        nullable=False,
    )

    users: Mapped[list["User"]] = relationship(back_populates="role")


class User(BaseModelMixin, Base):
    """Registered account: a customer or a ground operator."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    role_id: Mapped[UUID] = mapped_column(ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False)
    role: Mapped[Role] = relationship(back_populates="users")

    grounds: Mapped[list["Ground"]] = relationship(back_populates="owner")

    @property
    def is_operator(self) -> bool:
        return self.role.name in (RoleEnum.ADMIN, RoleEnum.SUPER_ADMIN)
