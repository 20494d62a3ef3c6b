"""Identity repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookindoor.core.enums import RoleEnum
from bookindoor.modules.identity.models import Role, User


class IdentityRepository:
    """Read access to accounts; accounts are managed elsewhere."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_role_by_name(self, role_name: RoleEnum) -> Role | None:
        stmt = select(Role).where(Role.name == role_name)
        return await self.session.scalar(stmt)

    async def create_role(self, role_name: RoleEnum) -> Role:
        role = Role(name=role_name)
        self.session.add(role)
        await self.session.flush()
        return role

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        stmt = select(User).options(selectinload(User.role)).where(User.id == user_id)
        return await self.session.scalar(stmt)
