"""Ground directory repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookindoor.modules.grounds.models import Ground


class GroundsRepository:
    """Read-only access to grounds."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_ground_by_id(self, ground_id: UUID) -> Ground | None:
        # populate_existing: pricing must see the current row, never an identity-map copy
        stmt = (
            select(Ground)
            .options(selectinload(Ground.sports), selectinload(Ground.owner))
            .where(Ground.id == ground_id)
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def list_ground_ids_by_owner(self, owner_id: UUID) -> list[UUID]:
        stmt = select(Ground.id).where(Ground.owner_id == owner_id)
        return list((await self.session.scalars(stmt)).all())
