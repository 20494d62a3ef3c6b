"""Audit log and transactional outbox repository."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.enums import OutboxStatusEnum
from bookindoor.modules.audit.models import AuditLog, OutboxEvent


class AuditRepository:
    """DB operations for audit and outbox."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_audit_log(
        self,
        actor_id: UUID | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict,
    ) -> AuditLog:
        log = AuditLog(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
        )
        self.session.add(log)
        await self.session.flush()
        return log

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> OutboxEvent:
        """Queue an event in the caller's transaction; it is dispatched later."""
        event = OutboxEvent(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
            status=OutboxStatusEnum.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatusEnum.PENDING)
            .order_by(OutboxEvent.occurred_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_failed_outbox(self, limit: int, max_retries: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatusEnum.FAILED,
                OutboxEvent.retries < max_retries,
            )
            .order_by(OutboxEvent.updated_at.asc())
            .limit(limit)
        )
        return list((await self.session.scalars(stmt)).all())

    async def mark_outbox_pending(self, event: OutboxEvent) -> OutboxEvent:
        event.status = OutboxStatusEnum.PENDING
        event.error_message = None
        event.processed_at = None
        await self.session.flush()
        return event

    async def mark_outbox_processed(self, event: OutboxEvent, processed_at: datetime) -> OutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        await self.session.flush()
        return event

    async def mark_outbox_failed(self, event: OutboxEvent, error_message: str) -> OutboxEvent:
        event.status = OutboxStatusEnum.FAILED
        event.retries += 1
        event.error_message = error_message[:2000]
        event.processed_at = None
        await self.session.flush()
        return event
