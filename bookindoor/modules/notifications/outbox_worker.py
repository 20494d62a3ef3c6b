"""Outbox consumer that turns booking events into e-mail notifications."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, nullcontext
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.config import get_settings
from bookindoor.core.enums import NotificationStatusEnum
from bookindoor.modules.audit.models import OutboxEvent
from bookindoor.modules.audit.repository import AuditRepository
from bookindoor.modules.booking.models import Booking
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.notifications.repository import NotificationsRepository
from bookindoor.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NotificationMessage:
    recipient: str
    title: str
    body: str
    user_id: UUID | None = None
    channel: str = "email"


def cancellation_link(payment_group_id: UUID | str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/booking/cancel?id={payment_group_id}"


def _schedule_lines(bookings: list[Booking]) -> str:
    return "\n".join(f"{booking.date.isoformat()}: {', '.join(booking.time_slots)}" for booking in bookings)


def _booking_date_label(bookings: list[Booking]) -> str:
    return "Multiple Dates" if len(bookings) > 1 else bookings[0].date.isoformat()


class NotificationsOutboxWorker:
    """Process outbox events and create notifications for customers and owners."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        booking_repository: BookingRepository,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
        session: AsyncSession | None = None,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.booking_repository = booking_repository
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider
        self.session = session

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            event_id, event_type = event.id, event.event_type
            try:
                async with self._event_scope():
                    dispatched = await self._dispatch(event)
                    await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["dispatched"] += dispatched
                stats["processed"] += 1
            except Exception as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event_id, event_type, exc)
                if self.session is not None:
                    await self.session.refresh(event)
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    def _event_scope(self) -> AbstractAsyncContextManager:
        """Savepoint per event: a failed event leaves none of its notifications behind."""
        if self.session is None:
            return nullcontext()
        return self.session.begin_nested()

    async def _dispatch(self, event: OutboxEvent) -> int:
        group_id = self._optional_uuid(event.payload or {}, "payment_group_id")
        messages = await self._build_messages(event)
        for message in messages:
            notification = await self.notifications_repository.create_notification(
                recipient=message.recipient,
                channel=message.channel,
                title=message.title,
                body=message.body,
                user_id=message.user_id,
                payment_group_id=group_id,
            )
            await self.notifications_repository.set_status(
                notification,
                NotificationStatusEnum.SENT,
                self.now_provider(),
            )
        return len(messages)

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    async def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        payload = event.payload or {}
        event_type = event.event_type
        if event_type not in ("booking.reserved", "booking.confirmed", "booking.cancelled"):
            return []

        group_id = self._required_uuid(payload, "payment_group_id")
        bookings = await self.booking_repository.list_group_with_contacts(group_id)
        if not bookings:
            raise ValueError(f"No bookings found for payment group {group_id}")

        first = bookings[0]
        ground = first.ground
        owner = ground.owner
        schedule = _schedule_lines(bookings)
        total = sum((Decimal(booking.total_amount) for booking in bookings), Decimal("0.00"))
        link = cancellation_link(group_id)
        messages: list[NotificationMessage] = []

        if event_type == "booking.reserved":
            if first.contact_email:
                messages.append(
                    NotificationMessage(
                        recipient=first.contact_email,
                        user_id=first.user_id,
                        title="Booking received - BookIndoor",
                        body=(
                            f"Hi {first.contact_name},\n\n"
                            f"Your booking at {ground.name} is reserved. Complete the payment to confirm it.\n\n"
                            f"Dates/Times:\n{schedule}\nTotal: Rs. {total:.2f}"
                        ),
                    ),
                )
            return messages

        if event_type == "booking.confirmed":
            paid = payload.get("paid_amount", f"{total:.2f}")
            if first.contact_email:
                messages.append(
                    NotificationMessage(
                        recipient=first.contact_email,
                        user_id=first.user_id,
                        title="Your Booking is Confirmed! - BookIndoor",
                        body=(
                            f"Hi {first.contact_name},\n\n"
                            f"Your booking at {ground.name} on {_booking_date_label(bookings)} is confirmed.\n\n"
                            f"Dates/Times:\n{schedule}\nAmount paid: Rs. {paid}\n\n"
                            f"Need to cancel? Use this link up to {settings.cancellation_window_hours} hours "
                            f"before your first slot:\n{link}"
                        ),
                    ),
                )
            if owner is not None and owner.email:
                messages.append(
                    NotificationMessage(
                        recipient=owner.email,
                        user_id=owner.id,
                        title="New Confirmed Booking Received - BookIndoor",
                        body=(
                            f"Hi {owner.name},\n\n"
                            f"You have received a new confirmed booking for {ground.name}.\n\n"
                            f"User: {first.contact_name}\nDates/Times:\n{schedule}\nTotal Paid: Rs. {paid}\n\n"
                            "Please check your admin panel for details."
                        ),
                    ),
                )
            return messages

        if first.contact_email:
            messages.append(
                NotificationMessage(
                    recipient=first.contact_email,
                    user_id=first.user_id,
                    title="Booking cancelled - BookIndoor",
                    body=f"Hi {first.contact_name},\n\nYour booking at {ground.name} was cancelled.\n\n{schedule}",
                ),
            )
        if owner is not None and owner.email:
            messages.append(
                NotificationMessage(
                    recipient=owner.email,
                    user_id=owner.id,
                    title="Booking cancelled - BookIndoor",
                    body=(
                        f"Hi {owner.name},\n\nA booking for {ground.name} was cancelled "
                        f"and its slots are free again.\n\nUser: {first.contact_name}\n{schedule}"
                    ),
                ),
            )
        return messages

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))

    @staticmethod
    def _optional_uuid(payload: dict, key: str) -> UUID | None:
        value = payload.get(key)
        if value is None:
            return None
        return UUID(str(value))
