"""Link-based cancellation of a payment group.

Whoever holds the payment group id (sent in the booking e-mail) may cancel
it, provided the earliest slot of the group is far enough away.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.config import get_settings
from bookindoor.core.database import get_db_session
from bookindoor.core.enums import BookingStatusEnum
from bookindoor.modules.audit.repository import AuditRepository
from bookindoor.modules.booking.ledger import BookingLedger
from bookindoor.modules.booking.models import Booking
from bookindoor.modules.booking.service import build_ledger
from bookindoor.shared.exceptions import CancellationWindowPassedException
from bookindoor.shared.utils import utc_now, venue_datetime

settings = get_settings()
logger = logging.getLogger(__name__)

ALREADY_CANCELLED_REASON = "This booking has already been cancelled."


@dataclass(slots=True)
class Eligibility:
    bookings: list[Booking]
    earliest_start: dt.datetime
    is_eligible: bool
    reason: str | None

    @property
    def already_cancelled(self) -> bool:
        return any(booking.status == BookingStatusEnum.CANCELLED for booking in self.bookings)


@dataclass(slots=True)
class CancellationResult:
    bookings: list[Booking]
    already_cancelled: bool


def earliest_start(bookings: list[Booking], zone: ZoneInfo) -> dt.datetime:
    """Earliest slot start (UTC) over every booking/slot pair of the group."""
    return min(
        venue_datetime(booking.date, slot.start_time, zone)
        for booking in bookings
        for slot in booking.slots
    )


class CancellationPolicy:
    def __init__(
        self,
        ledger: BookingLedger,
        audit_repository: AuditRepository,
        window_hours: int | None = None,
        zone: ZoneInfo | None = None,
    ) -> None:
        self.ledger = ledger
        self.audit_repository = audit_repository
        self.window_hours = settings.cancellation_window_hours if window_hours is None else window_hours
        self.zone = zone or settings.venue_zone

    @property
    def window(self) -> dt.timedelta:
        return dt.timedelta(hours=self.window_hours)

    @property
    def window_reason(self) -> str:
        return f"Cancellations must be made at least {self.window_hours} hours in advance."

    async def check_eligibility(self, payment_group_id: UUID) -> Eligibility:
        """Read-only eligibility check; the answer is re-derived on cancel."""
        bookings = await self.ledger.find_by_payment_group(payment_group_id)
        return self._evaluate(bookings)

    def _evaluate(self, bookings: list[Booking]) -> Eligibility:
        earliest = earliest_start(bookings, self.zone)
        if any(booking.status == BookingStatusEnum.CANCELLED for booking in bookings):
            return Eligibility(bookings, earliest, False, ALREADY_CANCELLED_REASON)
        is_eligible = earliest - utc_now() >= self.window
        return Eligibility(bookings, earliest, is_eligible, None if is_eligible else self.window_reason)

    async def cancel(self, payment_group_id: UUID) -> CancellationResult:
        """Cancel every booking of the group, or none of them."""
        bookings = await self.ledger.find_by_payment_group(payment_group_id)
        eligibility = self._evaluate(bookings)
        if eligibility.already_cancelled:
            logger.info("Payment group %s is already cancelled", payment_group_id)
            return CancellationResult(bookings=bookings, already_cancelled=True)
        if not eligibility.is_eligible:
            raise CancellationWindowPassedException(eligibility.reason or self.window_reason)

        bookings, _ = await self.ledger.update_group_status(payment_group_id, status=BookingStatusEnum.CANCELLED)
        await self.audit_repository.create_outbox_event(
            aggregate_type="booking_group",
            aggregate_id=str(payment_group_id),
            event_type="booking.cancelled",
            payload={
                "payment_group_id": str(payment_group_id),
                "booking_ids": [str(booking.id) for booking in bookings],
                "cancelled_by": "customer",
            },
        )
        logger.info("Payment group %s cancelled (%d bookings)", payment_group_id, len(bookings))
        return CancellationResult(bookings=bookings, already_cancelled=False)


async def get_cancellation_policy(session: AsyncSession = Depends(get_db_session)) -> CancellationPolicy:
    """Dependency provider for cancellation policy."""
    return CancellationPolicy(build_ledger(session), AuditRepository(session))
