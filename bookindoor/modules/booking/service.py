"""Reservation orchestration and operator booking management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bookindoor.core.config import get_settings
from bookindoor.core.database import get_db_session
from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum, RoleEnum
from bookindoor.core.metrics import record_reservation
from bookindoor.modules.audit.repository import AuditRepository
from bookindoor.modules.booking.ledger import BookingLedger
from bookindoor.modules.booking.models import Booking
from bookindoor.modules.booking.pricing import price, resolve_sport
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.booking.schemas import (
    BookingDraft,
    BookingStatusUpdate,
    ReservationCreate,
)
from bookindoor.modules.grounds.models import Ground
from bookindoor.modules.grounds.repository import GroundsRepository
from bookindoor.modules.identity.models import User
from bookindoor.modules.scheduling.calendar import generate_slots
from bookindoor.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    EmptySelectionException,
    GroundNotFoundException,
    InvalidRangeException,
    InvalidSlotException,
    SlotConflictException,
    UnauthorizedException,
)
from bookindoor.shared.utils import utc_now, venue_datetime

settings = get_settings()
logger = logging.getLogger(__name__)

OPERATOR_ROLES = (RoleEnum.ADMIN, RoleEnum.SUPER_ADMIN)


@dataclass(slots=True)
class ReservationResult:
    bookings: list[Booking]
    payment_group_id: UUID
    amount: Decimal

    @property
    def booking_ids(self) -> list[UUID]:
        return [booking.id for booking in self.bookings]


def _is_operator(actor: User | None) -> bool:
    return actor is not None and actor.role.name in OPERATOR_ROLES


def _requested_payment_status(
    requested: PaymentStatusEnum | None,
    actor: User | None,
) -> PaymentStatusEnum:
    """Advance payment unless full payment is asked for; pending is operator-only."""
    if requested == PaymentStatusEnum.FULL_PAID:
        return PaymentStatusEnum.FULL_PAID
    if requested == PaymentStatusEnum.PENDING and _is_operator(actor):
        return PaymentStatusEnum.PENDING
    return PaymentStatusEnum.ADVANCED_PAID


class ReservationService:
    """Creates reservations and applies operator overrides."""

    def __init__(
        self,
        ledger: BookingLedger,
        grounds_repository: GroundsRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.ledger = ledger
        self.grounds_repository = grounds_repository
        self.audit_repository = audit_repository

    async def _load_ground(self, ground_id: UUID) -> Ground:
        ground = await self.grounds_repository.get_ground_by_id(ground_id)
        if ground is None:
            raise GroundNotFoundException("Ground not found")
        return ground

    def _validate_selection(self, ground: Ground, payload: ReservationCreate) -> None:
        try:
            bookable = set(generate_slots(ground.open_from, ground.open_to, settings.slot_duration_minutes))
        except InvalidRangeException as exc:
            logger.error("Ground %s has invalid operating hours: %s", ground.id, exc.message)
            raise

        if not payload.bookings:
            raise EmptySelectionException("No dates selected")

        now = utc_now()
        for item in payload.bookings:
            if not item.time_slots:
                raise EmptySelectionException(f"No time slots selected for {item.date.isoformat()}")
            invalid = [start for start in item.time_slots if start not in bookable]
            if invalid:
                raise InvalidSlotException(
                    f"Not a bookable slot on {item.date.isoformat()}: {', '.join(invalid)}",
                )
            first_start = venue_datetime(item.date, item.time_slots[0], settings.venue_zone)
            if first_start <= now:
                raise InvalidSlotException("Cannot book a slot in the past")

    async def _resolve_group(
        self,
        payment_group_id: UUID | None,
        payment_status: PaymentStatusEnum,
    ) -> tuple[UUID, list[Booking]]:
        """Fresh group, or the reserved bookings of the group being extended."""
        if payment_group_id is None:
            return uuid4(), []
        existing = await self.ledger.list_payment_group(payment_group_id)
        if any(booking.status != BookingStatusEnum.RESERVED for booking in existing):
            raise ConflictException("Payment group is already paid or cancelled")
        if any(booking.payment_status != payment_status for booking in existing):
            raise ConflictException("Payment group was reserved with a different payment intent")
        return payment_group_id, existing

    async def create_reservation(
        self,
        payload: ReservationCreate,
        actor: User | None,
    ) -> ReservationResult:
        """Reserve slots on one or more dates under a single payment group."""
        ground = await self._load_ground(payload.ground_id)
        resolve_sport(ground, payload.sport_name)
        self._validate_selection(ground, payload)

        user_id: UUID | None = None
        guest = payload.guest
        if actor is not None and not (_is_operator(actor) and guest is not None):
            user_id = actor.id
            guest = None
        elif guest is None:
            raise BusinessRuleException("Guest name and phone are required when booking without an account")

        payment_status = _requested_payment_status(payload.payment_status, actor)
        payment_group_id, existing = await self._resolve_group(payload.payment_group_id, payment_status)

        created: list[Booking] = []
        grand_total = Decimal("0.00")
        try:
            for item in payload.bookings:
                total = price(ground, payload.sport_name, len(item.time_slots), settings.slot_duration_minutes)
                booking = await self.ledger.create(
                    BookingDraft(
                        ground_id=ground.id,
                        sport_name=payload.sport_name,
                        date=item.date,
                        start_times=tuple(item.time_slots),
                        total_amount=total,
                        payment_status=payment_status,
                        payment_group_id=payment_group_id,
                        user_id=user_id,
                        guest=guest,
                    ),
                )
                created.append(booking)
                grand_total += total
        except SlotConflictException:
            record_reservation("conflict")
            raise

        await self.audit_repository.create_outbox_event(
            aggregate_type="booking_group",
            aggregate_id=str(payment_group_id),
            event_type="booking.reserved",
            payload={
                "payment_group_id": str(payment_group_id),
                "booking_ids": [str(booking.id) for booking in created],
                "ground_id": str(ground.id),
                "amount": str(grand_total),
            },
        )
        record_reservation("created")
        group_total = grand_total + sum((Decimal(booking.total_amount) for booking in existing), Decimal("0.00"))
        return ReservationResult(bookings=existing + created, payment_group_id=payment_group_id, amount=group_total)

    async def _ensure_operator_access(self, actor: User, ground_id: UUID) -> None:
        if actor.role.name == RoleEnum.SUPER_ADMIN:
            return
        if actor.role.name == RoleEnum.ADMIN:
            owned = await self.grounds_repository.list_ground_ids_by_owner(actor.id)
            if ground_id in owned:
                return
        raise UnauthorizedException("You cannot manage bookings of this ground")

    async def get_booking(self, booking_id: UUID, actor: User) -> Booking:
        booking = await self.ledger.get(booking_id)
        await self._ensure_operator_access(actor, booking.ground_id)
        return booking

    async def list_bookings(
        self,
        actor: User,
        ground_id: UUID | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Booking], int]:
        """List bookings visible to an operator, newest date first."""
        if actor.role.name == RoleEnum.SUPER_ADMIN:
            ground_ids = [ground_id] if ground_id is not None else None
        elif actor.role.name == RoleEnum.ADMIN:
            owned = await self.grounds_repository.list_ground_ids_by_owner(actor.id)
            if ground_id is not None and ground_id not in owned:
                raise UnauthorizedException("You don't own this ground")
            ground_ids = [ground_id] if ground_id is not None else owned
        else:
            raise UnauthorizedException("Only ground operators can list bookings")
        return await self.ledger.list_bookings(ground_ids, limit, offset)

    async def update_booking_status(
        self,
        booking_id: UUID,
        payload: BookingStatusUpdate,
        actor: User,
    ) -> Booking:
        """Operator override; skips the cancellation window, not the lifecycle rules.

        The change applies to every booking of the payment group so the group
        is confirmed, paid or cancelled as one unit.
        """
        booking = await self.get_booking(booking_id, actor)
        previous = {"status": str(booking.status), "payment_status": str(booking.payment_status)}

        group, _ = await self.ledger.update_group_status(
            booking.payment_group_id,
            status=payload.status,
            payment_status=payload.payment_status,
        )
        booking = next(member for member in group if member.id == booking_id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="booking.status.override",
            entity_type="booking",
            entity_id=str(booking.id),
            payload={
                "from": previous,
                "to": {"status": str(booking.status), "payment_status": str(booking.payment_status)},
                "payment_group_id": str(booking.payment_group_id),
                "booking_ids": [str(member.id) for member in group],
            },
        )
        if payload.status == BookingStatusEnum.CANCELLED and previous["status"] != BookingStatusEnum.CANCELLED:
            await self.audit_repository.create_outbox_event(
                aggregate_type="booking_group",
                aggregate_id=str(booking.payment_group_id),
                event_type="booking.cancelled",
                payload={
                    "payment_group_id": str(booking.payment_group_id),
                    "booking_ids": [str(member.id) for member in group],
                    "cancelled_by": "operator",
                },
            )
        return booking


def build_ledger(session: AsyncSession) -> BookingLedger:
    return BookingLedger(BookingRepository(session))


async def get_reservation_service(session: AsyncSession = Depends(get_db_session)) -> ReservationService:
    """Dependency provider for reservation service."""
    return ReservationService(
        ledger=build_ledger(session),
        grounds_repository=GroundsRepository(session),
        audit_repository=AuditRepository(session),
    )
