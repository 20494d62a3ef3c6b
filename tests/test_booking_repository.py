from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

import bookindoor.modules  # noqa: F401
from bookindoor.core.database import is_constraint_violation
from bookindoor.core.enums import PaymentStatusEnum
from bookindoor.modules.booking.models import ACTIVE_CLAIM_INDEX
from bookindoor.modules.booking.repository import BookingRepository
from bookindoor.modules.booking.schemas import BookingDraft, GuestDetails
from bookindoor.shared.exceptions import SlotConflictException


class DriverError(Exception):
    def __init__(self, message: str, constraint_name: str | None = None) -> None:
        super().__init__(message)
        self.constraint_name = constraint_name


class FakeSavepoint:
    def __init__(self, session: "FakeSession") -> None:
        self.session = session

    async def __aenter__(self) -> "FakeSavepoint":
        self.session.savepoints += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.session.rolled_back += 1
        return False


class FakeSession:
    """Session double whose flush fails the way the driver reports a violated index."""

    def __init__(self, flush_error: Exception | None = None) -> None:
        self.flush_error = flush_error
        self.added: list = []
        self.savepoints = 0
        self.rolled_back = 0

    def begin_nested(self) -> FakeSavepoint:
        return FakeSavepoint(self)

    def add(self, instance) -> None:
        self.added.append(instance)

    async def flush(self) -> None:
        if self.flush_error is not None:
            raise self.flush_error


def integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT INTO booking_slots ...", {}, orig)


def make_draft() -> BookingDraft:
    return BookingDraft(
        ground_id=uuid4(),
        sport_name="Futsal",
        date=date(2026, 3, 2),
        start_times=("09:00", "09:30"),
        total_amount=Decimal("500.00"),
        payment_status=PaymentStatusEnum.ADVANCED_PAID,
        payment_group_id=uuid4(),
        guest=GuestDetails(name="Saman Kumara", phone="0771234567"),
    )


@pytest.mark.asyncio
async def test_insert_claims_slots_inside_savepoint() -> None:
    session = FakeSession()

    booking = await BookingRepository(session).add_booking(make_draft())  # type: ignore[arg-type]

    assert session.savepoints == 1
    assert session.added == [booking]
    assert [slot.start_time for slot in booking.slots] == ["09:00", "09:30"]
    assert all(slot.is_active for slot in booking.slots)


@pytest.mark.asyncio
async def test_claim_index_violation_becomes_slot_conflict() -> None:
    error = integrity_error(DriverError("duplicate key", constraint_name=ACTIVE_CLAIM_INDEX))
    session = FakeSession(flush_error=error)

    with pytest.raises(SlotConflictException) as exc:
        await BookingRepository(session).add_booking(make_draft())  # type: ignore[arg-type]

    assert exc.value.retryable is True
    assert exc.value.start_times == {"09:00", "09:30"}
    assert exc.value.__cause__ is error
    assert session.rolled_back == 1


@pytest.mark.asyncio
async def test_other_integrity_errors_are_not_masked_as_conflicts() -> None:
    error = integrity_error(DriverError("violates foreign key", constraint_name="bookings_ground_id_fkey"))
    session = FakeSession(flush_error=error)

    with pytest.raises(IntegrityError):
        await BookingRepository(session).add_booking(make_draft())  # type: ignore[arg-type]
    assert session.rolled_back == 1


def test_constraint_name_is_read_from_wrapped_driver_error() -> None:
    wrapped = DriverError("asyncpg adapter error")
    wrapped.__cause__ = DriverError("duplicate key", constraint_name=ACTIVE_CLAIM_INDEX)

    assert is_constraint_violation(integrity_error(wrapped), ACTIVE_CLAIM_INDEX)
    assert not is_constraint_violation(integrity_error(wrapped), "uq_users_email")


def test_constraint_name_falls_back_to_error_text() -> None:
    orig = Exception(f'duplicate key value violates unique constraint "{ACTIVE_CLAIM_INDEX}"')

    assert is_constraint_violation(integrity_error(orig), ACTIVE_CLAIM_INDEX)
    assert not is_constraint_violation(integrity_error(Exception("not null violation")), ACTIVE_CLAIM_INDEX)
