from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

import bookindoor.modules.booking.service as booking_service_module
from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum, RoleEnum
from bookindoor.modules.booking.schemas import BookingStatusUpdate, ReservationCreate
from bookindoor.modules.booking.service import ReservationService
from bookindoor.modules.cancellation.service import CancellationPolicy
from bookindoor.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    EmptySelectionException,
    GroundNotFoundException,
    InvalidSlotException,
    SlotConflictException,
    SportNotFoundException,
    UnauthorizedException,
)
from tests.fakes import (
    FakeAuditRepository,
    FakeGround,
    FakeGroundsRepository,
    make_actor,
    make_booking,
    make_court_a,
    make_ledger,
)

FIXED_NOW = datetime(2026, 3, 1, 0, 0, tzinfo=UTC)
MATCH_DAY = date(2026, 3, 2)
GUEST = {"name": "Saman Kumara", "phone": "0771234567", "email": "saman@example.com"}


@pytest.fixture(autouse=True)
def _freeze_time(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: FIXED_NOW)


def make_service(
    ground: FakeGround,
    bookings=None,
) -> tuple[ReservationService, object, FakeAuditRepository]:
    ledger, repository = make_ledger(bookings)
    audit_repo = FakeAuditRepository()
    service = ReservationService(
        ledger=ledger,
        grounds_repository=FakeGroundsRepository([ground]),  # type: ignore[arg-type]
        audit_repository=audit_repo,  # type: ignore[arg-type]
    )
    return service, repository, audit_repo


def make_request(ground: FakeGround, *slots: str, **overrides) -> ReservationCreate:
    body = {
        "ground_id": str(ground.id),
        "sport_name": "Futsal",
        "bookings": [{"date": MATCH_DAY.isoformat(), "time_slots": list(slots)}],
        "guest": GUEST,
    }
    body.update(overrides)
    return ReservationCreate.model_validate(body)


@pytest.mark.asyncio
async def test_court_a_two_slots_cost_500_and_conflict_on_rebook() -> None:
    ground = make_court_a()
    service, _, audit_repo = make_service(ground)

    result = await service.create_reservation(make_request(ground, "09:00", "09:30"), None)

    assert result.amount == Decimal("500.00")
    booking = result.bookings[0]
    assert booking.status == BookingStatusEnum.RESERVED
    assert booking.payment_status == PaymentStatusEnum.ADVANCED_PAID
    assert booking.time_slots == ["09:00", "09:30"]
    assert audit_repo.events[0]["event_type"] == "booking.reserved"

    with pytest.raises(SlotConflictException):
        await service.create_reservation(make_request(ground, "09:00"), None)


@pytest.mark.asyncio
async def test_slot_outside_operating_hours_is_invalid() -> None:
    ground = make_court_a()
    service, repository, _ = make_service(ground)

    with pytest.raises(InvalidSlotException):
        await service.create_reservation(make_request(ground, "11:00"), None)
    with pytest.raises(InvalidSlotException):
        await service.create_reservation(make_request(ground, "09:15"), None)
    assert repository.bookings == {}


@pytest.mark.asyncio
async def test_client_supplied_amount_is_ignored() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)

    result = await service.create_reservation(
        make_request(ground, "09:00", "09:30", "10:00", total_amount="1.00", amount=1),
        None,
    )

    assert result.amount == Decimal("750.00")
    assert result.bookings[0].total_amount == Decimal("750.00")


@pytest.mark.asyncio
async def test_validation_errors_leave_no_bookings() -> None:
    ground = make_court_a()
    service, repository, _ = make_service(ground)

    with pytest.raises(EmptySelectionException):
        await service.create_reservation(make_request(ground), None)
    with pytest.raises(SportNotFoundException):
        await service.create_reservation(make_request(ground, "09:00", sport_name="Tennis"), None)
    with pytest.raises(GroundNotFoundException):
        await service.create_reservation(make_request(ground, "09:00", ground_id=str(uuid4())), None)
    assert repository.bookings == {}


@pytest.mark.asyncio
async def test_slot_in_the_past_is_rejected() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)

    with pytest.raises(InvalidSlotException):
        await service.create_reservation(
            make_request(ground, bookings=[{"date": "2026-02-28", "time_slots": ["09:00"]}]),
            None,
        )


@pytest.mark.asyncio
async def test_multi_date_reservation_shares_one_payment_group() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)

    result = await service.create_reservation(
        make_request(
            ground,
            bookings=[
                {"date": "2026-03-03", "time_slots": [{"start_time": "10:00"}]},
                {"date": "2026-03-02", "time_slots": ["09:00", "09:30"]},
            ],
        ),
        None,
    )

    assert len(result.bookings) == 2
    assert {booking.payment_group_id for booking in result.bookings} == {result.payment_group_id}
    assert [booking.date for booking in result.bookings] == [date(2026, 3, 2), date(2026, 3, 3)]
    assert result.amount == Decimal("750.00")


@pytest.mark.asyncio
async def test_conflict_on_later_date_propagates() -> None:
    ground = make_court_a()
    taken = make_booking(ground, date(2026, 3, 3), ["10:00"])
    service, _, _ = make_service(ground, [taken])

    with pytest.raises(SlotConflictException):
        await service.create_reservation(
            make_request(
                ground,
                bookings=[
                    {"date": "2026-03-02", "time_slots": ["09:00"]},
                    {"date": "2026-03-03", "time_slots": ["10:00"]},
                ],
            ),
            None,
        )


@pytest.mark.asyncio
async def test_guest_details_required_without_account() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)

    with pytest.raises(BusinessRuleException):
        await service.create_reservation(make_request(ground, "09:00", guest=None), None)


@pytest.mark.asyncio
async def test_signed_in_customer_books_under_own_account() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)
    customer = make_actor(role=RoleEnum.CUSTOMER)

    result = await service.create_reservation(make_request(ground, "09:00"), customer)

    booking = result.bookings[0]
    assert booking.user_id == customer.id
    assert booking.guest_phone is None


@pytest.mark.asyncio
async def test_pending_payment_status_is_operator_only() -> None:
    ground = make_court_a()
    service, _, _ = make_service(ground)

    as_guest = await service.create_reservation(make_request(ground, "09:00", payment_status="pending"), None)
    as_operator = await service.create_reservation(
        make_request(ground, "10:00", payment_status="pending"),
        make_actor(ground.owner_id, RoleEnum.ADMIN),
    )
    full = await service.create_reservation(make_request(ground, "10:30", payment_status="full_paid"), None)

    assert as_guest.bookings[0].payment_status == PaymentStatusEnum.ADVANCED_PAID
    assert as_operator.bookings[0].payment_status == PaymentStatusEnum.PENDING
    assert as_operator.bookings[0].guest_name == GUEST["name"]
    assert full.bookings[0].payment_status == PaymentStatusEnum.FULL_PAID


@pytest.mark.asyncio
async def test_paid_payment_group_cannot_be_extended() -> None:
    ground = make_court_a()
    group_id = uuid4()
    paid = make_booking(
        ground,
        MATCH_DAY,
        ["09:00"],
        payment_group_id=group_id,
        status=BookingStatusEnum.CONFIRMED,
    )
    service, _, _ = make_service(ground, [paid])

    with pytest.raises(ConflictException):
        await service.create_reservation(make_request(ground, "10:00", payment_group_id=str(group_id)), None)


@pytest.mark.asyncio
async def test_operator_override_is_audited_and_cancellation_announced() -> None:
    ground = make_court_a()
    booking = make_booking(ground, MATCH_DAY, ["09:00"])
    service, _, audit_repo = make_service(ground, [booking])
    owner = make_actor(ground.owner_id, RoleEnum.ADMIN)

    updated = await service.update_booking_status(
        booking.id,
        BookingStatusUpdate(status=BookingStatusEnum.CANCELLED),
        owner,
    )

    assert updated.status == BookingStatusEnum.CANCELLED
    assert audit_repo.logs[0]["action"] == "booking.status.override"
    assert audit_repo.logs[0]["payload"]["from"]["status"] == "reserved"
    assert audit_repo.events[-1]["event_type"] == "booking.cancelled"


@pytest.mark.asyncio
async def test_admin_cannot_manage_foreign_ground() -> None:
    ground = make_court_a()
    booking = make_booking(ground, MATCH_DAY, ["09:00"])
    service, _, _ = make_service(ground, [booking])
    other_admin = make_actor(role=RoleEnum.ADMIN)

    with pytest.raises(UnauthorizedException):
        await service.update_booking_status(
            booking.id,
            BookingStatusUpdate(payment_status=PaymentStatusEnum.FULL_PAID),
            other_admin,
        )
    with pytest.raises(UnauthorizedException):
        await service.list_bookings(other_admin, ground.id, 50, 0)


@pytest.mark.asyncio
async def test_super_admin_lists_every_booking() -> None:
    ground = make_court_a()
    bookings = [make_booking(ground, MATCH_DAY, ["09:00"]), make_booking(ground, date(2026, 3, 3), ["09:00"])]
    service, _, _ = make_service(ground, bookings)

    items, total = await service.list_bookings(make_actor(role=RoleEnum.SUPER_ADMIN), None, 50, 0)

    assert total == 2
    assert items[0].date == date(2026, 3, 3)


@pytest.mark.asyncio
async def test_operator_cancel_releases_whole_payment_group() -> None:
    ground = make_court_a()
    group_id = uuid4()
    first = make_booking(ground, MATCH_DAY, ["09:00"], payment_group_id=group_id)
    second = make_booking(ground, date(2026, 3, 4), ["10:00"], payment_group_id=group_id)
    service, repository, audit_repo = make_service(ground, [first, second])
    owner = make_actor(ground.owner_id, RoleEnum.ADMIN)

    updated = await service.update_booking_status(
        first.id,
        BookingStatusUpdate(status=BookingStatusEnum.CANCELLED),
        owner,
    )

    assert updated.id == first.id
    assert [booking.status for booking in (first, second)] == [BookingStatusEnum.CANCELLED] * 2
    assert not any(slot.is_active for slot in second.slots)
    assert await repository.list_active_claims(ground.id, date(2026, 3, 4)) == set()
    cancelled = audit_repo.events[-1]
    assert cancelled["event_type"] == "booking.cancelled"
    assert set(cancelled["payload"]["booking_ids"]) == {str(first.id), str(second.id)}

    policy = CancellationPolicy(make_ledger([first, second])[0], audit_repo)  # type: ignore[arg-type]
    result = await policy.cancel(group_id)
    assert result.already_cancelled is True


@pytest.mark.asyncio
async def test_operator_payment_override_moves_whole_group() -> None:
    ground = make_court_a()
    group_id = uuid4()
    first = make_booking(ground, MATCH_DAY, ["09:00"], payment_group_id=group_id)
    second = make_booking(ground, date(2026, 3, 4), ["10:00"], payment_group_id=group_id)
    service, _, _ = make_service(ground, [first, second])

    await service.update_booking_status(
        second.id,
        BookingStatusUpdate(status=BookingStatusEnum.CONFIRMED, payment_status=PaymentStatusEnum.FULL_PAID),
        make_actor(role=RoleEnum.SUPER_ADMIN),
    )

    assert {(b.status, b.payment_status) for b in (first, second)} == {
        (BookingStatusEnum.CONFIRMED, PaymentStatusEnum.FULL_PAID),
    }


@pytest.mark.asyncio
async def test_reservation_without_dates_is_an_empty_selection() -> None:
    ground = make_court_a()
    service, repository, _ = make_service(ground)

    with pytest.raises(EmptySelectionException):
        await service.create_reservation(make_request(ground, bookings=[]), None)
    assert repository.bookings == {}


@pytest.mark.asyncio
async def test_extending_reserved_group_returns_group_total() -> None:
    ground = make_court_a()
    group_id = uuid4()
    earlier = make_booking(ground, date(2026, 3, 3), ["09:00", "09:30"], payment_group_id=group_id)
    service, _, _ = make_service(ground, [earlier])

    result = await service.create_reservation(
        make_request(ground, "10:00", payment_group_id=str(group_id)),
        None,
    )

    assert result.payment_group_id == group_id
    assert result.amount == Decimal("750.00")
    assert earlier.id in result.booking_ids
    assert len(result.booking_ids) == 2


@pytest.mark.asyncio
async def test_extending_group_with_other_payment_intent_conflicts() -> None:
    ground = make_court_a()
    group_id = uuid4()
    earlier = make_booking(ground, date(2026, 3, 3), ["09:00"], payment_group_id=group_id)
    service, repository, _ = make_service(ground, [earlier])

    with pytest.raises(ConflictException):
        await service.create_reservation(
            make_request(ground, "10:00", payment_group_id=str(group_id), payment_status="full_paid"),
            None,
        )
    assert list(repository.bookings) == [earlier.id]
