from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import httpx
import pytest
import pytest_asyncio

import bookindoor.modules.booking.service as booking_service_module
import bookindoor.modules.cancellation.service as cancellation_module
import bookindoor.modules.payments.router as payments_router_module
from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum
from bookindoor.main import app
from bookindoor.modules.booking.service import ReservationService, get_reservation_service
from bookindoor.modules.cancellation.service import CancellationPolicy, get_cancellation_policy
from bookindoor.modules.identity.service import get_optional_user
from bookindoor.modules.payments.service import PaymentReconciler, get_payment_reconciler
from bookindoor.modules.payments.signature import notification_signature
from tests.fakes import (
    FakeAuditRepository,
    FakeGround,
    FakeGroundsRepository,
    make_court_a,
    make_ledger,
)

FIXED_NOW = datetime(2026, 3, 1, 0, 0, tzinfo=UTC)
MATCH_DAY = date(2026, 3, 2)
MERCHANT_ID = "1211149"
MERCHANT_SECRET = "MzA0NjQ5MTQ3NzM2OTkzMTQ1"
API = "/api/v1"


class Harness:
    def __init__(self) -> None:
        self.ground: FakeGround = make_court_a()
        self.ledger, self.repository = make_ledger()
        self.repository.grounds[self.ground.id] = self.ground
        self.audit_repository = FakeAuditRepository()

    def reservation_service(self) -> ReservationService:
        return ReservationService(
            ledger=self.ledger,
            grounds_repository=FakeGroundsRepository([self.ground]),  # type: ignore[arg-type]
            audit_repository=self.audit_repository,  # type: ignore[arg-type]
        )

    def cancellation_policy(self) -> CancellationPolicy:
        return CancellationPolicy(
            self.ledger,
            self.audit_repository,  # type: ignore[arg-type]
            window_hours=24,
            zone=ZoneInfo("Asia/Colombo"),
        )

    def payment_reconciler(self) -> PaymentReconciler:
        return PaymentReconciler(
            self.ledger,
            self.audit_repository,  # type: ignore[arg-type]
            merchant_id=MERCHANT_ID,
            advance_ratio=Decimal("0.5"),
        )


@pytest_asyncio.fixture
async def harness(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Harness]:
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: FIXED_NOW)
    monkeypatch.setattr(cancellation_module, "utc_now", lambda: FIXED_NOW)
    monkeypatch.setattr(payments_router_module.settings, "payhere_merchant_secret", MERCHANT_SECRET)

    state = Harness()

    async def _no_user() -> None:
        return None

    app.dependency_overrides[get_reservation_service] = state.reservation_service
    app.dependency_overrides[get_cancellation_policy] = state.cancellation_policy
    app.dependency_overrides[get_payment_reconciler] = state.payment_reconciler
    app.dependency_overrides[get_optional_user] = _no_user
    yield state
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(harness: Harness) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


def reservation_body(harness: Harness, starts: list[str]) -> dict:
    return {
        "ground_id": str(harness.ground.id),
        "sport_name": "Futsal",
        "bookings": [{"date": MATCH_DAY.isoformat(), "time_slots": starts}],
        "guest": {"name": "Saman Kumara", "phone": "0771234567", "email": "saman@example.com"},
        "total_amount": "1.00",
    }


def notify_form(payment_group_id: str, amount: str) -> dict[str, str]:
    form = {
        "merchant_id": MERCHANT_ID,
        "order_id": payment_group_id,
        "payment_id": "320025071278",
        "payhere_amount": amount,
        "payhere_currency": "LKR",
        "status_code": "2",
        "custom_1": "advance",
    }
    form["md5sig"] = notification_signature(
        MERCHANT_ID,
        payment_group_id,
        amount,
        "LKR",
        "2",
        MERCHANT_SECRET,
    )
    return form


@pytest.mark.asyncio
async def test_reservation_returns_server_side_amount(client: httpx.AsyncClient, harness: Harness) -> None:
    response = await client.post(f"{API}/booking", json=reservation_body(harness, ["09:00", "09:30"]))

    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["amount"]) == Decimal("500.00")
    assert data["currency"] == "LKR"
    assert len(data["booking_ids"]) == 1
    assert harness.audit_repository.events[0]["event_type"] == "booking.reserved"


@pytest.mark.asyncio
async def test_second_reservation_of_same_slot_is_retryable_conflict(
    client: httpx.AsyncClient,
    harness: Harness,
) -> None:
    first = await client.post(f"{API}/booking", json=reservation_body(harness, ["09:00"]))
    second = await client.post(f"{API}/booking", json=reservation_body(harness, ["09:00", "09:30"]))

    assert first.status_code == 201
    assert second.status_code == 409
    error = second.json()["error"]
    assert error["code"] == "slot_conflict"
    assert error["retryable"] is True


@pytest.mark.asyncio
async def test_slot_outside_operating_hours_is_rejected(client: httpx.AsyncClient, harness: Harness) -> None:
    response = await client.post(f"{API}/booking", json=reservation_body(harness, ["11:00"]))

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "invalid_slot"


@pytest.mark.asyncio
async def test_payment_notification_confirms_group(client: httpx.AsyncClient, harness: Harness) -> None:
    created = await client.post(f"{API}/booking", json=reservation_body(harness, ["09:00", "09:30"]))
    group_id = created.json()["payment_group_id"]

    response = await client.post(f"{API}/payments/payhere/notify", data=notify_form(group_id, "250.00"))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    (booking,) = harness.repository.bookings.values()
    assert booking.status == BookingStatusEnum.CONFIRMED
    assert booking.payment_status == PaymentStatusEnum.ADVANCED_PAID
    assert harness.audit_repository.events[-1]["event_type"] == "booking.confirmed"


@pytest.mark.asyncio
async def test_tampered_payment_notification_is_rejected(client: httpx.AsyncClient, harness: Harness) -> None:
    created = await client.post(f"{API}/booking", json=reservation_body(harness, ["09:00"]))
    group_id = created.json()["payment_group_id"]
    form = notify_form(group_id, "250.00")
    form["payhere_amount"] = "1.00"

    response = await client.post(f"{API}/payments/payhere/notify", data=form)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_signature"
    (booking,) = harness.repository.bookings.values()
    assert booking.status == BookingStatusEnum.RESERVED


@pytest.mark.asyncio
async def test_cancellation_link_checks_and_cancels_group(client: httpx.AsyncClient, harness: Harness) -> None:
    created = await client.post(f"{API}/booking", json=reservation_body(harness, ["10:00"]))
    group_id = created.json()["payment_group_id"]

    check = await client.get(f"{API}/booking/cancel", params={"id": group_id})
    assert check.status_code == 200
    assert check.json()["is_eligible"] is True
    assert check.json()["earliest_start"].startswith("2026-03-02T10:00:00")

    cancelled = await client.post(f"{API}/booking/cancel", json={"id": group_id})
    assert cancelled.status_code == 200
    assert cancelled.json()["message"] == "Booking cancelled successfully"

    again = await client.post(f"{API}/booking/cancel", json={"payment_group_id": group_id})
    assert again.status_code == 200
    assert again.json()["already_cancelled"] is True

    rebooked = await client.post(f"{API}/booking", json=reservation_body(harness, ["10:00"]))
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_cancellation_of_unknown_group_is_not_found(client: httpx.AsyncClient) -> None:
    response = await client.get(f"{API}/booking/cancel", params={"id": str(uuid4())})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "booking_not_found"


@pytest.mark.asyncio
async def test_reservation_without_dates_reports_empty_selection(
    client: httpx.AsyncClient,
    harness: Harness,
) -> None:
    body = reservation_body(harness, [])
    body["bookings"] = []

    response = await client.post(f"{API}/booking", json=body)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "empty_selection"
