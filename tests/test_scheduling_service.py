from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from bookindoor.core.enums import BookingStatusEnum, SlotAvailabilityEnum
from bookindoor.modules.scheduling.service import SchedulingService
from bookindoor.shared.exceptions import GroundNotFoundException
from tests.fakes import FakeGroundsRepository, make_booking, make_court_a, make_ledger

MATCH_DAY = date(2026, 3, 2)


@pytest.mark.asyncio
async def test_day_calendar_marks_claimed_slots_booked() -> None:
    ground = make_court_a()
    ledger, _ = make_ledger(
        [
            make_booking(ground, MATCH_DAY, ["09:30", "10:00"]),
            make_booking(ground, MATCH_DAY, ["10:30"], status=BookingStatusEnum.CANCELLED),
            make_booking(ground, date(2026, 3, 3), ["09:00"]),
        ],
    )
    service = SchedulingService(FakeGroundsRepository([ground]), ledger)  # type: ignore[arg-type]

    slots = await service.list_slots(ground.id, MATCH_DAY)

    assert [(slot.time_slot, slot.status) for slot in slots] == [
        ("09:00-09:30", SlotAvailabilityEnum.AVAILABLE),
        ("09:30-10:00", SlotAvailabilityEnum.BOOKED),
        ("10:00-10:30", SlotAvailabilityEnum.BOOKED),
        ("10:30-11:00", SlotAvailabilityEnum.AVAILABLE),
    ]


@pytest.mark.asyncio
async def test_day_calendar_of_unknown_ground_is_not_found() -> None:
    ledger, _ = make_ledger()
    service = SchedulingService(FakeGroundsRepository([]), ledger)  # type: ignore[arg-type]

    with pytest.raises(GroundNotFoundException):
        await service.list_slots(uuid4(), MATCH_DAY)
