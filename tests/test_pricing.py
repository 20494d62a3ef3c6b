from __future__ import annotations

from decimal import Decimal

import pytest

from bookindoor.modules.booking.pricing import price, resolve_sport
from bookindoor.shared.exceptions import EmptySelectionException, SportNotFoundException
from tests.fakes import make_court_a


def test_two_half_hour_slots_cost_one_hour() -> None:
    assert price(make_court_a(), "Futsal", 2) == Decimal("500.00")


def test_price_uses_the_requested_sport() -> None:
    assert price(make_court_a(), "Cricket", 3) == Decimal("2250.00")


def test_price_reads_current_ground_pricing() -> None:
    ground = make_court_a()
    ground.sports[0].price_per_hour = Decimal("650.00")

    assert price(ground, "Futsal", 1) == Decimal("325.00")


def test_unknown_sport_is_rejected() -> None:
    with pytest.raises(SportNotFoundException):
        price(make_court_a(), "Badminton", 2)
    with pytest.raises(SportNotFoundException):
        resolve_sport(make_court_a(), "futsal")


def test_empty_selection_is_rejected() -> None:
    with pytest.raises(EmptySelectionException):
        price(make_court_a(), "Futsal", 0)
