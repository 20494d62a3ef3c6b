"""Authoritative pricing of slot selections.

Prices are always taken from the ground record read in the current request;
amounts sent by clients are never used.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from bookindoor.shared.exceptions import EmptySelectionException, SportNotFoundException

CENT = Decimal("0.01")


class SportOffering(Protocol):
    name: str
    price_per_hour: Decimal


class PricedGround(Protocol):
    sports: list[SportOffering]


def resolve_sport(ground: PricedGround, sport_name: str) -> SportOffering:
    for sport in ground.sports:
        if sport.name == sport_name:
            return sport
    raise SportNotFoundException(f"Sport '{sport_name}' is not offered on this ground")


def price(ground: PricedGround, sport_name: str, slot_count: int, slot_minutes: int = 30) -> Decimal:
    """Hourly price of the sport pro-rated over ``slot_count`` slots.

    Two 30-minute slots at 500/hour cost 500.
    """
    if slot_count < 1:
        raise EmptySelectionException("Select at least one time slot")
    sport = resolve_sport(ground, sport_name)
    hours = Decimal(slot_count * slot_minutes) / Decimal(60)
    return (Decimal(sport.price_per_hour) * hours).quantize(CENT, rounding=ROUND_HALF_UP)
