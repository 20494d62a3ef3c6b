"""Day calendar of fixed-length slots for a ground.

Pure functions: slots are derived from the operating window, never stored.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from bookindoor.core.enums import SlotAvailabilityEnum
from bookindoor.shared.exceptions import InvalidRangeException
from bookindoor.shared.utils import parse_clock

DEFAULT_SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, slots=True)
class AnnotatedSlot:
    start_time: str
    end_time: str
    status: SlotAvailabilityEnum

    @property
    def time_slot(self) -> str:
        return f"{self.start_time}-{self.end_time}"


def _to_minutes(value: str, *, allow_end_of_day: bool = False) -> int:
    if allow_end_of_day and value == "24:00":
        return MINUTES_PER_DAY
    try:
        parsed = parse_clock(value)
    except ValueError as exc:
        raise InvalidRangeException(f"Invalid time of day: {value!r}") from exc
    return parsed.hour * 60 + parsed.minute


def _format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def generate_slots(
    open_from: str,
    open_to: str,
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> list[str]:
    """Ordered slot start times in ``[open_from, open_to)``.

    A trailing remainder shorter than one slot is dropped. ``open_to`` may be
    ``"24:00"`` for grounds open until midnight.
    """
    if slot_minutes <= 0:
        raise InvalidRangeException("Slot length must be positive")
    start = _to_minutes(open_from)
    end = _to_minutes(open_to, allow_end_of_day=True)
    if end <= start:
        raise InvalidRangeException(f"Closing time {open_to} must be after opening time {open_from}")

    count = (end - start) // slot_minutes
    return [_format_minutes(start + index * slot_minutes) for index in range(count)]


def slot_end(start_time: str, slot_minutes: int = DEFAULT_SLOT_MINUTES) -> str:
    end = _to_minutes(start_time) + slot_minutes
    if end >= MINUTES_PER_DAY:
        return "24:00" if end == MINUTES_PER_DAY else _format_minutes(end - MINUTES_PER_DAY)
    return _format_minutes(end)


def annotate(
    slots: Sequence[str],
    booked_start_times: Iterable[str],
    slot_minutes: int = DEFAULT_SLOT_MINUTES,
) -> list[AnnotatedSlot]:
    """Mark each slot booked iff its start time has an active claim."""
    booked = set(booked_start_times)
    return [
        AnnotatedSlot(
            start_time=start,
            end_time=slot_end(start, slot_minutes),
            status=SlotAvailabilityEnum.BOOKED if start in booked else SlotAvailabilityEnum.AVAILABLE,
        )
        for start in slots
    ]
