"""Shared utility functions."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_clock(value: str) -> time:
    """Parse a strict ``HH:MM`` time of day. Raises ValueError otherwise."""
    if not isinstance(value, str) or len(value) != 5 or value[2] != ":":
        raise ValueError(f"Invalid time of day: {value!r}")
    hours, minutes = value[:2], value[3:]
    if not (hours.isdigit() and minutes.isdigit()):
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(int(hours), int(minutes))


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def venue_datetime(day: date, start: str, zone: ZoneInfo) -> datetime:
    """Absolute UTC instant of a local slot start at the venue."""
    return datetime.combine(day, parse_clock(start), tzinfo=zone).astimezone(timezone.utc)
