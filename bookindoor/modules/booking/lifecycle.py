"""Booking state machine.

``status``: reserved -> confirmed -> cancelled, reserved -> cancelled.
Cancelled is terminal. ``payment_status`` is a separate axis that only moves
forward: pending -> advanced_paid -> full_paid (advanced_paid may be skipped).
Re-applying the current value is always allowed and changes nothing.
"""

from __future__ import annotations

from bookindoor.core.enums import BookingStatusEnum, PaymentStatusEnum
from bookindoor.shared.exceptions import InvalidTransitionException

STATUS_TRANSITIONS: dict[BookingStatusEnum, frozenset[BookingStatusEnum]] = {
    BookingStatusEnum.RESERVED: frozenset({BookingStatusEnum.CONFIRMED, BookingStatusEnum.CANCELLED}),
    BookingStatusEnum.CONFIRMED: frozenset({BookingStatusEnum.CANCELLED}),
    BookingStatusEnum.CANCELLED: frozenset(),
}

PAYMENT_RANK: dict[PaymentStatusEnum, int] = {
    PaymentStatusEnum.PENDING: 0,
    PaymentStatusEnum.ADVANCED_PAID: 1,
    PaymentStatusEnum.FULL_PAID: 2,
}


def check_status_transition(current: BookingStatusEnum, target: BookingStatusEnum) -> bool:
    """Return True if moving to ``target`` changes the booking."""
    if current == target:
        return False
    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidTransitionException(f"Invalid booking status transition: {current} -> {target}")
    return True


def check_payment_transition(current: PaymentStatusEnum, target: PaymentStatusEnum) -> bool:
    """Return True if moving to ``target`` changes the booking."""
    if current == target:
        return False
    if PAYMENT_RANK[target] < PAYMENT_RANK[current]:
        raise InvalidTransitionException(f"Invalid payment status transition: {current} -> {target}")
    return True


def furthest_payment_status(*statuses: PaymentStatusEnum) -> PaymentStatusEnum:
    return max(statuses, key=PAYMENT_RANK.__getitem__)
