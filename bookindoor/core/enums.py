"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """Operator roles. Customers book as guests or plain users."""

    CUSTOMER = "customer"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class BookingStatusEnum(StrEnum):
    """Booking lifecycle status."""

    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatusEnum(StrEnum):
    """Booking payment progress. Only ever advances."""

    PENDING = "pending"
    ADVANCED_PAID = "advanced_paid"
    FULL_PAID = "full_paid"


class PaymentTierEnum(StrEnum):
    """Payment tier chosen at checkout and echoed back by the gateway."""

    ADVANCE = "advance"
    FULL = "full"


class SlotAvailabilityEnum(StrEnum):
    """Slot state shown on the day calendar."""

    AVAILABLE = "available"
    BOOKED = "booked"


class GatewayOutcomeEnum(StrEnum):
    """PayHere notification outcome mapped from its status code."""

    SUCCESS = "success"
    PENDING = "pending"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CHARGEDBACK = "chargedback"
    UNKNOWN = "unknown"


class NotificationStatusEnum(StrEnum):
    """Notification delivery status."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
