"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception.

    Subclasses are expected business conditions. Infrastructure failures
    (database down, driver errors) are never wrapped in these and surface as
    500 ``internal_error``.
    """

    status_code = 400
    code = "app_error"
    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class UnauthenticatedException(AppException):
    status_code = 401
    code = "unauthorized"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    status_code = 422
    code = "business_rule_violation"


class InvalidRangeException(BusinessRuleException):
    """Operating hours do not form a valid window."""

    code = "invalid_range"


class InvalidSlotException(BusinessRuleException):
    """Requested start time is not a bookable slot of the ground."""

    code = "invalid_slot"


class EmptySelectionException(BusinessRuleException):
    code = "empty_selection"


class CancellationWindowPassedException(BusinessRuleException):
    code = "cancellation_window_passed"


class GroundNotFoundException(NotFoundException):
    code = "ground_not_found"


class SportNotFoundException(NotFoundException):
    code = "sport_not_found"


class BookingNotFoundException(NotFoundException):
    code = "booking_not_found"


class SlotConflictException(ConflictException):
    """Slot was claimed by another booking. The caller may pick again."""

    code = "slot_conflict"
    retryable = True

    def __init__(self, message: str, start_times: set[str] | None = None) -> None:
        super().__init__(message)
        self.start_times = set(start_times or ())


class InvalidTransitionException(ConflictException):
    code = "invalid_transition"


class InvalidSignatureException(AppException):
    """Payment notification failed verification."""

    status_code = 400
    code = "invalid_signature"


class PaymentGatewayNotConfiguredException(AppException):
    status_code = 503
    code = "payment_gateway_unavailable"


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    error: dict[str, object] = {"code": exc.code, "message": exc.message}
    if exc.retryable:
        error["retryable"] = True
    return JSONResponse(status_code=exc.status_code, content={"error": error})


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
