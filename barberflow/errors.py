from __future__ import annotations


class BookingError(Exception):
    """Base for failures that are part of the booking protocol.

    Each subclass carries the HTTP status, a stable machine-readable code and
    the message shown to the caller. Token messages are deliberately generic.
    """

    status_code = 400
    code = "BOOKING_ERROR"
    message = "Booking request failed."
    expected = True

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class TokenNotFoundError(BookingError):
    status_code = 404
    code = "INVALID_TOKEN"
    message = "Invalid booking link."


class TokenExpiredError(BookingError):
    status_code = 410
    code = "TOKEN_EXPIRED"
    message = "This booking link has expired. Please request a new one."


class TokenAlreadyUsedError(BookingError):
    status_code = 410
    code = "TOKEN_USED"
    message = "This booking link has already been used."


class TokenRateLimitedError(BookingError):
    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many attempts. Please wait a moment and try again."


class SlotOccupiedError(BookingError):
    status_code = 409
    code = "SLOT_OCCUPIED"
    message = "Appointment already exists"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"
    message = "The requested resource was not found"


class InvalidStatusTransitionError(BookingError):
    status_code = 409
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid status transition from {current} to {target}")


TOKEN_ERRORS_BY_REASON: dict[str, type[BookingError]] = {
    "not_found": TokenNotFoundError,
    "expired": TokenExpiredError,
    "already_used": TokenAlreadyUsedError,
    "rate_limited": TokenRateLimitedError,
}
