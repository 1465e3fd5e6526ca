"""Domain Errors

Every failure of the booking lifecycle is a BookingError carrying a
machine-readable ``kind`` and the HTTP status the API layer answers with.
"""
from typing import Any, Optional


class BookingError(Exception):
    """Base class for booking lifecycle errors"""

    kind = "BookingError"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
        }


class BookingValidationError(BookingError, ValueError):
    kind = "ValidationError"
    status_code = 400

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, details=errors or [message])
        self.errors = errors or [message]


class BookingConflict(BookingError):
    kind = "BookingConflict"
    status_code = 409


class CapacityExceeded(BookingError):
    kind = "CapacityExceeded"
    status_code = 409


class InsufficientPoints(BookingError):
    kind = "InsufficientPoints"
    status_code = 400


class InvalidAmount(BookingError, ValueError):
    kind = "InvalidAmount"
    status_code = 400


class InvalidBookingState(BookingError):
    kind = "InvalidState"
    status_code = 400


class PaymentDeclined(BookingError):
    kind = "PaymentDeclined"
    status_code = 402

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class RefundFailed(BookingError):
    kind = "RefundFailed"
    status_code = 502

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class NotFound(BookingError):
    kind = "NotFound"
    status_code = 404


class Unauthorized(BookingError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(BookingError):
    kind = "Forbidden"
    status_code = 403
