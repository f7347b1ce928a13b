"""
Error taxonomy for the booking engine.

Every error carries a stable code, the HTTP status the API maps it to, and
whether the caller may retry. Capacity and discount races are retryable so
clients can tell them apart from generic failures.
"""

from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CAPACITY_CONFLICT = "CAPACITY_CONFLICT"
    DISCOUNT_INVALID = "DISCOUNT_INVALID"
    DISCOUNT_CONFLICT = "DISCOUNT_CONFLICT"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"


class BookingEngineError(Exception):
    """Base class for errors the engine surfaces to its callers."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(BookingEngineError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class NotFoundError(BookingEngineError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class CapacityConflict(BookingEngineError):
    """Overbooking detected during reconciliation. Safe to retry."""

    code = ErrorCode.CAPACITY_CONFLICT
    status_code = 409
    retryable = True

    def __init__(self, message: str = "Not enough capacity available, please try again") -> None:
        super().__init__(message)


class DiscountInvalid(BookingEngineError):
    code = ErrorCode.DISCOUNT_INVALID
    status_code = 400


class DiscountConflict(BookingEngineError):
    code = ErrorCode.DISCOUNT_CONFLICT
    status_code = 409
    retryable = True

    def __init__(self, message: str = "Discount code balance changed, please try again") -> None:
        super().__init__(message)


class PersistenceFailure(BookingEngineError):
    code = ErrorCode.PERSISTENCE_FAILURE
    status_code = 503


class DuplicateRecordError(PersistenceFailure):
    """A create collided with an existing unique key."""


class SignatureInvalid(BookingEngineError):
    code = ErrorCode.SIGNATURE_INVALID
    status_code = 400


class PaymentGatewayError(BookingEngineError):
    code = ErrorCode.PAYMENT_GATEWAY_ERROR
    status_code = 502


class Unauthorized(BookingEngineError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
