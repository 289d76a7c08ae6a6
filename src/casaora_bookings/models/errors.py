"""Standard error codes and exceptions for the booking lifecycle engine.

Every failure the engine surfaces is a ``BookingError`` subclass carrying an
``ErrorCode``. Callers (the HTTP layer, webhook handlers, background jobs)
convert them to an ``ErrorResponse`` so clients can tell a policy block from a
concurrency conflict from a processor failure.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Booking lifecycle errors (ERR_001-ERR_010)
    POLICY_BLOCKED = "ERR_001"
    CONFLICTING_TRANSITION = "ERR_002"
    INVALID_TRANSITION = "ERR_003"
    PAST_DATE = "ERR_004"
    INVALID_AMOUNT = "ERR_005"
    BOOKING_NOT_FOUND = "ERR_006"
    UNAUTHORIZED = "ERR_007"
    VALIDATION_FAILED = "ERR_008"
    SUBSCRIPTION_NOT_FOUND = "ERR_009"
    ALREADY_GENERATED = "ERR_010"

    # Payment processor error codes (ERR_PAY_001-ERR_PAY_004)
    CARD_DECLINED = "ERR_PAY_001"
    PROCESSOR_UNAVAILABLE = "ERR_PAY_002"
    AMBIGUOUS_OUTCOME = "ERR_PAY_003"
    INVALID_HOLD_STATE = "ERR_PAY_004"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.POLICY_BLOCKED: "Cancellation is not allowed by the cancellation policy",
    ErrorCode.CONFLICTING_TRANSITION: "The booking was changed by another request",
    ErrorCode.INVALID_TRANSITION: "This action is not allowed in the booking's current status",
    ErrorCode.PAST_DATE: "The requested date is not in the future",
    ErrorCode.INVALID_AMOUNT: "The requested amount is not valid",
    ErrorCode.BOOKING_NOT_FOUND: "Booking not found",
    ErrorCode.UNAUTHORIZED: "Not authorized to act on this booking",
    ErrorCode.VALIDATION_FAILED: "The booking request is invalid",
    ErrorCode.SUBSCRIPTION_NOT_FOUND: "Recurring subscription not found",
    ErrorCode.ALREADY_GENERATED: "The next booking was already generated",
    ErrorCode.CARD_DECLINED: "The payment method was declined",
    ErrorCode.PROCESSOR_UNAVAILABLE: "The payment processor is temporarily unavailable",
    ErrorCode.AMBIGUOUS_OUTCOME: "The payment outcome is unknown and must be reconciled",
    ErrorCode.INVALID_HOLD_STATE: "The payment hold is not in a state that allows this action",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.POLICY_BLOCKED: "Show the policy reason; no retry needed",
    ErrorCode.CONFLICTING_TRANSITION: "Re-fetch the booking and decide again",
    ErrorCode.INVALID_TRANSITION: "Check the booking status before retrying",
    ErrorCode.PAST_DATE: "Choose a start time in the future",
    ErrorCode.INVALID_AMOUNT: "Correct the amount and try again",
    ErrorCode.BOOKING_NOT_FOUND: "Verify the booking ID",
    ErrorCode.UNAUTHORIZED: "Only the booking's customer, professional or an admin may do this",
    ErrorCode.VALIDATION_FAILED: "Correct the highlighted field and try again",
    ErrorCode.SUBSCRIPTION_NOT_FOUND: "Verify the subscription ID",
    ErrorCode.ALREADY_GENERATED: "Use the previously generated booking",
    ErrorCode.CARD_DECLINED: "Ask the customer to use a different payment method",
    ErrorCode.PROCESSOR_UNAVAILABLE: "Retry with the same idempotency key",
    ErrorCode.AMBIGUOUS_OUTCOME: "Reconcile processor state before any retry",
    ErrorCode.INVALID_HOLD_STATE: "Re-fetch the hold status",
}

# Only transient processor failures are safe to retry as-is
RETRYABLE_ERRORS: set[ErrorCode] = {ErrorCode.PROCESSOR_UNAVAILABLE}


class ErrorResponse(BaseModel):
    """Standard error response format.

    Returned by every exposed operation when it fails, so the caller can
    branch on ``error_code`` rather than parsing messages.
    """

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    retryable: bool = False
    details: Optional[dict[str, Any]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error
            message: Optional message overriding the default for the code

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=message or ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            retryable=code in RETRYABLE_ERRORS,
            details=details,
        )


class BookingError(Exception):
    """Base exception raised by booking lifecycle operations.

    Can be caught and converted to an ErrorResponse for API responses.
    """

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """True if the failed call may be retried with the same idempotency key."""
        return self.code in RETRYABLE_ERRORS

    def with_details(self, **extra: Any) -> "BookingError":
        """Merge extra context into the error details and return self."""
        for key, value in extra.items():
            self.details.setdefault(key, value)
        return self

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details or None, self.message)


class PolicyBlocked(BookingError):
    """Cancellation refused by the time/status policy."""

    code = ErrorCode.POLICY_BLOCKED

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(details={"reason": reason, **(details or {})}, message=reason)
        self.reason = reason


class ConflictingTransition(BookingError):
    """The booking was not in the status the caller expected."""

    code = ErrorCode.CONFLICTING_TRANSITION

    def __init__(self, booking_id: str, expected: str, actual: Optional[str]):
        super().__init__(
            details={"booking_id": booking_id, "expected": expected, "actual": actual}
        )
        self.booking_id = booking_id
        self.expected = expected
        self.actual = actual


class InvalidTransition(BookingError):
    """The requested event or target status is illegal from the current status."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current: str, attempted: str):
        super().__init__(
            details={"current_status": current, "attempted": attempted},
            message=f"Cannot {attempted} a booking that is {current}",
        )
        self.current = current
        self.attempted = attempted


class PastDateError(BookingError):
    """A schedule field is not strictly in the future."""

    code = ErrorCode.PAST_DATE

    def __init__(self, field: str, value: str):
        super().__init__(
            details={"field": field, "value": value},
            message=f"{field} must be in the future",
        )
        self.field = field


class InvalidAmount(BookingError):
    """A money amount is out of the allowed range."""

    code = ErrorCode.INVALID_AMOUNT

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__(details={"reason": reason, **(details or {})})


class BookingNotFound(BookingError):
    code = ErrorCode.BOOKING_NOT_FOUND

    def __init__(self, booking_id: str):
        super().__init__(details={"booking_id": booking_id})
        self.booking_id = booking_id


class SubscriptionNotFound(BookingError):
    code = ErrorCode.SUBSCRIPTION_NOT_FOUND

    def __init__(self, subscription_id: str):
        super().__init__(details={"subscription_id": subscription_id})
        self.subscription_id = subscription_id


class BookingValidationError(BookingError):
    """A required field is missing or invalid."""

    code = ErrorCode.VALIDATION_FAILED

    def __init__(self, field: str, reason: str):
        super().__init__(
            details={"field": field, "reason": reason},
            message=f"Invalid {field}: {reason}",
        )
        self.field = field


class Unauthorized(BookingError):
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, actor_ref: str, reason: str):
        super().__init__(details={"actor_ref": actor_ref, "reason": reason})


class AlreadyGenerated(BookingError):
    """The recurrence for this source booking already produced a booking."""

    code = ErrorCode.ALREADY_GENERATED

    def __init__(
        self, subscription_id: str, source_booking_id: str, generated_booking_id: str
    ):
        super().__init__(
            details={
                "subscription_id": subscription_id,
                "source_booking_id": source_booking_id,
                "generated_booking_id": generated_booking_id,
            }
        )
        self.generated_booking_id = generated_booking_id


class InvalidHoldState(BookingError):
    code = ErrorCode.INVALID_HOLD_STATE

    def __init__(self, hold_id: str, status: str, operation: str):
        super().__init__(
            details={"hold_id": hold_id, "hold_status": status, "operation": operation},
            message=f"Cannot {operation} a hold in status {status}",
        )


class ProcessorError(BookingError):
    """Base class for payment processor failures."""

    code = ErrorCode.PROCESSOR_UNAVAILABLE

    def __init__(
        self,
        message: Optional[str] = None,
        processor_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if processor_code:
            merged["processor_code"] = processor_code
        super().__init__(details=merged, message=message)
        self.processor_code = processor_code


class CardDeclined(ProcessorError):
    code = ErrorCode.CARD_DECLINED


class ProcessorUnavailable(ProcessorError):
    code = ErrorCode.PROCESSOR_UNAVAILABLE


class AmbiguousOutcome(ProcessorError):
    """Timeout or dropped connection: the processor may or may not have acted."""

    code = ErrorCode.AMBIGUOUS_OUTCOME


# Processor decline codes mapped to user-facing copy
DECLINE_MESSAGES: dict[str, str] = {
    "card_declined": "Your card was declined. Please try a different card.",
    "expired_card": "Your card has expired. Please use a different card.",
    "insufficient_funds": "Your card has insufficient funds. Please try a different card.",
    "incorrect_cvc": "The security code (CVC) is incorrect. Please check and try again.",
    "processing_error": "A processing error occurred. Please try again.",
    "authentication_required": "Your bank requires additional verification for this card.",
}


def get_user_friendly_decline_message(
    processor_code: Optional[str],
    default_message: str = "Payment could not be authorized. Please try again.",
) -> str:
    """Get a user-friendly message for a processor decline code.

    Args:
        processor_code: The processor's decline code (e.g., 'card_declined').
        default_message: Message to use if the code is unknown.

    Returns:
        User-friendly error message.
    """
    if processor_code and processor_code in DECLINE_MESSAGES:
        return DECLINE_MESSAGES[processor_code]
    return default_message
