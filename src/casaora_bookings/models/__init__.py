"""Pydantic models for Casaora booking lifecycle entities."""

from .booking import Booking, BookingDraft
from .enums import (
    ActorRole,
    BookingEvent,
    BookingStatus,
    Frequency,
    HoldAction,
    HoldStatus,
    NotificationEventType,
    SubscriptionStatus,
    TerminationMode,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    RETRYABLE_ERRORS,
    AlreadyGenerated,
    AmbiguousOutcome,
    BookingError,
    BookingNotFound,
    BookingValidationError,
    CardDeclined,
    ConflictingTransition,
    ErrorCode,
    ErrorResponse,
    InvalidAmount,
    InvalidHoldState,
    InvalidTransition,
    PastDateError,
    PolicyBlocked,
    ProcessorError,
    ProcessorUnavailable,
    SubscriptionNotFound,
    Unauthorized,
    get_user_friendly_decline_message,
)
from .results import (
    BookingResult,
    CancellationOutcome,
    CancellationPolicyResult,
    CancellationPreview,
    CaptureResult,
    CompletionOutcome,
    GenerationResult,
    GenerationStatus,
    HoldRef,
    NotificationEvent,
    SubscriptionResult,
    VoidOrRefundResult,
)
from .subscription import (
    RecurringSubscription,
    ServiceTemplate,
    SubscriptionDraft,
    TerminationCondition,
)

__all__ = [
    # Enums
    "ActorRole",
    "BookingEvent",
    "BookingStatus",
    "Frequency",
    "HoldAction",
    "HoldStatus",
    "NotificationEventType",
    "SubscriptionStatus",
    "TerminationMode",
    # Booking
    "Booking",
    "BookingDraft",
    # Subscription
    "RecurringSubscription",
    "ServiceTemplate",
    "SubscriptionDraft",
    "TerminationCondition",
    # Results
    "BookingResult",
    "CancellationOutcome",
    "CancellationPolicyResult",
    "CancellationPreview",
    "CaptureResult",
    "CompletionOutcome",
    "GenerationResult",
    "GenerationStatus",
    "HoldRef",
    "NotificationEvent",
    "SubscriptionResult",
    "VoidOrRefundResult",
    # Errors
    "AlreadyGenerated",
    "AmbiguousOutcome",
    "BookingError",
    "BookingNotFound",
    "BookingValidationError",
    "CardDeclined",
    "ConflictingTransition",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ErrorCode",
    "ErrorResponse",
    "InvalidAmount",
    "InvalidHoldState",
    "InvalidTransition",
    "PastDateError",
    "PolicyBlocked",
    "ProcessorError",
    "ProcessorUnavailable",
    "RETRYABLE_ERRORS",
    "SubscriptionNotFound",
    "Unauthorized",
    "get_user_friendly_decline_message",
]
