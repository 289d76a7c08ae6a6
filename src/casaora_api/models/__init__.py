"""API request and response models."""

from .bookings import (
    AuthorizeBookingRequest,
    CancelBookingRequest,
    CompleteBookingRequest,
    CreateBookingRequest,
    DeclineBookingRequest,
    RescheduleBookingRequest,
)
from .subscriptions import CreateSubscriptionRequest, SubscriptionStatusRequest

__all__ = [
    "AuthorizeBookingRequest",
    "CancelBookingRequest",
    "CompleteBookingRequest",
    "CreateBookingRequest",
    "CreateSubscriptionRequest",
    "DeclineBookingRequest",
    "RescheduleBookingRequest",
    "SubscriptionStatusRequest",
]
