"""Value objects returned by the lifecycle operations.

None of these are persisted. Every lifecycle result carries the notification
events it produced so the caller decides how they are delivered.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .booking import Booking
from .enums import HoldAction, HoldStatus, NotificationEventType
from .errors import ErrorResponse
from .subscription import RecurringSubscription


class CancellationPolicyResult(BaseModel):
    """Outcome of the cancellation policy for a booking at a point in time."""

    model_config = ConfigDict(strict=True, frozen=True)

    can_cancel: bool
    reason: str
    refund_percentage: int = Field(..., ge=0, le=100)
    hours_until_service: float


class NotificationEvent(BaseModel):
    """A side-effect request for the notification emitter."""

    model_config = ConfigDict(strict=True)

    event_type: NotificationEventType
    booking_id: str
    recipient_ref: str
    payload: dict[str, Any] = Field(default_factory=dict)


class HoldRef(BaseModel):
    """Reference to a payment hold placed against a booking."""

    model_config = ConfigDict(strict=True)

    hold_id: str
    booking_id: str
    amount: int = Field(..., ge=0, description="Amount reserved by the hold")
    amount_captured: int = Field(default=0, ge=0)
    currency: str
    status: HoldStatus


class CaptureResult(BaseModel):
    model_config = ConfigDict(strict=True)

    hold_id: str
    amount_captured: int = Field(..., ge=0)
    already_captured: bool = False


class VoidOrRefundResult(BaseModel):
    """What happened to the held funds on release."""

    model_config = ConfigDict(strict=True)

    hold_id: str
    action: HoldAction
    refund_amount: int = Field(..., ge=0)
    refund_id: Optional[str] = None


class BookingResult(BaseModel):
    """A booking plus the notification events the operation produced."""

    booking: Booking
    events: list[NotificationEvent] = Field(default_factory=list)


class CancellationOutcome(BaseModel):
    """Result of a cancellation.

    ``action`` distinguishes a void (no funds ever moved) from a refund of
    captured funds; the booking ends ``canceled`` either way.
    """

    booking: Booking
    policy: CancellationPolicyResult
    refund_percentage: int
    refund_amount: int
    action: HoldAction
    events: list[NotificationEvent] = Field(default_factory=list)


class CancellationPreview(BaseModel):
    """Policy and refund a cancellation would get right now."""

    booking_id: str
    policy: CancellationPolicyResult
    refund_amount: int
    evaluated_at: datetime
    policy_description: str


class GenerationStatus(str, Enum):
    GENERATED = "generated"
    REPLAYED = "replayed"
    SKIPPED = "skipped"


class GenerationResult(BaseModel):
    """Result of asking the recurrence generator for the next booking."""

    status: GenerationStatus
    source_booking_id: str
    booking: Optional[Booking] = None
    subscription: Optional[RecurringSubscription] = None
    reason: Optional[str] = None
    events: list[NotificationEvent] = Field(default_factory=list)


class CompletionOutcome(BaseModel):
    """Result of completing a booking, including its recurrence follow-up."""

    booking: Booking
    amount_captured: int
    recurrence: Optional[GenerationResult] = None
    recurrence_error: Optional[ErrorResponse] = None
    events: list[NotificationEvent] = Field(default_factory=list)


class SubscriptionResult(BaseModel):
    subscription: RecurringSubscription
    first_booking: Optional[Booking] = None
    events: list[NotificationEvent] = Field(default_factory=list)
