"""Booking model and creation draft.

Amounts are integer minor currency units throughout.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .enums import BookingStatus, HoldStatus


def require_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Reject naive datetimes."""
    if value is not None and value.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return value


class Booking(BaseModel):
    """A service booking between a customer and a professional."""

    model_config = ConfigDict(strict=True)

    booking_id: str = Field(..., description="Unique booking ID")
    customer_ref: str = Field(..., min_length=1)
    professional_ref: str = Field(..., min_length=1)

    scheduled_start: Optional[datetime] = Field(
        default=None, description="Timezone-aware service start"
    )
    duration_minutes: int = Field(..., gt=0)

    currency: str = Field(..., min_length=3, max_length=3)
    amount_estimated: int = Field(..., gt=0, description="Pre-authorization quote")
    amount_authorized: Optional[int] = Field(default=None, ge=0)
    amount_captured: Optional[int] = Field(default=None, ge=0)
    hold_id: Optional[str] = Field(
        default=None, description="The single active payment hold reference"
    )
    hold_status: Optional[HoldStatus] = None
    authorization_attempt: int = Field(
        default=0, ge=0, description="Bumped after each failed authorization"
    )

    status: BookingStatus = BookingStatus.PENDING_PAYMENT

    canceled_reason: Optional[str] = None
    canceled_at: Optional[datetime] = None
    canceled_by: Optional[str] = None
    refund_percentage: Optional[int] = Field(default=None, ge=0, le=100)
    refund_amount: Optional[int] = Field(default=None, ge=0)
    declined_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None

    recurring_plan_id: Optional[str] = None
    is_subscription_generated: bool = False
    generated_from_booking_id: Optional[str] = None

    service_name: Optional[str] = None
    service_hourly_rate: Optional[int] = Field(default=None, ge=0)
    address: Optional[str] = None
    special_instructions: Optional[str] = None

    version: int = Field(default=1, ge=1, description="Bumped on every write")
    created_at: datetime
    updated_at: datetime

    @field_validator("scheduled_start", "canceled_at", "confirmed_at")
    @classmethod
    def check_timezone_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_aware(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def scheduled_end(self) -> Optional[datetime]:
        """End of the service window, always derived from start and duration."""
        if self.scheduled_start is None:
            return None
        return self.scheduled_start + timedelta(minutes=self.duration_minutes)

    @model_validator(mode="after")
    def check_amounts(self) -> "Booking":
        if self.amount_captured is not None:
            if self.amount_authorized is None or self.amount_captured > self.amount_authorized:
                raise ValueError("amount_captured cannot exceed amount_authorized")
        return self

    @property
    def has_active_hold(self) -> bool:
        return self.hold_id is not None and self.hold_status != HoldStatus.VOIDED


class BookingDraft(BaseModel):
    """Data required to create a booking."""

    model_config = ConfigDict(strict=True)

    customer_ref: str
    professional_ref: str
    scheduled_start: Optional[datetime] = None
    duration_minutes: int = Field(..., gt=0)
    currency: str = Field(default="COP", min_length=3, max_length=3)
    amount: Optional[int] = Field(
        default=None, description="Explicit amount; derived from the hourly rate if omitted"
    )

    service_name: Optional[str] = None
    service_hourly_rate: Optional[int] = Field(default=None, ge=0)
    address: Optional[str] = None
    special_instructions: Optional[str] = None

    customer_email: Optional[str] = None
    payment_method_ref: Optional[str] = None

    recurring_plan_id: Optional[str] = None
    is_subscription_generated: bool = False
    generated_from_booking_id: Optional[str] = None

    @field_validator("scheduled_start")
    @classmethod
    def check_timezone_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_aware(value)
