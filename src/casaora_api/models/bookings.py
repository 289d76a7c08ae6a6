"""API request models for booking endpoints.

These accept JSON (strict=False, so ISO strings coerce to datetimes) and
convert to the strict domain drafts.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from casaora_bookings.models.booking import BookingDraft, require_aware


class CreateBookingRequest(BaseModel):
    """Request body for creating a booking.

    The customer is the authenticated actor, never a body field.
    """

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "professional_ref": "prof-7f3a",
                    "scheduled_start": "2026-11-03T09:00:00-05:00",
                    "duration_minutes": 180,
                    "service_name": "Deep cleaning",
                    "service_hourly_rate": 35000,
                    "address": "Cra 7 # 71-21, Bogotá",
                    "payment_method_ref": "pm_card_visa",
                }
            ]
        },
    )

    professional_ref: str = Field(..., min_length=1, description="Professional being booked")
    scheduled_start: datetime = Field(..., description="Timezone-aware service start (ISO 8601)")
    duration_minutes: int = Field(..., gt=0, examples=[120, 180])
    currency: str = Field(default="COP", min_length=3, max_length=3)
    amount: Optional[int] = Field(
        default=None,
        gt=0,
        description="Explicit amount in minor units; derived from the hourly rate if omitted",
    )
    service_name: Optional[str] = Field(default=None, max_length=200)
    service_hourly_rate: Optional[int] = Field(default=None, ge=0)
    address: Optional[str] = Field(default=None, max_length=500)
    special_instructions: Optional[str] = Field(default=None, max_length=1000)
    customer_email: Optional[str] = None
    payment_method_ref: Optional[str] = Field(
        default=None, description="Processor payment method to place the hold with"
    )

    @field_validator("scheduled_start")
    @classmethod
    def check_timezone_aware(cls, value: datetime) -> datetime:
        return require_aware(value)

    def to_draft(self, customer_ref: str) -> BookingDraft:
        return BookingDraft(customer_ref=customer_ref, **self.model_dump())


class AuthorizeBookingRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    payment_method_ref: Optional[str] = None
    customer_email: Optional[str] = None


class DeclineBookingRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    reason: Optional[str] = Field(default=None, max_length=500)


class CancelBookingRequest(BaseModel):
    """Request body for cancelling a booking."""

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={"examples": [{"reason": "Change of plans"}]},
    )

    reason: Optional[str] = Field(default=None, max_length=500, description="Cancellation reason")


class RescheduleBookingRequest(BaseModel):
    """Request body for moving a booking to a new start time."""

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [{"new_start": "2026-11-05T14:00:00-05:00", "new_duration_minutes": 120}]
        },
    )

    new_start: datetime = Field(..., description="New timezone-aware start")
    new_duration_minutes: Optional[int] = Field(default=None, description="Keeps the current duration if omitted")


class CompleteBookingRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    final_amount: Optional[int] = Field(
        default=None, description="Amount to capture; defaults to the authorized amount"
    )
