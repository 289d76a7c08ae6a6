"""API request models for recurring subscription endpoints."""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from casaora_bookings.models.enums import Frequency, SubscriptionStatus, TerminationMode
from casaora_bookings.models.subscription import (
    ServiceTemplate,
    SubscriptionDraft,
    TerminationCondition,
)


class ServiceTemplateRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    name: str = Field(..., min_length=1, max_length=200)
    hourly_rate: int = Field(..., ge=0, description="Minor units per hour")
    duration_minutes: int = Field(..., gt=0)
    currency: str = Field(default="COP", min_length=3, max_length=3)
    address: Optional[str] = None
    instructions: Optional[str] = None


class TerminationRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    mode: TerminationMode = TerminationMode.NEVER
    total_count: Optional[int] = Field(default=None, gt=0)
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_mode_fields(self) -> "TerminationRequest":
        if self.mode == TerminationMode.OCCURRENCES and self.total_count is None:
            raise ValueError("occurrences termination requires total_count")
        if self.mode == TerminationMode.DATE and self.end_date is None:
            raise ValueError("date termination requires end_date")
        return self


class CreateSubscriptionRequest(BaseModel):
    """Request body for starting a recurring subscription.

    ``day_of_week`` uses 0-6 with Sunday as 0.
    """

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "professional_ref": "prof-7f3a",
                    "frequency": "weekly",
                    "day_of_week": 2,
                    "preferred_time": "09:00:00",
                    "timezone": "America/Bogota",
                    "service": {
                        "name": "Weekly cleaning",
                        "hourly_rate": 30000,
                        "duration_minutes": 180,
                    },
                    "termination": {"mode": "occurrences", "total_count": 8},
                    "first_booking_date": "2026-11-03",
                    "payment_method_ref": "pm_card_visa",
                }
            ]
        },
    )

    professional_ref: str = Field(..., min_length=1)
    frequency: Frequency
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    preferred_time: time
    timezone: str = "America/Bogota"
    service: ServiceTemplateRequest
    termination: TerminationRequest = Field(default_factory=TerminationRequest)
    first_booking_date: date
    payment_method_ref: Optional[str] = None

    def to_draft(self, customer_ref: str) -> SubscriptionDraft:
        """Convert to the domain draft."""
        return SubscriptionDraft(
            customer_ref=customer_ref,
            professional_ref=self.professional_ref,
            frequency=self.frequency,
            day_of_week=self.day_of_week,
            preferred_time=self.preferred_time,
            timezone=self.timezone,
            service=ServiceTemplate(**self.service.model_dump()),
            termination=TerminationCondition(**self.termination.model_dump()),
            first_booking_date=self.first_booking_date,
            payment_method_ref=self.payment_method_ref,
        )


class SubscriptionStatusRequest(BaseModel):
    model_config = ConfigDict(strict=False)

    status: SubscriptionStatus = Field(..., description="active, paused or cancelled")
