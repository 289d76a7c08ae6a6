"""Recurring subscription models."""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import Frequency, SubscriptionStatus, TerminationMode


class ServiceTemplate(BaseModel):
    """The service each generated occurrence books."""

    model_config = ConfigDict(strict=True)

    name: str
    hourly_rate: int = Field(..., ge=0, description="Minor units per hour")
    duration_minutes: int = Field(..., gt=0)
    currency: str = Field(default="COP", min_length=3, max_length=3)
    address: Optional[str] = None
    instructions: Optional[str] = None


class TerminationCondition(BaseModel):
    """When a subscription stops generating bookings."""

    model_config = ConfigDict(strict=True)

    mode: TerminationMode = TerminationMode.NEVER
    total_count: Optional[int] = Field(default=None, gt=0)
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_mode_fields(self) -> "TerminationCondition":
        if self.mode == TerminationMode.OCCURRENCES and self.total_count is None:
            raise ValueError("occurrences termination requires total_count")
        if self.mode == TerminationMode.DATE and self.end_date is None:
            raise ValueError("date termination requires end_date")
        return self


class RecurringSubscription(BaseModel):
    """A recurring plan that spawns successive bookings.

    ``day_of_week`` uses 0-6 with Sunday as 0. ``next_booking_date`` only
    ever moves forward.
    """

    model_config = ConfigDict(strict=True)

    subscription_id: str
    customer_ref: str
    professional_ref: str

    frequency: Frequency
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    preferred_time: time
    timezone: str = Field(default="America/Bogota", description="IANA timezone name")
    service: ServiceTemplate

    discount_percentage: int = Field(default=0, ge=0, le=100)
    occurrence_amount: int = Field(..., gt=0, description="Discounted per-occurrence amount")

    termination: TerminationCondition = Field(default_factory=TerminationCondition)

    next_booking_date: date
    total_occurrences_completed: int = Field(default=0, ge=0)
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    payment_method_ref: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SubscriptionDraft(BaseModel):
    """Data required to start a recurring subscription."""

    model_config = ConfigDict(strict=True)

    customer_ref: str
    professional_ref: str
    frequency: Frequency
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    preferred_time: time
    timezone: str = "America/Bogota"
    service: ServiceTemplate
    termination: TerminationCondition = Field(default_factory=TerminationCondition)
    first_booking_date: date
    payment_method_ref: Optional[str] = None
