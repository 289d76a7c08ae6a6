"""Configuration for the booking lifecycle engine.

Policy values (refund tiers, minimum amount, recurrence discounts) are
explicit configuration handed to the ``PolicyCalculator`` at construction
time. Runtime settings come from environment variables, secrets from SSM.

Usage:
    from casaora_bookings.config import PolicyConfig, get_settings

    calculator = PolicyCalculator(PolicyConfig())
    settings = get_settings()
"""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.enums import BookingStatus, Frequency


class RefundTier(BaseModel):
    """One row of the cancellation refund table.

    Applies when the hours until service are at least ``min_hours``.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    min_hours: float = Field(..., ge=0)
    refund_percentage: int = Field(..., ge=0, le=100)
    label: str


DEFAULT_REFUND_TIERS: tuple[RefundTier, ...] = (
    RefundTier(min_hours=72, refund_percentage=100, label="Full refund"),
    RefundTier(min_hours=24, refund_percentage=50, label="50% refund"),
    RefundTier(min_hours=0, refund_percentage=0, label="No refund"),
)

DEFAULT_FREQUENCY_DISCOUNTS: dict[Frequency, int] = {
    Frequency.WEEKLY: 15,
    Frequency.BIWEEKLY: 12,
    Frequency.MONTHLY: 10,
}


class PolicyConfig(BaseModel):
    """Business rules for cancellation, pricing floors and recurrence.

    Tiers are kept sorted by ``min_hours`` descending; the refund percentage
    must never decrease as notice grows.
    """

    model_config = ConfigDict(frozen=True)

    refund_tiers: tuple[RefundTier, ...] = DEFAULT_REFUND_TIERS
    cancellable_statuses: frozenset[BookingStatus] = frozenset(
        {
            BookingStatus.PENDING_PAYMENT,
            BookingStatus.AUTHORIZED,
            BookingStatus.CONFIRMED,
        }
    )
    minimum_booking_amount: int = Field(default=20_000, gt=0)
    frequency_discounts: dict[Frequency, int] = Field(
        default_factory=lambda: dict(DEFAULT_FREQUENCY_DISCOUNTS)
    )
    default_currency: str = "COP"
    default_timezone: str = "America/Bogota"

    @field_validator("refund_tiers")
    @classmethod
    def check_tiers(cls, tiers: tuple[RefundTier, ...]) -> tuple[RefundTier, ...]:
        if not tiers:
            raise ValueError("at least one refund tier is required")
        ordered = tuple(sorted(tiers, key=lambda t: t.min_hours, reverse=True))
        if ordered[-1].min_hours != 0:
            raise ValueError("the lowest refund tier must start at 0 hours")
        percentages = [t.refund_percentage for t in ordered]
        if percentages != sorted(percentages, reverse=True):
            raise ValueError("refund percentage must not decrease with more notice")
        return ordered

    @field_validator("frequency_discounts")
    @classmethod
    def check_discounts(cls, discounts: dict[Frequency, int]) -> dict[Frequency, int]:
        for pct in discounts.values():
            if not 0 <= pct <= 100:
                raise ValueError("frequency discounts must be between 0 and 100")
        return discounts


class Settings(BaseModel):
    """Runtime settings read from the environment."""

    model_config = ConfigDict(frozen=True)

    environment: str = "dev"
    table_prefix: str = "casaora-dev"
    region: str = "us-east-1"
    notification_bus_name: str = "default"
    notification_source: str = "casaora.bookings"
    log_level: str = "INFO"

    @property
    def stripe_secret_key_parameter(self) -> str:
        return f"/casaora/{self.environment}/stripe/secret_key"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Returns:
            Settings with ENVIRONMENT, DYNAMODB_TABLE_PREFIX, AWS_DEFAULT_REGION,
            NOTIFICATION_BUS_NAME and LOG_LEVEL applied.
        """
        environment = os.environ.get("ENVIRONMENT", "dev")
        return cls(
            environment=environment,
            table_prefix=os.environ.get("DYNAMODB_TABLE_PREFIX", f"casaora-{environment}"),
            region=os.environ.get("AWS_DEFAULT_REGION")
            or os.environ.get("AWS_REGION", "us-east-1"),
            notification_bus_name=os.environ.get("NOTIFICATION_BUS_NAME", "default"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings (read once)."""
    return Settings.from_env()
