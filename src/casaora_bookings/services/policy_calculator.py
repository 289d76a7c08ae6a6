"""Cancellation, refund, pricing and recurrence math.

Pure and deterministic: every method is a function of its arguments and
the injected ``PolicyConfig``. No clock reads, no I/O.

Money is integer minor currency units. Percentages are applied with
``decimal`` and half-up rounding, never floats.
"""

import calendar
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..config import PolicyConfig, RefundTier
from ..models.enums import BookingStatus, Frequency, TerminationMode
from ..models.errors import InvalidAmount
from ..models.results import CancellationPolicyResult
from ..models.subscription import RecurringSubscription


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, ties away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month.

    Example:
        add_months(date(2026, 1, 31), 1) -> date(2026, 2, 28)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def to_python_weekday(day_of_week: int) -> int:
    """Convert a Sunday=0 day-of-week to Python's Monday=0 weekday."""
    return (day_of_week - 1) % 7


class PolicyCalculator:
    """Computes cancellation eligibility, refunds and next occurrences.

    Policy tiers (defaults, all configurable through ``PolicyConfig``):
    - FULL (100%): 72+ hours before service
    - PARTIAL (50%): 24-72 hours before service
    - NONE (0%): less than 24 hours before service
    - After the service start: cancellation not allowed
    """

    def __init__(self, config: Optional[PolicyConfig] = None) -> None:
        self.config = config or PolicyConfig()

    # Cancellation

    def calculate_cancellation_policy(
        self,
        scheduled_start: Optional[datetime],
        current_status: BookingStatus,
        now: datetime,
    ) -> CancellationPolicyResult:
        """Decide whether a booking can be cancelled and what it refunds.

        Args:
            scheduled_start: Timezone-aware service start, or None
            current_status: The booking's status right now
            now: Timezone-aware evaluation time

        Returns:
            CancellationPolicyResult with the applied tier's refund percentage
        """
        if scheduled_start is None:
            return CancellationPolicyResult(
                can_cancel=False,
                reason="Booking has no schedule",
                refund_percentage=0,
                hours_until_service=0.0,
            )

        hours = (scheduled_start - now).total_seconds() / 3600

        if current_status not in self.config.cancellable_statuses:
            return CancellationPolicyResult(
                can_cancel=False,
                reason=f"Bookings that are {current_status.value} cannot be cancelled",
                refund_percentage=0,
                hours_until_service=hours,
            )

        if hours < 0:
            return CancellationPolicyResult(
                can_cancel=False,
                reason="Service has already started; cancellation is not allowed",
                refund_percentage=0,
                hours_until_service=hours,
            )

        tier = self._tier_for(hours)
        return CancellationPolicyResult(
            can_cancel=True,
            reason=(
                f"{tier.label} ({tier.refund_percentage}%): cancelled "
                f"{hours:.1f} hours before service (policy: {self._describe_tier(tier)})"
            ),
            refund_percentage=tier.refund_percentage,
            hours_until_service=hours,
        )

    def calculate_refund_amount(self, amount_authorized: int, refund_percentage: int) -> int:
        """Refund for an authorized amount at a percentage, half-up rounded.

        Args:
            amount_authorized: Authorized amount in minor units
            refund_percentage: 0 to 100

        Returns:
            Refund amount in minor units
        """
        if amount_authorized < 0:
            raise InvalidAmount("amount must not be negative", {"amount": amount_authorized})
        if not 0 <= refund_percentage <= 100:
            raise InvalidAmount(
                "refund percentage must be between 0 and 100",
                {"refund_percentage": refund_percentage},
            )
        return round_half_up(Decimal(amount_authorized) * Decimal(refund_percentage) / 100)

    def get_policy_description(self) -> str:
        """Get human-readable description of the configured refund policy."""
        lines = ["Cancellation Policy:"]
        for tier in self.config.refund_tiers:
            lines.append(f"• {self._describe_tier(tier)}: {tier.label} ({tier.refund_percentage}%)")
        lines.append("• After the service has started: cancellation not allowed")
        return "\n".join(lines)

    def _tier_for(self, hours: float) -> RefundTier:
        for tier in self.config.refund_tiers:
            if hours >= tier.min_hours:
                return tier
        # Unreachable for hours >= 0: the lowest tier starts at 0
        return self.config.refund_tiers[-1]

    def _describe_tier(self, tier: RefundTier) -> str:
        tiers = self.config.refund_tiers
        index = tiers.index(tier)
        if index == 0:
            return f"{tier.min_hours:g}+ hours before service"
        upper = tiers[index - 1].min_hours
        if tier.min_hours == 0:
            return f"less than {upper:g} hours before service"
        return f"{tier.min_hours:g}-{upper:g} hours before service"

    # Pricing

    def calculate_booking_amount(
        self,
        amount: Optional[int] = None,
        hourly_rate: Optional[int] = None,
        duration_minutes: Optional[int] = None,
    ) -> int:
        """Resolve the amount to authorize for a booking.

        An explicit amount wins. Otherwise the hourly rate times the duration,
        floored at the configured minimum. With neither, the minimum applies.

        Raises:
            InvalidAmount: If an explicit amount is not positive
        """
        minimum = self.config.minimum_booking_amount
        if amount is not None:
            if amount <= 0:
                raise InvalidAmount("amount must be greater than zero", {"amount": amount})
            return amount
        if hourly_rate and duration_minutes:
            derived = round_half_up(Decimal(hourly_rate) * Decimal(duration_minutes) / 60)
            return max(derived, minimum)
        return minimum

    def frequency_discount(self, frequency: Frequency) -> int:
        return self.config.frequency_discounts.get(frequency, 0)

    def calculate_discounted_amount(self, amount: int, discount_percentage: int) -> int:
        """Apply a percentage discount to an amount, half-up rounded."""
        if not 0 <= discount_percentage <= 100:
            raise InvalidAmount(
                "discount percentage must be between 0 and 100",
                {"discount_percentage": discount_percentage},
            )
        return round_half_up(Decimal(amount) * Decimal(100 - discount_percentage) / 100)

    # Recurrence

    def calculate_next_occurrence(
        self,
        current_date: date,
        frequency: Frequency,
        day_of_week: Optional[int] = None,
    ) -> date:
        """Date of the occurrence after ``current_date``.

        Args:
            current_date: Date of the current occurrence
            frequency: weekly (+7 days), biweekly (+14 days) or monthly (+1 month)
            day_of_week: Optional 0-6 constraint with Sunday as 0

        Returns:
            The next occurrence date, always strictly after ``current_date``
        """
        candidate = self._advance(current_date, frequency, 1)
        if day_of_week is None:
            return candidate

        periods = 1
        snapped = self._snap_forward(candidate, day_of_week)
        while snapped <= current_date:
            periods += 1
            snapped = self._snap_forward(self._advance(current_date, frequency, periods), day_of_week)
        return snapped

    def should_terminate_subscription(
        self, subscription: RecurringSubscription, occurrence_date: date
    ) -> bool:
        """Whether the subscription has run its course before ``occurrence_date``."""
        termination = subscription.termination
        if termination.mode == TerminationMode.OCCURRENCES:
            total = termination.total_count or 0
            return subscription.total_occurrences_completed + 1 >= total
        if termination.mode == TerminationMode.DATE:
            return termination.end_date is not None and occurrence_date > termination.end_date
        return False

    @staticmethod
    def _advance(value: date, frequency: Frequency, periods: int) -> date:
        if frequency == Frequency.WEEKLY:
            return value + timedelta(days=7 * periods)
        if frequency == Frequency.BIWEEKLY:
            return value + timedelta(days=14 * periods)
        return add_months(value, periods)

    @staticmethod
    def _snap_forward(value: date, day_of_week: int) -> date:
        offset = (to_python_weekday(day_of_week) - value.weekday()) % 7
        return value + timedelta(days=offset)
