"""Unit tests for PolicyCalculator.

Covers the cancellation tiers and their boundaries, refund rounding,
booking amount resolution, frequency discounts and next-occurrence math.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from casaora_bookings.config import PolicyConfig, RefundTier
from casaora_bookings.models.enums import BookingStatus, Frequency, TerminationMode
from casaora_bookings.models.errors import InvalidAmount
from casaora_bookings.models.subscription import (
    RecurringSubscription,
    ServiceTemplate,
    TerminationCondition,
)
from casaora_bookings.services.policy_calculator import (
    PolicyCalculator,
    add_months,
    round_half_up,
    to_python_weekday,
)

NOW = datetime(2026, 3, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def calculator() -> PolicyCalculator:
    return PolicyCalculator()


def _policy(calculator: PolicyCalculator, hours: float, status=BookingStatus.CONFIRMED):
    return calculator.calculate_cancellation_policy(NOW + timedelta(hours=hours), status, NOW)


def _subscription(**overrides) -> RecurringSubscription:
    values = dict(
        subscription_id="sub-1",
        customer_ref="cust-1",
        professional_ref="prof-1",
        frequency=Frequency.WEEKLY,
        preferred_time=time(9, 0),
        service=ServiceTemplate(name="Cleaning", hourly_rate=30_000, duration_minutes=180),
        occurrence_amount=76_500,
        next_booking_date=date(2026, 3, 10),
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return RecurringSubscription(**values)


class TestCancellationPolicy:
    """Tests for calculate_cancellation_policy()."""

    @pytest.mark.parametrize(
        "hours,expected_pct",
        [
            (240, 100),
            (72, 100),
            (71 + 59 / 60, 50),
            (30, 50),
            (24, 50),
            (23 + 59 / 60, 0),
            (1, 0),
            (0, 0),
        ],
    )
    def test_refund_tiers(self, calculator: PolicyCalculator, hours: float, expected_pct: int) -> None:
        """Tier boundaries are inclusive lower bounds."""
        result = _policy(calculator, hours)

        assert result.can_cancel is True
        assert result.refund_percentage == expected_pct

    def test_refund_never_decreases_with_more_notice(self, calculator: PolicyCalculator) -> None:
        percentages = [_policy(calculator, minutes / 60).refund_percentage for minutes in range(0, 100 * 60, 30)]

        assert percentages == sorted(percentages)

    def test_started_service_cannot_be_cancelled(self, calculator: PolicyCalculator) -> None:
        result = _policy(calculator, -0.5)

        assert result.can_cancel is False
        assert result.refund_percentage == 0
        assert "already started" in result.reason

    @pytest.mark.parametrize(
        "status",
        [
            BookingStatus.IN_PROGRESS,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELED,
            BookingStatus.DECLINED,
        ],
    )
    def test_non_cancellable_status(self, calculator: PolicyCalculator, status: BookingStatus) -> None:
        result = _policy(calculator, 100, status)

        assert result.can_cancel is False
        assert status.value in result.reason

    def test_missing_schedule(self, calculator: PolicyCalculator) -> None:
        result = calculator.calculate_cancellation_policy(None, BookingStatus.CONFIRMED, NOW)

        assert result.can_cancel is False
        assert result.hours_until_service == 0.0

    def test_reports_hours_until_service(self, calculator: PolicyCalculator) -> None:
        assert _policy(calculator, 30).hours_until_service == pytest.approx(30.0)

    def test_custom_tiers_are_sorted(self) -> None:
        config = PolicyConfig(
            refund_tiers=(
                RefundTier(min_hours=0, refund_percentage=0, label="None"),
                RefundTier(min_hours=48, refund_percentage=100, label="Full"),
            )
        )
        calculator = PolicyCalculator(config)

        assert _policy(calculator, 48).refund_percentage == 100
        assert _policy(calculator, 47).refund_percentage == 0

    def test_rejects_tiers_with_decreasing_refund(self) -> None:
        with pytest.raises(ValueError):
            PolicyConfig(
                refund_tiers=(
                    RefundTier(min_hours=72, refund_percentage=50, label="Half"),
                    RefundTier(min_hours=0, refund_percentage=100, label="Full"),
                )
            )

    def test_rejects_tiers_without_zero_floor(self) -> None:
        with pytest.raises(ValueError):
            PolicyConfig(refund_tiers=(RefundTier(min_hours=24, refund_percentage=100, label="Full"),))

    def test_policy_description_lists_tiers(self, calculator: PolicyCalculator) -> None:
        description = calculator.get_policy_description()

        assert "72+ hours before service: Full refund (100%)" in description
        assert "24-72 hours before service" in description
        assert "less than 24 hours" in description


class TestRefundAmount:
    def test_half_refund(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_refund_amount(100_000, 50) == 50_000

    def test_rounds_half_up(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_refund_amount(101, 50) == 51
        assert calculator.calculate_refund_amount(99, 50) == 50

    def test_zero_and_full(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_refund_amount(75_000, 0) == 0
        assert calculator.calculate_refund_amount(75_000, 100) == 75_000

    @pytest.mark.parametrize("amount,pct", [(-1, 50), (100, 101), (100, -5)])
    def test_invalid_inputs(self, calculator: PolicyCalculator, amount: int, pct: int) -> None:
        with pytest.raises(InvalidAmount):
            calculator.calculate_refund_amount(amount, pct)


class TestBookingAmount:
    def test_explicit_amount_wins(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_booking_amount(5_000, 30_000, 240) == 5_000

    def test_derived_from_hourly_rate(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_booking_amount(None, 30_000, 150) == 75_000

    def test_derived_amount_floored_at_minimum(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_booking_amount(None, 5_000, 60) == 20_000

    def test_minimum_without_rate(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_booking_amount() == 20_000

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_explicit_amount(self, calculator: PolicyCalculator, amount: int) -> None:
        with pytest.raises(InvalidAmount):
            calculator.calculate_booking_amount(amount)


class TestFrequencyDiscount:
    @pytest.mark.parametrize(
        "frequency,expected",
        [(Frequency.WEEKLY, 15), (Frequency.BIWEEKLY, 12), (Frequency.MONTHLY, 10)],
    )
    def test_default_discounts(
        self, calculator: PolicyCalculator, frequency: Frequency, expected: int
    ) -> None:
        assert calculator.frequency_discount(frequency) == expected

    def test_discounted_amount(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_discounted_amount(90_000, 15) == 76_500

    def test_discounted_amount_rounds_half_up(self, calculator: PolicyCalculator) -> None:
        # 333 * 0.85 = 283.05
        assert calculator.calculate_discounted_amount(333, 15) == 283
        # 10 * 0.85 = 8.5
        assert calculator.calculate_discounted_amount(10, 15) == 9


class TestNextOccurrence:
    def test_weekly(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(date(2026, 3, 10), Frequency.WEEKLY) == date(2026, 3, 17)

    def test_biweekly(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(date(2026, 3, 10), Frequency.BIWEEKLY) == date(2026, 3, 24)

    def test_monthly_clamps_to_month_end(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(date(2026, 1, 31), Frequency.MONTHLY) == date(2026, 2, 28)

    def test_monthly_leap_year(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(date(2028, 1, 31), Frequency.MONTHLY) == date(2028, 2, 29)

    def test_weekly_snaps_to_day_of_week(self, calculator: PolicyCalculator) -> None:
        # 2026-03-10 is a Tuesday; day_of_week 5 is Friday (Sunday=0)
        assert calculator.calculate_next_occurrence(
            date(2026, 3, 10), Frequency.WEEKLY, day_of_week=5
        ) == date(2026, 3, 20)

    def test_weekly_already_on_day(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(
            date(2026, 3, 10), Frequency.WEEKLY, day_of_week=2
        ) == date(2026, 3, 17)

    def test_sunday_is_zero(self, calculator: PolicyCalculator) -> None:
        assert calculator.calculate_next_occurrence(
            date(2026, 3, 10), Frequency.WEEKLY, day_of_week=0
        ) == date(2026, 3, 22)

    def test_monthly_with_day_of_week(self, calculator: PolicyCalculator) -> None:
        # +1 month is Friday 2026-04-10, next Monday is the 13th
        assert calculator.calculate_next_occurrence(
            date(2026, 3, 10), Frequency.MONTHLY, day_of_week=1
        ) == date(2026, 4, 13)

    @pytest.mark.parametrize("frequency", list(Frequency))
    @pytest.mark.parametrize("day_of_week", [None, 0, 3, 6])
    def test_always_strictly_after(
        self, calculator: PolicyCalculator, frequency: Frequency, day_of_week
    ) -> None:
        start = date(2026, 12, 31)
        assert calculator.calculate_next_occurrence(start, frequency, day_of_week) > start


class TestTermination:
    def test_occurrences_mode(self, calculator: PolicyCalculator) -> None:
        termination = TerminationCondition(mode=TerminationMode.OCCURRENCES, total_count=4)

        assert not calculator.should_terminate_subscription(
            _subscription(termination=termination, total_occurrences_completed=2), date(2026, 3, 31)
        )
        assert calculator.should_terminate_subscription(
            _subscription(termination=termination, total_occurrences_completed=3), date(2026, 3, 31)
        )

    def test_date_mode(self, calculator: PolicyCalculator) -> None:
        subscription = _subscription(
            termination=TerminationCondition(mode=TerminationMode.DATE, end_date=date(2026, 3, 24))
        )

        assert not calculator.should_terminate_subscription(subscription, date(2026, 3, 24))
        assert calculator.should_terminate_subscription(subscription, date(2026, 3, 31))

    def test_never_mode(self, calculator: PolicyCalculator) -> None:
        subscription = _subscription(total_occurrences_completed=500)

        assert not calculator.should_terminate_subscription(subscription, date(2040, 1, 1))


class TestHelpers:
    def test_round_half_up(self) -> None:
        from decimal import Decimal

        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.4999")) == 2

    def test_add_months_crosses_year(self) -> None:
        assert add_months(date(2026, 12, 15), 1) == date(2027, 1, 15)

    def test_to_python_weekday(self) -> None:
        assert to_python_weekday(0) == 6
        assert to_python_weekday(1) == 0
