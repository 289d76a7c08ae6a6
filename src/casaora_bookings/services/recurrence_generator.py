"""Generates the next booking of a recurring subscription on completion.

Generation is at-most-once per completed booking: a generation record keyed
by (subscription, source booking) is written with a conditional put before
the subscription advances. Replays return the booking generated the first
time.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from ..models.booking import BookingDraft
from ..models.enums import BookingStatus, NotificationEventType, SubscriptionStatus
from ..models.errors import AlreadyGenerated, ConflictingTransition, InvalidTransition
from ..models.results import GenerationResult, GenerationStatus, NotificationEvent
from ..models.subscription import RecurringSubscription
from ..utils.logging import get_logger
from .booking_store import BookingStore
from .policy_calculator import PolicyCalculator

if TYPE_CHECKING:
    from .lifecycle_service import BookingLifecycleService

logger = get_logger(__name__)


class RecurrenceGenerator:
    """Spawns successive bookings from a subscription's service template.

    Generated occurrences are created in ``pending_payment`` without a hold;
    they are authorized when the occurrence is confirmed.
    """

    def __init__(
        self,
        store: BookingStore,
        calculator: PolicyCalculator,
        lifecycle: "BookingLifecycleService",
    ) -> None:
        self.store = store
        self.calculator = calculator
        self.lifecycle = lifecycle

    def generate_next(self, completed_booking_id: str) -> GenerationResult:
        """Create the occurrence after ``completed_booking_id``.

        Args:
            completed_booking_id: A completed booking linked to a subscription

        Returns:
            GenerationResult: ``generated`` with the new booking, ``replayed``
            with the booking generated earlier, or ``skipped`` with a reason

        Raises:
            BookingNotFound: If the booking does not exist
            InvalidTransition: If the booking is not completed
            SubscriptionNotFound: If the linked subscription does not exist
        """
        source = self.store.get(completed_booking_id)
        subscription_id = source.recurring_plan_id
        if not subscription_id:
            return self._skipped(completed_booking_id, "booking is not part of a subscription")
        if source.status != BookingStatus.COMPLETED:
            raise InvalidTransition(source.status.value, "generate the next occurrence from")

        previous = self.store.get_generation(subscription_id, completed_booking_id)
        if previous:
            return self._replayed(completed_booking_id, previous)

        subscription = self.store.get_subscription(subscription_id)
        if subscription.status != SubscriptionStatus.ACTIVE:
            return self._skipped(
                completed_booking_id,
                f"subscription is {subscription.status.value}",
                subscription,
            )

        next_date = self.calculator.calculate_next_occurrence(
            subscription.next_booking_date, subscription.frequency, subscription.day_of_week
        )

        if self.calculator.should_terminate_subscription(subscription, next_date):
            return self._terminate(completed_booking_id, subscription)

        draft = BookingDraft(
            customer_ref=subscription.customer_ref,
            professional_ref=subscription.professional_ref,
            scheduled_start=datetime.combine(
                next_date, subscription.preferred_time, tzinfo=ZoneInfo(subscription.timezone)
            ),
            duration_minutes=subscription.service.duration_minutes,
            currency=subscription.service.currency,
            amount=subscription.occurrence_amount,
            service_name=subscription.service.name,
            service_hourly_rate=subscription.service.hourly_rate,
            address=subscription.service.address,
            special_instructions=subscription.service.instructions,
            payment_method_ref=subscription.payment_method_ref,
            recurring_plan_id=subscription_id,
            is_subscription_generated=True,
            generated_from_booking_id=completed_booking_id,
        )
        created = self.lifecycle.create_booking(draft, authorize_payment=False)
        booking = created.booking

        try:
            self.store.record_generated_booking(
                subscription_id, completed_booking_id, booking.booking_id
            )
        except AlreadyGenerated as e:
            logger.info(
                "Generation for %s already recorded as %s; discarding %s",
                completed_booking_id,
                e.generated_booking_id,
                booking.booking_id,
            )
            self.store.delete(booking.booking_id)
            return self._replayed(completed_booking_id, e.generated_booking_id)

        try:
            subscription = self.store.advance_subscription(
                subscription_id,
                subscription.next_booking_date,
                next_date,
                subscription.total_occurrences_completed + 1,
            )
        except ConflictingTransition as e:
            logger.warning(
                "Subscription %s advanced to %s while generating from %s; discarding %s",
                subscription_id,
                e.actual,
                completed_booking_id,
                booking.booking_id,
            )
            self.store.delete(booking.booking_id)
            self.store.delete_generation(subscription_id, completed_booking_id, booking.booking_id)
            return self._skipped(
                completed_booking_id,
                "subscription advanced concurrently",
                self.store.get_subscription(subscription_id),
            )

        logger.info(
            "Generated booking %s for subscription %s on %s (from %s)",
            booking.booking_id,
            subscription_id,
            next_date.isoformat(),
            completed_booking_id,
        )
        return GenerationResult(
            status=GenerationStatus.GENERATED,
            source_booking_id=completed_booking_id,
            booking=booking,
            subscription=subscription,
            events=created.events,
        )

    def _terminate(
        self, completed_booking_id: str, subscription: RecurringSubscription
    ) -> GenerationResult:
        ended = self.store.set_subscription_status(
            subscription.subscription_id,
            SubscriptionStatus.COMPLETED,
            {"total_occurrences_completed": subscription.total_occurrences_completed + 1},
        )
        logger.info(
            "Subscription %s reached its end after %d occurrence(s)",
            subscription.subscription_id,
            ended.total_occurrences_completed,
        )
        event = NotificationEvent(
            event_type=NotificationEventType.SUBSCRIPTION_COMPLETED,
            booking_id=completed_booking_id,
            recipient_ref=subscription.customer_ref,
            payload={
                "subscription_id": subscription.subscription_id,
                "total_occurrences_completed": ended.total_occurrences_completed,
            },
        )
        return GenerationResult(
            status=GenerationStatus.SKIPPED,
            source_booking_id=completed_booking_id,
            subscription=ended,
            reason="subscription reached its termination condition",
            events=[event],
        )

    def _replayed(self, completed_booking_id: str, generated_booking_id: str) -> GenerationResult:
        return GenerationResult(
            status=GenerationStatus.REPLAYED,
            source_booking_id=completed_booking_id,
            booking=self.store.find(generated_booking_id),
            reason=f"already generated booking {generated_booking_id}",
        )

    @staticmethod
    def _skipped(
        completed_booking_id: str, reason: str, subscription: RecurringSubscription | None = None
    ) -> GenerationResult:
        return GenerationResult(
            status=GenerationStatus.SKIPPED,
            source_booking_id=completed_booking_id,
            subscription=subscription,
            reason=reason,
        )
