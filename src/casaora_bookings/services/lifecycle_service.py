"""Booking lifecycle orchestration.

Composes the policy calculator, the payment hold manager and the booking
store into the create / cancel / reschedule / complete flows. Every
operation returns its result together with the notification events it
produced; delivering them is the caller's business.

Money movement and the booking row live in different systems, so the order
of steps matters:
- create: the row exists before the hold; a failed hold deletes the row
- cancel/decline: the compare-and-swap transition wins the booking first,
  then the hold is released
- complete: funds are captured first, then the row moves to ``completed``
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models.booking import Booking, BookingDraft
from ..models.enums import (
    ActorRole,
    BookingEvent,
    BookingStatus,
    HoldAction,
    HoldStatus,
    NotificationEventType,
    SubscriptionStatus,
)
from ..models.errors import (
    AmbiguousOutcome,
    BookingError,
    BookingValidationError,
    ConflictingTransition,
    InvalidHoldState,
    PastDateError,
    PolicyBlocked,
)
from ..models.results import (
    BookingResult,
    CancellationOutcome,
    CancellationPreview,
    CompletionOutcome,
    GenerationResult,
    NotificationEvent,
    SubscriptionResult,
)
from ..models.subscription import RecurringSubscription, SubscriptionDraft
from ..utils.logging import get_logger, log_lifecycle_event
from .booking_store import BookingStore
from .identity import IdentityResolver, check_booking_access, check_party_access
from .payment_hold_manager import PaymentHoldManager
from .policy_calculator import PolicyCalculator
from .recurrence_generator import RecurrenceGenerator
from .state_machine import next_status

logger = get_logger(__name__)

PROFESSIONAL_ACTIONS = frozenset({ActorRole.PROFESSIONAL})


class ReleasedHold(NamedTuple):
    booking: Booking
    action: HoldAction


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def notification(
    event_type: NotificationEventType, booking: Booking, recipient_ref: str, **payload: object
) -> NotificationEvent:
    return NotificationEvent(
        event_type=event_type,
        booking_id=booking.booking_id,
        recipient_ref=recipient_ref,
        payload=dict(payload),
    )


def counterparties(booking: Booking, actor_ref: Optional[str]) -> list[str]:
    """Parties to notify about an action taken by ``actor_ref``."""
    if actor_ref == booking.customer_ref:
        return [booking.professional_ref]
    if actor_ref == booking.professional_ref:
        return [booking.customer_ref]
    return [booking.customer_ref, booking.professional_ref]


class BookingLifecycleService:
    """Entry point for every booking lifecycle operation.

    Usage:
        service = BookingLifecycleService(store, holds, PolicyCalculator(config))
        result = service.create_booking(draft)
        outcome = service.cancel_booking(result.booking.booking_id, "cust-1", "plans changed")
    """

    def __init__(
        self,
        store: BookingStore,
        holds: PaymentHoldManager,
        calculator: Optional[PolicyCalculator] = None,
        identity: Optional[IdentityResolver] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.holds = holds
        self.calculator = calculator or PolicyCalculator()
        self.identity = identity
        self._clock = clock
        self.generator = RecurrenceGenerator(store, self.calculator, self)

    def _check_actor(
        self,
        booking: Booking,
        actor_ref: Optional[str],
        allowed_roles: Optional[frozenset[ActorRole]] = None,
    ) -> None:
        if actor_ref is None or self.identity is None:
            return
        check_booking_access(self.identity, booking, actor_ref, allowed_roles)

    def get_booking(self, booking_id: str, actor_ref: Optional[str] = None) -> Booking:
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref)
        return booking

    # Creation and authorization

    def create_booking(self, draft: BookingDraft, authorize_payment: bool = True) -> BookingResult:
        """Create a booking and, by default, place its payment hold.

        The amount comes from the draft, or the hourly rate times duration
        floored at the configured minimum. If the hold fails the booking row
        is deleted and the error surfaces. An ambiguous processor outcome
        keeps the row in ``pending_payment`` for reconciliation.

        Args:
            draft: Booking draft
            authorize_payment: Place the hold now; recurring occurrences
                authorize later at confirmation time

        Returns:
            BookingResult with the booking and a new-booking event

        Raises:
            PastDateError: If the start is not in the future
            InvalidAmount: If the explicit amount is not positive
            CardDeclined, ProcessorUnavailable, AmbiguousOutcome: From the hold
        """
        now = self._clock()
        if (
            draft.scheduled_start is not None
            and not draft.is_subscription_generated
            and draft.scheduled_start <= now
        ):
            raise PastDateError("scheduled_start", draft.scheduled_start.isoformat())

        amount = self.calculator.calculate_booking_amount(
            draft.amount, draft.service_hourly_rate, draft.duration_minutes
        )
        draft = draft.model_copy(update={"amount": amount})

        customer_id = None
        if authorize_payment:
            customer_id = self.holds.ensure_customer(draft.customer_ref, draft.customer_email)

        booking = self.store.create(draft)
        if authorize_payment:
            booking = self._place_hold(
                booking, customer_id, draft.payment_method_ref, delete_on_failure=True
            )

        event_type = (
            NotificationEventType.RECURRING_BOOKING_CREATED
            if booking.is_subscription_generated
            else NotificationEventType.NEW_BOOKING
        )
        events = [
            notification(
                event_type,
                booking,
                booking.professional_ref,
                customer_ref=booking.customer_ref,
                scheduled_start=booking.scheduled_start,
                amount=booking.amount_estimated,
                currency=booking.currency,
                service_name=booking.service_name,
            )
        ]
        log_lifecycle_event(
            logger, "create", booking.booking_id, to_status=booking.status.value, amount=amount
        )
        return BookingResult(booking=booking, events=events)

    def authorize_booking(
        self,
        booking_id: str,
        payment_method_ref: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> BookingResult:
        """Place the hold for a booking still in ``pending_payment``.

        Used for subscription-generated occurrences, which are created
        without a hold. Falls back to the subscription's stored payment
        method. A failed hold leaves the booking pending, and the next call
        authorizes under a new idempotency key.
        """
        booking = self.store.get(booking_id)
        next_status(booking.status, BookingEvent.HOLD_AUTHORIZED)

        if payment_method_ref is None and booking.recurring_plan_id:
            subscription = self.store.get_subscription(booking.recurring_plan_id)
            payment_method_ref = subscription.payment_method_ref

        customer_id = self.holds.ensure_customer(booking.customer_ref, customer_email)
        booking = self._place_hold(booking, customer_id, payment_method_ref, delete_on_failure=False)
        log_lifecycle_event(
            logger,
            "authorize",
            booking_id,
            from_status=BookingStatus.PENDING_PAYMENT.value,
            to_status=booking.status.value,
        )
        return BookingResult(booking=booking)

    def _place_hold(
        self,
        booking: Booking,
        customer_id: Optional[str],
        payment_method_ref: Optional[str],
        delete_on_failure: bool,
    ) -> Booking:
        try:
            hold = self.holds.authorize(
                booking.booking_id,
                booking.amount_estimated,
                booking.currency,
                booking.customer_ref,
                customer_id=customer_id,
                payment_method_ref=payment_method_ref,
                attempt=booking.authorization_attempt,
            )
        except AmbiguousOutcome as e:
            log_lifecycle_event(
                logger,
                "hold_unknown",
                booking.booking_id,
                from_status=booking.status.value,
                error=e.message,
                needs_reconciliation=True,
            )
            raise e.with_details(booking_id=booking.booking_id)
        except BookingError as e:
            if delete_on_failure:
                self.store.delete(booking.booking_id)
            else:
                self._start_new_authorization_attempt(booking)
            log_lifecycle_event(
                logger,
                BookingEvent.HOLD_FAILED.value,
                booking.booking_id,
                from_status=booking.status.value,
                error=e.message,
                booking_deleted=delete_on_failure,
            )
            raise

        try:
            return self.store.transition(
                booking.booking_id,
                BookingStatus.PENDING_PAYMENT,
                BookingStatus.AUTHORIZED,
                {
                    "hold_id": hold.hold_id,
                    "hold_status": hold.status,
                    "amount_authorized": hold.amount,
                },
                expected_version=booking.version,
            )
        except BookingError as e:
            log_lifecycle_event(
                logger,
                "authorize",
                booking.booking_id,
                error=f"Hold {hold.hold_id} placed but booking update failed: {e.message}",
            )
            self._release_hold(booking, hold.hold_id)
            raise

    def _start_new_authorization_attempt(self, booking: Booking) -> Booking:
        """Give the next authorization of a pending booking a fresh idempotency key.

        The processor replays a failed attempt for as long as its key is
        reused, so a retry with a new payment method needs a new key.
        """
        try:
            return self.store.update_hold(
                booking.booking_id,
                BookingStatus.PENDING_PAYMENT,
                {"authorization_attempt": booking.authorization_attempt + 1},
                expected_version=booking.version,
            )
        except BookingError as e:
            logger.warning(
                "Could not start a new authorization attempt for booking %s: %s",
                booking.booking_id,
                e.message,
            )
            return booking

    def _release_hold(self, booking: Booking, hold_id: str) -> None:
        try:
            self.holds.void_or_refund(hold_id, booking.booking_id, 0)
        except BookingError as e:
            log_lifecycle_event(
                logger,
                "release_hold",
                booking.booking_id,
                error=e.message,
                critical=True,
                hold_id=hold_id,
                needs_reconciliation=True,
            )

    def reconcile_booking_payment(self, booking_id: str) -> BookingResult:
        """Resolve a booking left pending by an ambiguous authorization.

        Asks the processor for the booking's hold. A usable hold moves the
        booking to ``authorized``. With no hold the booking stays pending and
        the authorization can be retried under the same idempotency key. An
        unusable hold is released and the next attempt gets a new key.
        """
        booking = self.store.get(booking_id)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            return BookingResult(booking=booking)

        hold = self.holds.reconcile(booking_id)
        if hold is None:
            log_lifecycle_event(logger, "reconcile", booking_id, result="no_hold")
            return BookingResult(booking=booking)

        if hold.status != HoldStatus.REQUIRES_CAPTURE or hold.amount != booking.amount_estimated:
            if hold.status not in (HoldStatus.VOIDED, HoldStatus.CAPTURED):
                self._release_hold(booking, hold.hold_id)
            log_lifecycle_event(
                logger, "reconcile", booking_id, result="unusable_hold", hold_status=hold.status.value
            )
            return BookingResult(booking=self._start_new_authorization_attempt(booking))

        updated = self.store.transition(
            booking_id,
            BookingStatus.PENDING_PAYMENT,
            BookingStatus.AUTHORIZED,
            {"hold_id": hold.hold_id, "hold_status": hold.status, "amount_authorized": hold.amount},
            expected_version=booking.version,
        )
        log_lifecycle_event(
            logger,
            "reconcile",
            booking_id,
            from_status=booking.status.value,
            to_status=updated.status.value,
            result="authorized",
        )
        events = [
            notification(
                NotificationEventType.NEW_BOOKING,
                updated,
                updated.professional_ref,
                customer_ref=updated.customer_ref,
                scheduled_start=updated.scheduled_start,
                amount=updated.amount_estimated,
                currency=updated.currency,
            )
        ]
        return BookingResult(booking=updated, events=events)

    # Professional and external transitions

    def confirm_booking(self, booking_id: str, actor_ref: Optional[str] = None) -> BookingResult:
        """Professional acceptance: ``authorized`` -> ``confirmed``."""
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref, PROFESSIONAL_ACTIONS)
        target = next_status(booking.status, BookingEvent.ACCEPT)
        updated = self.store.transition(
            booking_id,
            booking.status,
            target,
            {"confirmed_at": self._clock()},
            expected_version=booking.version,
        )
        log_lifecycle_event(
            logger,
            "confirm",
            booking_id,
            from_status=booking.status.value,
            to_status=target.value,
            actor_ref=actor_ref,
        )
        events = [
            notification(
                NotificationEventType.BOOKING_CONFIRMED,
                updated,
                updated.customer_ref,
                scheduled_start=updated.scheduled_start,
            )
        ]
        return BookingResult(booking=updated, events=events)

    def check_in_booking(self, booking_id: str, actor_ref: Optional[str] = None) -> BookingResult:
        """Service started: ``confirmed`` -> ``in_progress``. Professional only."""
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref, PROFESSIONAL_ACTIONS)
        target = next_status(booking.status, BookingEvent.CHECK_IN)
        updated = self.store.transition(
            booking_id, booking.status, target, expected_version=booking.version
        )
        log_lifecycle_event(
            logger,
            "check_in",
            booking_id,
            from_status=booking.status.value,
            to_status=target.value,
            actor_ref=actor_ref,
        )
        return BookingResult(booking=updated)

    def decline_booking(
        self,
        booking_id: str,
        actor_ref: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> BookingResult:
        """Professional declines; any active hold is voided."""
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref, PROFESSIONAL_ACTIONS)
        target = next_status(booking.status, BookingEvent.DECLINE)

        updated = self.store.transition(
            booking_id,
            booking.status,
            target,
            {"declined_reason": reason},
            expected_version=booking.version,
        )
        if booking.hold_id and booking.has_active_hold:
            updated = self._release_after_transition(updated, booking.hold_id, 0).booking

        log_lifecycle_event(
            logger,
            "decline",
            booking_id,
            from_status=booking.status.value,
            to_status=target.value,
            actor_ref=actor_ref,
        )
        events = [
            notification(
                NotificationEventType.BOOKING_DECLINED,
                updated,
                updated.customer_ref,
                reason=reason,
            )
        ]
        return BookingResult(booking=updated, events=events)

    # Cancellation

    def preview_cancellation(
        self, booking_id: str, actor_ref: Optional[str] = None
    ) -> CancellationPreview:
        """Policy and refund a cancellation would get right now, without acting."""
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref)
        now = self._clock()
        policy = self.calculator.calculate_cancellation_policy(
            booking.scheduled_start, booking.status, now
        )
        refund_amount = self._refund_for(booking, policy.refund_percentage, policy.can_cancel)
        return CancellationPreview(
            booking_id=booking_id,
            policy=policy,
            refund_amount=refund_amount,
            evaluated_at=now,
            policy_description=self.calculator.get_policy_description(),
        )

    def _refund_for(self, booking: Booking, refund_percentage: int, can_cancel: bool) -> int:
        if not can_cancel:
            return 0
        basis = booking.amount_authorized or booking.amount_estimated
        return self.calculator.calculate_refund_amount(basis, refund_percentage)

    def cancel_booking(
        self,
        booking_id: str,
        actor_ref: Optional[str],
        reason: Optional[str] = None,
    ) -> CancellationOutcome:
        """Cancel a booking under the cancellation policy.

        The refund percentage and amount the policy yields are attached to
        every error raised once the policy was computed, so callers can show
        them whatever went wrong.

        Args:
            booking_id: Booking to cancel
            actor_ref: Who is cancelling
            reason: Free-text cancellation reason

        Returns:
            CancellationOutcome; ``action`` is ``voided`` when no funds ever
            moved, ``refunded`` when captured funds were returned

        Raises:
            PolicyBlocked: If the policy does not allow cancelling now
            InvalidTransition: If the status cannot be cancelled
            ConflictingTransition: If the booking changed concurrently
        """
        booking = self.store.get(booking_id)
        now = self._clock()
        policy = self.calculator.calculate_cancellation_policy(
            booking.scheduled_start, booking.status, now
        )
        refund_amount = self._refund_for(booking, policy.refund_percentage, policy.can_cancel)
        preview = {
            "refund_percentage": policy.refund_percentage,
            "refund_amount": refund_amount,
            "hours_until_service": round(policy.hours_until_service, 2),
        }

        try:
            self._check_actor(booking, actor_ref)
            if not policy.can_cancel:
                raise PolicyBlocked(policy.reason)
            target = next_status(booking.status, BookingEvent.CANCEL)

            canceled = self.store.transition(
                booking_id,
                booking.status,
                target,
                {
                    "canceled_reason": reason,
                    "canceled_at": now,
                    "canceled_by": actor_ref,
                    "refund_percentage": policy.refund_percentage,
                    "refund_amount": refund_amount,
                },
                expected_version=booking.version,
            )

            action = HoldAction.NONE
            if booking.hold_id and booking.has_active_hold:
                released = self._release_after_transition(canceled, booking.hold_id, refund_amount)
                canceled, action = released.booking, released.action
        except BookingError as e:
            raise e.with_details(**preview)

        log_lifecycle_event(
            logger,
            "cancel",
            booking_id,
            from_status=booking.status.value,
            to_status=canceled.status.value,
            actor_ref=actor_ref,
            refund_percentage=policy.refund_percentage,
            refund_amount=refund_amount,
            action=action.value,
        )
        events = [
            notification(
                NotificationEventType.BOOKING_CANCELED,
                canceled,
                recipient,
                canceled_by=actor_ref,
                reason=reason,
                refund_percentage=policy.refund_percentage,
                refund_amount=refund_amount,
                action=action.value,
            )
            for recipient in counterparties(booking, actor_ref)
        ]
        return CancellationOutcome(
            booking=canceled,
            policy=policy,
            refund_percentage=policy.refund_percentage,
            refund_amount=refund_amount,
            action=action,
            events=events,
        )

    def _release_after_transition(
        self, booking: Booking, hold_id: str, refund_amount: int
    ) -> ReleasedHold:
        try:
            result = self.holds.void_or_refund(hold_id, booking.booking_id, refund_amount)
        except BookingError as e:
            log_lifecycle_event(
                logger,
                "release_hold",
                booking.booking_id,
                to_status=booking.status.value,
                error=f"Booking is {booking.status.value} but hold release failed: {e.message}",
                critical=True,
                hold_id=hold_id,
                needs_reconciliation=True,
            )
            raise e.with_details(booking_id=booking.booking_id, booking_status=booking.status.value)

        hold_status = {
            HoldAction.VOIDED: HoldStatus.VOIDED,
            HoldAction.REFUNDED: HoldStatus.CAPTURED,
        }.get(result.action, booking.hold_status)
        updated = self.store.update_hold(
            booking.booking_id,
            booking.status,
            {"hold_status": hold_status},
            expected_version=booking.version,
        )
        return ReleasedHold(updated, result.action)

    # Reschedule

    def reschedule_booking(
        self,
        booking_id: str,
        new_start: datetime,
        new_duration_minutes: Optional[int] = None,
        actor_ref: Optional[str] = None,
    ) -> BookingResult:
        """Move a booking to a new start time.

        The booking always returns to ``authorized`` so the professional has
        to confirm the new time. The hold is kept.

        Raises:
            PastDateError: If ``new_start`` is not strictly in the future (field ``new_start``)
            BookingValidationError: If the new duration is not positive
            InvalidTransition: If the booking is not authorized or confirmed
        """
        if new_start.tzinfo is None:
            raise BookingValidationError("new_start", "must be timezone-aware")
        if new_start <= self._clock():
            raise PastDateError("new_start", new_start.isoformat())
        if new_duration_minutes is not None and new_duration_minutes <= 0:
            raise BookingValidationError("new_duration_minutes", "must be greater than zero")

        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref)
        target = next_status(booking.status, BookingEvent.RESCHEDULE)

        updated = self.store.transition(
            booking_id,
            booking.status,
            target,
            {
                "scheduled_start": new_start,
                "duration_minutes": new_duration_minutes or booking.duration_minutes,
                "confirmed_at": None,
            },
            expected_version=booking.version,
        )
        log_lifecycle_event(
            logger,
            "reschedule",
            booking_id,
            from_status=booking.status.value,
            to_status=updated.status.value,
            actor_ref=actor_ref,
        )
        events = [
            notification(
                NotificationEventType.BOOKING_RESCHEDULED,
                updated,
                recipient,
                old_start=booking.scheduled_start,
                old_end=booking.scheduled_end,
                new_start=updated.scheduled_start,
                new_end=updated.scheduled_end,
                previous_status=booking.status.value,
            )
            for recipient in counterparties(booking, actor_ref)
        ]
        return BookingResult(booking=updated, events=events)

    # Completion and recurrence

    def complete_booking(
        self,
        booking_id: str,
        final_amount: Optional[int] = None,
        actor_ref: Optional[str] = None,
    ) -> CompletionOutcome:
        """Capture the hold, mark the booking completed and generate the next occurrence.

        Replaying completion on a completed booking only re-runs recurrence
        generation, which is itself at-most-once per source booking. A
        recurrence failure never fails the completion; it is returned in
        ``recurrence_error``.

        Args:
            booking_id: Booking checked out of ``in_progress``
            final_amount: Adjusted final charge; defaults to the authorized amount
            actor_ref: Who checks out; only the professional or an admin may

        Raises:
            Unauthorized: If ``actor_ref`` may not complete the booking
            InvalidTransition: If the booking is not in progress
            InvalidHoldState: If the booking has no hold to capture
        """
        booking = self.store.get(booking_id)
        self._check_actor(booking, actor_ref, PROFESSIONAL_ACTIONS)
        if booking.status == BookingStatus.COMPLETED:
            return self._completion_outcome(booking, [])

        target = next_status(booking.status, BookingEvent.CHECK_OUT)
        if not booking.hold_id:
            raise InvalidHoldState("none", "missing", "capture")

        capture = self.holds.capture(booking.hold_id, booking_id, final_amount)
        try:
            completed = self.store.transition(
                booking_id,
                booking.status,
                target,
                {"amount_captured": capture.amount_captured, "hold_status": HoldStatus.CAPTURED},
                expected_version=booking.version,
            )
        except ConflictingTransition as e:
            current = self.store.get(booking_id)
            if current.status == BookingStatus.COMPLETED:
                return self._completion_outcome(current, [])
            self._log_capture_without_completion(booking_id, capture.amount_captured, e)
            raise e.with_details(amount_captured=capture.amount_captured)
        except BookingError as e:
            self._log_capture_without_completion(booking_id, capture.amount_captured, e)
            raise e.with_details(amount_captured=capture.amount_captured)

        log_lifecycle_event(
            logger,
            "complete",
            booking_id,
            from_status=booking.status.value,
            to_status=target.value,
            amount_captured=capture.amount_captured,
        )
        events = [
            notification(
                NotificationEventType.BOOKING_COMPLETED,
                completed,
                completed.customer_ref,
                amount_captured=capture.amount_captured,
                currency=completed.currency,
            )
        ]
        return self._completion_outcome(completed, events)

    def _log_capture_without_completion(
        self, booking_id: str, amount_captured: int, error: BookingError
    ) -> None:
        log_lifecycle_event(
            logger,
            "complete",
            booking_id,
            error=f"Payment captured but booking update failed: {error.message}",
            critical=True,
            amount_captured=amount_captured,
            needs_reconciliation=True,
        )

    def _completion_outcome(
        self, booking: Booking, events: list[NotificationEvent]
    ) -> CompletionOutcome:
        outcome = CompletionOutcome(
            booking=booking,
            amount_captured=booking.amount_captured or 0,
            events=list(events),
        )
        if not booking.recurring_plan_id:
            return outcome
        try:
            recurrence = self.generator.generate_next(booking.booking_id)
        except BookingError as e:
            log_lifecycle_event(
                logger,
                "generate_next",
                booking.booking_id,
                error=e.message,
                error_code=e.code.value,
            )
            outcome.recurrence_error = e.to_error_response()
            return outcome
        outcome.recurrence = recurrence
        outcome.events.extend(recurrence.events)
        return outcome

    def generate_next(self, completed_booking_id: str) -> GenerationResult:
        return self.generator.generate_next(completed_booking_id)

    # Subscriptions

    def create_subscription(
        self, draft: SubscriptionDraft, create_first_booking: bool = True
    ) -> SubscriptionResult:
        """Start a recurring subscription.

        The per-occurrence amount is the service's hourly rate times its
        duration (floored at the minimum) less the frequency discount. The
        first occurrence is booked and authorized immediately; later ones
        are generated on completion.

        Raises:
            BookingValidationError: If the timezone is unknown
            PastDateError: If the first booking date is in the past
        """
        try:
            tz = ZoneInfo(draft.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise BookingValidationError("timezone", f"unknown timezone {draft.timezone!r}") from e

        now = self._clock()
        first_start = datetime.combine(draft.first_booking_date, draft.preferred_time, tzinfo=tz)
        if first_start <= now:
            raise PastDateError("first_booking_date", draft.first_booking_date.isoformat())

        discount = self.calculator.frequency_discount(draft.frequency)
        base_amount = self.calculator.calculate_booking_amount(
            None, draft.service.hourly_rate, draft.service.duration_minutes
        )
        occurrence_amount = self.calculator.calculate_discounted_amount(base_amount, discount)

        subscription = self.store.create_subscription(
            RecurringSubscription(
                subscription_id=str(uuid.uuid4()),
                customer_ref=draft.customer_ref,
                professional_ref=draft.professional_ref,
                frequency=draft.frequency,
                day_of_week=draft.day_of_week,
                preferred_time=draft.preferred_time,
                timezone=draft.timezone,
                service=draft.service,
                discount_percentage=discount,
                occurrence_amount=occurrence_amount,
                termination=draft.termination,
                next_booking_date=draft.first_booking_date,
                payment_method_ref=draft.payment_method_ref,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "Subscription %s created: %s at %d%% discount, %d per occurrence",
            subscription.subscription_id,
            subscription.frequency.value,
            discount,
            occurrence_amount,
        )
        if not create_first_booking:
            return SubscriptionResult(subscription=subscription)

        first_draft = BookingDraft(
            customer_ref=draft.customer_ref,
            professional_ref=draft.professional_ref,
            scheduled_start=first_start,
            duration_minutes=draft.service.duration_minutes,
            currency=draft.service.currency,
            amount=occurrence_amount,
            service_name=draft.service.name,
            service_hourly_rate=draft.service.hourly_rate,
            address=draft.service.address,
            special_instructions=draft.service.instructions,
            payment_method_ref=draft.payment_method_ref,
            recurring_plan_id=subscription.subscription_id,
        )
        try:
            created = self.create_booking(first_draft)
        except BookingError as e:
            self.store.set_subscription_status(
                subscription.subscription_id, SubscriptionStatus.CANCELLED
            )
            raise e.with_details(subscription_id=subscription.subscription_id)

        return SubscriptionResult(
            subscription=subscription, first_booking=created.booking, events=created.events
        )

    def set_subscription_status(
        self,
        subscription_id: str,
        status: SubscriptionStatus,
        actor_ref: Optional[str] = None,
    ) -> SubscriptionResult:
        """Pause, resume or cancel a subscription on the customer's request."""
        subscription = self.store.get_subscription(subscription_id)
        if actor_ref is not None and self.identity is not None:
            check_party_access(
                self.identity,
                actor_ref,
                subscription.customer_ref,
                subscription.professional_ref,
                frozenset({ActorRole.CUSTOMER}),
            )
        if status == SubscriptionStatus.COMPLETED:
            raise BookingValidationError("status", "subscriptions complete on their own")
        updated = self.store.set_subscription_status(subscription_id, status)
        return SubscriptionResult(subscription=updated)
