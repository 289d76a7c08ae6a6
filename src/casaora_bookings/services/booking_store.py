"""Booking and subscription persistence on DynamoDB.

Every status change goes through ``transition``: the state machine is
checked first, then the write is a conditional update on the expected
status (and optionally the version counter). Whoever loses a race gets
``ConflictingTransition`` instead of silently overwriting the winner.

Tables (prefixed by ``DYNAMODB_TABLE_PREFIX``):
- ``bookings``: key ``booking_id``
- ``subscriptions``: key ``subscription_id``
- ``recurrence-generations``: key ``generation_key`` (subscription#source booking)
- ``payment-customers``: key ``customer_ref``
"""

import json
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from ..models.booking import Booking, BookingDraft
from ..models.enums import BookingStatus, SubscriptionStatus
from ..models.errors import (
    AlreadyGenerated,
    BookingNotFound,
    BookingValidationError,
    ConflictingTransition,
    InvalidAmount,
    InvalidTransition,
    SubscriptionNotFound,
)
from ..models.subscription import RecurringSubscription
from ..utils.logging import get_logger
from .dynamodb import DynamoDBService, get_dynamodb_service
from .state_machine import event_for

logger = get_logger(__name__)

BOOKINGS_TABLE = "bookings"
SUBSCRIPTIONS_TABLE = "subscriptions"
GENERATIONS_TABLE = "recurrence-generations"
CUSTOMERS_TABLE = "payment-customers"

SUBSCRIPTION_TRANSITIONS: dict[SubscriptionStatus, frozenset[SubscriptionStatus]] = {
    SubscriptionStatus.ACTIVE: frozenset(
        {SubscriptionStatus.PAUSED, SubscriptionStatus.CANCELLED, SubscriptionStatus.COMPLETED}
    ),
    SubscriptionStatus.PAUSED: frozenset(
        {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED}
    ),
    SubscriptionStatus.CANCELLED: frozenset(),
    SubscriptionStatus.COMPLETED: frozenset(),
}


def generation_key(subscription_id: str, source_booking_id: str) -> str:
    return f"{subscription_id}#{source_booking_id}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _build_update(
    fields: dict[str, Any], bump_version: bool = True
) -> tuple[str, dict[str, str], dict[str, Any]]:
    """Build a SET/REMOVE update expression from a field patch.

    Fields set to None are removed from the item.
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_parts: list[str] = []
    remove_parts: list[str] = []

    if bump_version:
        names["#version"] = "version"
        values[":one"] = 1
        set_parts.append("#version = #version + :one")

    for index, (name, value) in enumerate(fields.items()):
        placeholder = f"#f{index}"
        names[placeholder] = name
        if value is None:
            remove_parts.append(placeholder)
        else:
            values[f":v{index}"] = value
            set_parts.append(f"{placeholder} = :v{index}")

    expression = "SET " + ", ".join(set_parts)
    if remove_parts:
        expression += " REMOVE " + ", ".join(remove_parts)
    return expression, names, values


class BookingStore:
    """Single authority for Booking and RecurringSubscription records.

    Always hands back fully typed models, never raw items.
    """

    def __init__(
        self,
        db: Optional[DynamoDBService] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.db = db or get_dynamodb_service()
        self._clock = clock

    # Serialization

    @staticmethod
    def _booking_to_item(booking: Booking) -> dict[str, Any]:
        return booking.model_dump(exclude={"scheduled_end"}, exclude_none=True)

    @staticmethod
    def _item_to_booking(item: dict[str, Any]) -> Booking:
        # JSON mode parses ISO timestamps and enum values under strict models
        return Booking.model_validate_json(json.dumps(item))

    @staticmethod
    def _item_to_subscription(item: dict[str, Any]) -> RecurringSubscription:
        return RecurringSubscription.model_validate_json(json.dumps(item))

    # Bookings

    def create(self, draft: BookingDraft, booking_id: Optional[str] = None) -> Booking:
        """Persist a new booking in ``pending_payment``.

        Args:
            draft: Booking draft; ``amount`` must already be resolved
            booking_id: Optional ID, generated if omitted

        Returns:
            The stored Booking

        Raises:
            BookingValidationError: If a party reference is missing
            InvalidAmount: If the amount is missing or not positive
        """
        if not draft.customer_ref:
            raise BookingValidationError("customer_ref", "is required")
        if not draft.professional_ref:
            raise BookingValidationError("professional_ref", "is required")
        if draft.amount is None or draft.amount <= 0:
            raise InvalidAmount("amount must be greater than zero", {"amount": draft.amount})

        now = self._clock()
        booking = Booking(
            booking_id=booking_id or str(uuid.uuid4()),
            customer_ref=draft.customer_ref,
            professional_ref=draft.professional_ref,
            scheduled_start=draft.scheduled_start,
            duration_minutes=draft.duration_minutes,
            currency=draft.currency,
            amount_estimated=draft.amount,
            status=BookingStatus.PENDING_PAYMENT,
            recurring_plan_id=draft.recurring_plan_id,
            is_subscription_generated=draft.is_subscription_generated,
            generated_from_booking_id=draft.generated_from_booking_id,
            service_name=draft.service_name,
            service_hourly_rate=draft.service_hourly_rate,
            address=draft.address,
            special_instructions=draft.special_instructions,
            created_at=now,
            updated_at=now,
        )

        stored = self.db.put_item(
            BOOKINGS_TABLE,
            self._booking_to_item(booking),
            condition_expression="attribute_not_exists(booking_id)",
        )
        if not stored:
            raise BookingValidationError("booking_id", "already exists")

        logger.info(
            "Booking created: %s (customer=%s, professional=%s, amount=%d)",
            booking.booking_id,
            booking.customer_ref,
            booking.professional_ref,
            booking.amount_estimated,
        )
        return booking

    def find(self, booking_id: str) -> Optional[Booking]:
        item = self.db.get_item(BOOKINGS_TABLE, {"booking_id": booking_id})
        return self._item_to_booking(item) if item else None

    def get(self, booking_id: str) -> Booking:
        """Get a booking by ID.

        Raises:
            BookingNotFound: If no such booking exists
        """
        booking = self.find(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        return booking

    def delete(
        self,
        booking_id: str,
        expected_status: BookingStatus = BookingStatus.PENDING_PAYMENT,
    ) -> bool:
        """Delete a booking that is still in ``expected_status``.

        Returns:
            True if deleted (or already gone), False if the booking moved on
        """
        deleted = self.db.delete_item(
            BOOKINGS_TABLE,
            {"booking_id": booking_id},
            condition_expression="attribute_not_exists(booking_id) OR #status = :expected",
            expression_attribute_names={"#status": "status"},
            expression_attribute_values={":expected": expected_status.value},
        )
        if deleted:
            logger.info("Booking deleted: %s", booking_id)
        else:
            logger.warning(
                "Booking %s not deleted: no longer %s", booking_id, expected_status.value
            )
        return deleted

    def transition(
        self,
        booking_id: str,
        from_expected: BookingStatus,
        to: BookingStatus,
        patch: Optional[dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """Compare-and-swap a booking from one status to another.

        Args:
            booking_id: Booking to move
            from_expected: Status the caller believes the booking is in
            to: Target status; must be reachable from ``from_expected``
            patch: Other fields to write in the same update (None removes)
            expected_version: Also require this version counter

        Returns:
            The updated Booking

        Raises:
            InvalidTransition: If the state machine forbids the move
            ConflictingTransition: If the stored status (or version) differs
            BookingNotFound: If the booking does not exist
        """
        event = event_for(from_expected, to)
        fields = dict(patch or {})
        fields["status"] = to
        updated = self._conditional_update(booking_id, fields, from_expected, expected_version)
        logger.info(
            "Booking %s transitioned %s -> %s (%s)",
            booking_id,
            from_expected.value,
            to.value,
            event.value,
        )
        return updated

    def update_hold(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        patch: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Booking:
        """Write payment fields without changing status, under the same CAS guard."""
        if "status" in patch:
            raise InvalidTransition(expected_status.value, "change status through update_hold")
        return self._conditional_update(booking_id, dict(patch), expected_status, expected_version)

    def _conditional_update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected_status: BookingStatus,
        expected_version: Optional[int],
    ) -> Booking:
        fields["updated_at"] = self._clock()
        expression, names, values = _build_update(fields)

        names["#status"] = "status"
        values[":expected"] = expected_status.value
        condition = "attribute_exists(booking_id) AND #status = :expected"
        if expected_version is not None:
            values[":version"] = expected_version
            condition += " AND #version = :version"

        attrs = self.db.update_item(
            BOOKINGS_TABLE,
            {"booking_id": booking_id},
            update_expression=expression,
            expression_attribute_values=values,
            expression_attribute_names=names,
            condition_expression=condition,
        )
        if attrs is not None:
            return self._item_to_booking(attrs)

        current = self.find(booking_id)
        if current is None:
            raise BookingNotFound(booking_id)
        logger.warning(
            "Conflicting write on booking %s: expected %s (v%s), found %s (v%d)",
            booking_id,
            expected_status.value,
            expected_version,
            current.status.value,
            current.version,
        )
        raise ConflictingTransition(booking_id, expected_status.value, current.status.value)

    # Recurrence generation records

    def record_generated_booking(
        self, subscription_id: str, source_booking_id: str, generated_booking_id: str
    ) -> None:
        """Record that ``source_booking_id`` produced ``generated_booking_id``.

        Raises:
            AlreadyGenerated: If a booking was already recorded for this source
        """
        key = generation_key(subscription_id, source_booking_id)
        stored = self.db.put_item(
            GENERATIONS_TABLE,
            {
                "generation_key": key,
                "subscription_id": subscription_id,
                "source_booking_id": source_booking_id,
                "generated_booking_id": generated_booking_id,
                "created_at": self._clock(),
            },
            condition_expression="attribute_not_exists(generation_key)",
        )
        if not stored:
            existing = self.get_generation(subscription_id, source_booking_id)
            raise AlreadyGenerated(
                subscription_id, source_booking_id, existing or generated_booking_id
            )

    def get_generation(self, subscription_id: str, source_booking_id: str) -> Optional[str]:
        """Booking ID previously generated from ``source_booking_id``, if any."""
        item = self.db.get_item(
            GENERATIONS_TABLE,
            {"generation_key": generation_key(subscription_id, source_booking_id)},
        )
        return item["generated_booking_id"] if item else None

    def delete_generation(
        self, subscription_id: str, source_booking_id: str, generated_booking_id: str
    ) -> bool:
        """Drop a generation record, only if it still points at ``generated_booking_id``."""
        return self.db.delete_item(
            GENERATIONS_TABLE,
            {"generation_key": generation_key(subscription_id, source_booking_id)},
            condition_expression="generated_booking_id = :generated",
            expression_attribute_values={":generated": generated_booking_id},
        )

    # Subscriptions

    def create_subscription(self, subscription: RecurringSubscription) -> RecurringSubscription:
        stored = self.db.put_item(
            SUBSCRIPTIONS_TABLE,
            subscription.model_dump(exclude_none=True),
            condition_expression="attribute_not_exists(subscription_id)",
        )
        if not stored:
            raise BookingValidationError("subscription_id", "already exists")
        logger.info(
            "Subscription created: %s (%s, customer=%s)",
            subscription.subscription_id,
            subscription.frequency.value,
            subscription.customer_ref,
        )
        return subscription

    def get_subscription(self, subscription_id: str) -> RecurringSubscription:
        """Get a subscription by ID.

        Raises:
            SubscriptionNotFound: If no such subscription exists
        """
        item = self.db.get_item(SUBSCRIPTIONS_TABLE, {"subscription_id": subscription_id})
        if not item:
            raise SubscriptionNotFound(subscription_id)
        return self._item_to_subscription(item)

    def advance_subscription(
        self,
        subscription_id: str,
        expected_next_date: date,
        next_date: date,
        total_occurrences_completed: int,
    ) -> RecurringSubscription:
        """Move ``next_booking_date`` forward after an occurrence was generated.

        Only the stored date is compared, so a pause or cancellation that
        lands mid-generation does not lose the advance for a booking that
        already exists.

        Raises:
            InvalidTransition: If ``next_date`` does not move forward
            ConflictingTransition: If another writer advanced it first
        """
        if next_date <= expected_next_date:
            raise InvalidTransition(
                expected_next_date.isoformat(), f"move next_booking_date to {next_date}"
            )
        attrs = self.db.update_item(
            SUBSCRIPTIONS_TABLE,
            {"subscription_id": subscription_id},
            update_expression=(
                "SET next_booking_date = :next, total_occurrences_completed = :done, "
                "updated_at = :now"
            ),
            expression_attribute_values={
                ":next": next_date,
                ":done": total_occurrences_completed,
                ":now": self._clock(),
                ":expected": expected_next_date,
            },
            condition_expression=(
                "attribute_exists(subscription_id) AND next_booking_date = :expected"
            ),
        )
        if attrs is None:
            current = self.get_subscription(subscription_id)
            raise ConflictingTransition(
                subscription_id,
                expected_next_date.isoformat(),
                current.next_booking_date.isoformat(),
            )
        return self._item_to_subscription(attrs)

    def set_subscription_status(
        self,
        subscription_id: str,
        status: SubscriptionStatus,
        patch: Optional[dict[str, Any]] = None,
    ) -> RecurringSubscription:
        """Change a subscription's status.

        Legal moves: active <-> paused, active/paused -> cancelled,
        active -> completed.

        Raises:
            InvalidTransition: If the move is not allowed from the current status
            ConflictingTransition: If the status changed concurrently
        """
        current = self.get_subscription(subscription_id)
        if status not in SUBSCRIPTION_TRANSITIONS[current.status]:
            raise InvalidTransition(current.status.value, f"set status to {status.value}")

        fields = dict(patch or {})
        fields["status"] = status
        fields["updated_at"] = self._clock()
        expression, names, values = _build_update(fields, bump_version=False)
        names["#current_status"] = "status"
        values[":current"] = current.status.value

        attrs = self.db.update_item(
            SUBSCRIPTIONS_TABLE,
            {"subscription_id": subscription_id},
            update_expression=expression,
            expression_attribute_values=values,
            expression_attribute_names=names,
            condition_expression="#current_status = :current",
        )
        if attrs is None:
            latest = self.get_subscription(subscription_id)
            raise ConflictingTransition(
                subscription_id, current.status.value, latest.status.value
            )
        logger.info(
            "Subscription %s status %s -> %s",
            subscription_id,
            current.status.value,
            status.value,
        )
        return self._item_to_subscription(attrs)

    # Processor customer mapping

    def get_processor_customer(self, customer_ref: str) -> Optional[str]:
        item = self.db.get_item(CUSTOMERS_TABLE, {"customer_ref": customer_ref})
        return item["processor_customer_id"] if item else None

    def put_processor_customer(self, customer_ref: str, processor_customer_id: str) -> str:
        """Persist the customer mapping; the first writer wins.

        Returns:
            The processor customer ID now on record
        """
        stored = self.db.put_item(
            CUSTOMERS_TABLE,
            {
                "customer_ref": customer_ref,
                "processor_customer_id": processor_customer_id,
                "created_at": self._clock(),
            },
            condition_expression="attribute_not_exists(customer_ref)",
        )
        if stored:
            return processor_customer_id
        existing = self.get_processor_customer(customer_ref)
        return existing or processor_customer_id
