"""In-memory stand-ins for the processor, role lookup and clock."""

import itertools
from datetime import datetime, timedelta
from typing import Any, Optional

from casaora_bookings.models.enums import ActorRole, HoldStatus
from casaora_bookings.models.errors import (
    AmbiguousOutcome,
    BookingError,
    CardDeclined,
    InvalidHoldState,
    ProcessorUnavailable,
)
from casaora_bookings.models.results import HoldRef


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class StaticRoleResolver:
    def __init__(self, roles: dict[str, str]) -> None:
        self.roles = {ref: ActorRole(role) for ref, role in roles.items()}

    def resolve_role(self, actor_ref: str) -> Optional[ActorRole]:
        return self.roles.get(actor_ref)


class InMemoryPaymentProcessor:
    """PaymentProcessor keeping holds in a dict.

    Replays of a mutating call with the same idempotency key return the
    first result, declines included, and reusing a key with a different
    payment method is rejected, like Stripe does. Failure knobs:
    - ``decline_code``: authorize raises CardDeclined
    - ``drop_connection``: authorize creates the hold, then raises AmbiguousOutcome
    - ``authorize_status``: status of newly created holds
    - ``partial_amount``: authorize only reserves this amount
    - ``fail_on``: operation name -> error raised by that operation
    """

    def __init__(self) -> None:
        self.holds: dict[str, HoldRef] = {}
        self.refunds: dict[str, tuple[str, int]] = {}
        self.customers: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self._replies: dict[str, Any] = {}
        self._authorize_params: dict[str, Optional[str]] = {}
        self._ids = itertools.count(1)

        self.decline_code: Optional[str] = None
        self.drop_connection = False
        self.authorize_status = HoldStatus.REQUIRES_CAPTURE
        self.partial_amount: Optional[int] = None
        self.fail_on: dict[str, BookingError] = {}

    def _replay(self, operation: str, key: str) -> Any:
        self.calls.append((operation, key))
        if operation in self.fail_on:
            raise self.fail_on[operation]
        return self._replies.get(key)

    def create_customer(self, customer_ref: str, email: Optional[str], idempotency_key: str) -> str:
        previous = self._replay("create_customer", idempotency_key)
        if previous:
            return previous
        customer_id = f"cus_{next(self._ids)}"
        self.customers[customer_id] = customer_ref
        self._replies[idempotency_key] = customer_id
        return customer_id

    def authorize(
        self,
        *,
        booking_id: str,
        amount: int,
        currency: str,
        customer_id: Optional[str],
        payment_method_ref: Optional[str],
        idempotency_key: str,
    ) -> HoldRef:
        previous = self._replay("authorize", idempotency_key)
        if self._authorize_params.setdefault(idempotency_key, payment_method_ref) != payment_method_ref:
            raise ProcessorUnavailable(
                "Keys for idempotent requests can only be used with the same parameters",
                processor_code="idempotency_error",
            )
        if isinstance(previous, BookingError):
            raise previous
        if previous:
            return self.holds[previous]
        if self.decline_code:
            declined = CardDeclined("Your card was declined.", processor_code=self.decline_code)
            self._replies[idempotency_key] = declined
            raise declined

        hold = HoldRef(
            hold_id=f"pi_{next(self._ids)}",
            booking_id=booking_id,
            amount=self.partial_amount or amount,
            currency=currency,
            status=self.authorize_status,
        )
        self.holds[hold.hold_id] = hold
        self._replies[idempotency_key] = hold.hold_id
        if self.drop_connection:
            raise AmbiguousOutcome("Connection reset while confirming")
        return hold

    def capture(self, hold_id: str, amount: Optional[int], idempotency_key: str) -> HoldRef:
        previous = self._replay("capture", idempotency_key)
        if previous:
            return self.holds[previous]
        hold = self.holds[hold_id]
        if hold.status != HoldStatus.REQUIRES_CAPTURE:
            raise InvalidHoldState(hold_id, hold.status.value, "capture")
        captured = hold.model_copy(
            update={
                "status": HoldStatus.CAPTURED,
                "amount_captured": amount if amount is not None else hold.amount,
            }
        )
        self.holds[hold_id] = captured
        self._replies[idempotency_key] = hold_id
        return captured

    def void(self, hold_id: str, idempotency_key: str) -> HoldRef:
        previous = self._replay("void", idempotency_key)
        if previous:
            return self.holds[previous]
        hold = self.holds[hold_id]
        if hold.status == HoldStatus.CAPTURED:
            raise InvalidHoldState(hold_id, hold.status.value, "void")
        voided = hold.model_copy(update={"status": HoldStatus.VOIDED})
        self.holds[hold_id] = voided
        self._replies[idempotency_key] = hold_id
        return voided

    def refund(self, hold_id: str, amount: int, idempotency_key: str) -> str:
        previous = self._replay("refund", idempotency_key)
        if previous:
            return previous
        refund_id = f"re_{next(self._ids)}"
        self.refunds[refund_id] = (hold_id, amount)
        self._replies[idempotency_key] = refund_id
        return refund_id

    def retrieve(self, hold_id: str) -> HoldRef:
        return self.holds[hold_id]

    def find_hold_for_booking(self, booking_id: str) -> Optional[HoldRef]:
        matches = [h for h in self.holds.values() if h.booking_id == booking_id]
        return matches[-1] if matches else None

    def operations(self, name: str) -> list[str]:
        """Idempotency keys sent for ``name``, in call order."""
        return [key for op, key in self.calls if op == name]


class InMemoryCustomerDirectory:
    def __init__(self) -> None:
        self.mapping: dict[str, str] = {}

    def get_processor_customer(self, customer_ref: str) -> Optional[str]:
        return self.mapping.get(customer_ref)

    def put_processor_customer(self, customer_ref: str, processor_customer_id: str) -> str:
        return self.mapping.setdefault(customer_ref, processor_customer_id)


class RecordingEmitter:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.batches: list[list[Any]] = []
        self.error = error

    def emit(self, events: list[Any]) -> None:
        if self.error:
            raise self.error
        self.batches.append(list(events))
