"""Payment processor capability and its Stripe implementation.

The lifecycle core only talks to ``PaymentProcessor``. ``StripePaymentProcessor``
maps it onto Stripe PaymentIntents with ``capture_method="manual"``: an
authorization is a PaymentIntent in ``requires_capture``, a void cancels it,
a capture moves the funds, and refunds are issued against the intent.

Stripe failures are translated into the engine's processor errors:
- ``CardError`` -> ``CardDeclined`` (terminal for this attempt)
- ``APIConnectionError`` -> ``AmbiguousOutcome`` (reconcile before retrying)
- ``RateLimitError`` / ``APIError`` / ``AuthenticationError`` -> ``ProcessorUnavailable``
- unexpected intent state -> ``InvalidHoldState``
"""

import os
from functools import lru_cache
from typing import Any, Optional, Protocol

import stripe
from stripe import StripeClient

from ..models.enums import HoldStatus
from ..models.errors import (
    AmbiguousOutcome,
    BookingError,
    CardDeclined,
    InvalidHoldState,
    ProcessorUnavailable,
    get_user_friendly_decline_message,
)
from ..models.results import HoldRef
from ..utils.logging import get_logger
from .ssm_service import SSMServiceError, get_ssm_service, stripe_secret_key_path

logger = get_logger(__name__)

INTENT_STATUS_MAP: dict[str, HoldStatus] = {
    "requires_capture": HoldStatus.REQUIRES_CAPTURE,
    "succeeded": HoldStatus.CAPTURED,
    "canceled": HoldStatus.VOIDED,
}


class PaymentProcessor(Protocol):
    """Abstract processor used by the payment hold manager.

    Every mutating call takes an idempotency key; replaying a call with the
    same key must not repeat its effect.
    """

    def create_customer(
        self, customer_ref: str, email: Optional[str], idempotency_key: str
    ) -> str: ...

    def authorize(
        self,
        *,
        booking_id: str,
        amount: int,
        currency: str,
        customer_id: Optional[str],
        payment_method_ref: Optional[str],
        idempotency_key: str,
    ) -> HoldRef: ...

    def capture(self, hold_id: str, amount: Optional[int], idempotency_key: str) -> HoldRef: ...

    def void(self, hold_id: str, idempotency_key: str) -> HoldRef: ...

    def refund(self, hold_id: str, amount: int, idempotency_key: str) -> str: ...

    def retrieve(self, hold_id: str) -> HoldRef: ...

    def find_hold_for_booking(self, booking_id: str) -> Optional[HoldRef]: ...


def translate_stripe_error(
    error: stripe.StripeError, operation: str, hold_id: Optional[str] = None
) -> BookingError:
    """Map a Stripe exception to the engine's processor error taxonomy.

    Args:
        error: The exception raised by the Stripe SDK
        operation: Operation name for context (e.g., "capture")
        hold_id: PaymentIntent ID if the call targeted one

    Returns:
        The BookingError to raise in its place
    """
    code = getattr(error, "code", None)
    details: dict[str, Any] = {"operation": operation}
    if hold_id:
        details["hold_id"] = hold_id

    if isinstance(error, stripe.CardError):
        error_object = getattr(error, "error", None)
        decline_code = getattr(error_object, "decline_code", None) or code
        return CardDeclined(
            get_user_friendly_decline_message(decline_code),
            processor_code=decline_code,
            details=details,
        )
    if isinstance(error, stripe.APIConnectionError):
        return AmbiguousOutcome(processor_code=code, details=details)
    if isinstance(error, stripe.InvalidRequestError) and code == "payment_intent_unexpected_state":
        intent = getattr(error, "payment_intent", None)
        status = getattr(intent, "status", None) or "unknown"
        return InvalidHoldState(hold_id or "unknown", status, operation)
    return ProcessorUnavailable(processor_code=code, details=details)


class StripePaymentProcessor:
    """``PaymentProcessor`` backed by Stripe PaymentIntents.

    Usage:
        processor = get_stripe_processor()
        hold = processor.authorize(
            booking_id="bk-123",
            amount=100_000,
            currency="COP",
            customer_id="cus_123",
            payment_method_ref="pm_123",
            idempotency_key="booking-bk-123-authorize",
        )
    """

    def __init__(
        self, environment: Optional[str] = None, client: Optional[StripeClient] = None
    ) -> None:
        """Initialize the processor.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
            client: Preconfigured StripeClient; read from SSM lazily if omitted.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._client = client

    def _get_client(self) -> StripeClient:
        """Get or create the Stripe client (lazy initialization).

        Raises:
            ProcessorUnavailable: If credentials cannot be retrieved.
        """
        if self._client is None:
            try:
                secret_key = get_ssm_service().get_secure_string(
                    stripe_secret_key_path(self._environment)
                )
            except SSMServiceError as e:
                raise ProcessorUnavailable(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(secret_key)
            logger.info("Stripe client initialized for environment: %s", self._environment)
        return self._client

    @staticmethod
    def _to_hold(intent: Any, booking_id: Optional[str] = None) -> HoldRef:
        metadata = getattr(intent, "metadata", None) or {}
        return HoldRef(
            hold_id=intent.id,
            booking_id=booking_id or metadata.get("booking_id", ""),
            amount=int(intent.amount),
            amount_captured=int(getattr(intent, "amount_received", 0) or 0),
            currency=str(intent.currency).upper(),
            status=INTENT_STATUS_MAP.get(intent.status, HoldStatus.REQUIRES_CONFIRMATION),
        )

    def create_customer(self, customer_ref: str, email: Optional[str], idempotency_key: str) -> str:
        params: dict[str, Any] = {"metadata": {"customer_ref": customer_ref}}
        if email:
            params["email"] = email
        try:
            customer = self._get_client().customers.create(
                params=params, options={"idempotency_key": idempotency_key}
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "create_customer") from e
        return str(customer.id)

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
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "capture_method": "manual",
            "metadata": {"booking_id": booking_id},
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
        }
        if customer_id:
            params["customer"] = customer_id
        if payment_method_ref:
            params["payment_method"] = payment_method_ref
            params["confirm"] = True
        try:
            intent = self._get_client().payment_intents.create(
                params=params, options={"idempotency_key": idempotency_key}
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "authorize") from e
        return self._to_hold(intent, booking_id)

    def capture(self, hold_id: str, amount: Optional[int], idempotency_key: str) -> HoldRef:
        params: dict[str, Any] = {}
        if amount is not None:
            params["amount_to_capture"] = amount
        try:
            intent = self._get_client().payment_intents.capture(
                hold_id, params=params, options={"idempotency_key": idempotency_key}
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "capture", hold_id) from e
        return self._to_hold(intent)

    def void(self, hold_id: str, idempotency_key: str) -> HoldRef:
        try:
            intent = self._get_client().payment_intents.cancel(
                hold_id,
                params={"cancellation_reason": "requested_by_customer"},
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "void", hold_id) from e
        return self._to_hold(intent)

    def refund(self, hold_id: str, amount: int, idempotency_key: str) -> str:
        try:
            refund = self._get_client().refunds.create(
                params={"payment_intent": hold_id, "amount": amount},
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "refund", hold_id) from e
        return str(refund.id)

    def retrieve(self, hold_id: str) -> HoldRef:
        try:
            intent = self._get_client().payment_intents.retrieve(hold_id)
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "retrieve", hold_id) from e
        return self._to_hold(intent)

    def find_hold_for_booking(self, booking_id: str) -> Optional[HoldRef]:
        """Look up the most recent PaymentIntent tagged with ``booking_id``.

        Used to reconcile after an ambiguous authorization: the metadata
        search tells us whether Stripe created the hold before the
        connection dropped.
        """
        try:
            result = self._get_client().payment_intents.search(
                params={"query": f"metadata['booking_id']:'{booking_id}'", "limit": 1}
            )
        except stripe.StripeError as e:
            raise translate_stripe_error(e, "find_hold") from e
        intents = list(result.data)
        if not intents:
            return None
        return self._to_hold(intents[0], booking_id)


@lru_cache(maxsize=1)
def get_stripe_processor() -> StripePaymentProcessor:
    """Get the shared StripePaymentProcessor instance."""
    return StripePaymentProcessor()
