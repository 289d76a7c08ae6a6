"""Authorize, capture, void and refund funds held against bookings.

Every call that can move money sends a stable idempotency key derived from
the booking ID (plus the attempt number for authorizations) and logs a
structured event before and after the processor call. Ambiguous outcomes
are reconciled against processor state, never retried blindly.
"""

from typing import Optional, Protocol

from ..models.enums import HoldAction, HoldStatus
from ..models.errors import (
    AmbiguousOutcome,
    BookingError,
    CardDeclined,
    InvalidAmount,
    InvalidHoldState,
)
from ..models.results import CaptureResult, HoldRef, VoidOrRefundResult
from ..utils.logging import get_logger, log_hold_operation
from .payment_processor import PaymentProcessor

logger = get_logger(__name__)


class CustomerDirectory(Protocol):
    """Where customer -> processor customer mappings are kept."""

    def get_processor_customer(self, customer_ref: str) -> Optional[str]: ...

    def put_processor_customer(self, customer_ref: str, processor_customer_id: str) -> str: ...


def idempotency_key(booking_id: str, operation: str, suffix: Optional[str] = None) -> str:
    """Stable idempotency key for one logical operation on a booking.

    Example:
        idempotency_key("bk-1", "refund", "50000") -> "booking-bk-1-refund-50000"
    """
    key = f"booking-{booking_id}-{operation}"
    return f"{key}-{suffix}" if suffix else key


class PaymentHoldManager:
    """Manual-capture holds against bookings.

    Usage:
        manager = PaymentHoldManager(processor, store)
        hold = manager.authorize("bk-1", 100_000, "COP", "cust-1", customer_id="cus_1")
        manager.capture(hold.hold_id, "bk-1")
    """

    def __init__(self, processor: PaymentProcessor, customers: CustomerDirectory) -> None:
        self.processor = processor
        self.customers = customers

    def ensure_customer(self, customer_ref: str, email: Optional[str] = None) -> str:
        """Get the processor customer for ``customer_ref``, creating it once.

        Args:
            customer_ref: Platform customer reference
            email: Email to attach when the processor customer is created

        Returns:
            Processor customer ID
        """
        existing = self.customers.get_processor_customer(customer_ref)
        if existing:
            return existing

        key = f"customer-{customer_ref}"
        log_hold_operation(logger, "create_customer", idempotency_key=key, customer_ref=customer_ref)
        processor_id = self.processor.create_customer(customer_ref, email, key)
        stored = self.customers.put_processor_customer(customer_ref, processor_id)
        log_hold_operation(
            logger, "create_customer", idempotency_key=key, customer_ref=customer_ref, result="created"
        )
        return stored

    def authorize(
        self,
        booking_id: str,
        amount: int,
        currency: str,
        customer_ref: str,
        *,
        customer_id: Optional[str] = None,
        payment_method_ref: Optional[str] = None,
        attempt: int = 0,
    ) -> HoldRef:
        """Place a manual-capture hold for the full amount.

        Each attempt has its own idempotency key so a new payment method
        can be tried after a decline; retries within an attempt replay it.

        Args:
            booking_id: Booking the hold belongs to
            amount: Amount in minor units
            currency: ISO currency code
            customer_ref: Platform customer reference (for logging)
            customer_id: Processor customer ID
            payment_method_ref: Stored payment method to confirm with
            attempt: Authorization attempt number for this booking

        Returns:
            HoldRef in ``requires_capture`` for exactly ``amount``

        Raises:
            InvalidAmount: If the amount is not positive or only partially authorized
            CardDeclined: If the payment method was declined
            ProcessorUnavailable: On a transient processor failure
            AmbiguousOutcome: If the outcome is unknown and no hold was found
        """
        if amount <= 0:
            raise InvalidAmount("amount must be greater than zero", {"amount": amount})

        key = idempotency_key(booking_id, "authorize", str(attempt) if attempt else None)
        log_hold_operation(
            logger,
            "authorize",
            booking_id=booking_id,
            amount=amount,
            idempotency_key=key,
            customer_ref=customer_ref,
            phase="attempt",
        )
        try:
            hold = self.processor.authorize(
                booking_id=booking_id,
                amount=amount,
                currency=currency,
                customer_id=customer_id,
                payment_method_ref=payment_method_ref,
                idempotency_key=key,
            )
        except AmbiguousOutcome as e:
            log_hold_operation(
                logger, "authorize", booking_id=booking_id, idempotency_key=key, error=str(e)
            )
            hold = self._lookup_after_ambiguous(booking_id, e)
        except BookingError as e:
            log_hold_operation(
                logger,
                "authorize",
                booking_id=booking_id,
                amount=amount,
                idempotency_key=key,
                error=e.message,
                error_code=e.code.value,
            )
            raise

        if hold.status != HoldStatus.REQUIRES_CAPTURE:
            self._release_incomplete(hold)
            raise CardDeclined(
                "Payment could not be authorized without further customer action.",
                processor_code="authentication_required",
                details={"booking_id": booking_id, "hold_status": hold.status.value},
            )

        if hold.amount != amount:
            self._release_incomplete(hold)
            raise InvalidAmount(
                "partial authorization is not supported",
                {"requested": amount, "authorized": hold.amount},
            )

        log_hold_operation(
            logger,
            "authorize",
            hold_id=hold.hold_id,
            booking_id=booking_id,
            amount=hold.amount,
            hold_status=hold.status.value,
            idempotency_key=key,
            phase="succeeded",
        )
        return hold

    def _lookup_after_ambiguous(self, booking_id: str, original: AmbiguousOutcome) -> HoldRef:
        try:
            found = self.processor.find_hold_for_booking(booking_id)
        except BookingError as lookup_error:
            logger.warning(
                "Hold lookup after ambiguous authorize failed for booking %s: %s",
                booking_id,
                lookup_error.message,
            )
            raise original.with_details(booking_id=booking_id) from lookup_error
        if found is None:
            raise original.with_details(booking_id=booking_id)
        logger.info(
            "Ambiguous authorize for booking %s resolved to hold %s (%s)",
            booking_id,
            found.hold_id,
            found.status.value,
        )
        return found

    def _release_incomplete(self, hold: HoldRef) -> None:
        if hold.status in (HoldStatus.VOIDED, HoldStatus.CAPTURED):
            return
        key = idempotency_key(hold.booking_id, "void", hold.hold_id)
        try:
            self.processor.void(hold.hold_id, key)
        except BookingError as e:
            log_hold_operation(
                logger,
                "void",
                hold_id=hold.hold_id,
                booking_id=hold.booking_id,
                idempotency_key=key,
                error=e.message,
                needs_reconciliation=True,
            )

    def capture(self, hold_id: str, booking_id: str, amount: Optional[int] = None) -> CaptureResult:
        """Capture held funds. Capturing a captured hold is a no-op success.

        Args:
            hold_id: Processor hold reference
            booking_id: Booking the hold belongs to
            amount: Final amount; defaults to the full authorized amount

        Raises:
            InvalidHoldState: If the hold is not in ``requires_capture``
            InvalidAmount: If ``amount`` exceeds the authorized amount
        """
        current = self.processor.retrieve(hold_id)
        if current.status == HoldStatus.CAPTURED:
            log_hold_operation(
                logger,
                "capture",
                hold_id=hold_id,
                booking_id=booking_id,
                amount=current.amount_captured,
                hold_status=current.status.value,
                result="already_captured",
            )
            return CaptureResult(
                hold_id=hold_id,
                amount_captured=current.amount_captured,
                already_captured=True,
            )
        if current.status != HoldStatus.REQUIRES_CAPTURE:
            raise InvalidHoldState(hold_id, current.status.value, "capture")
        if amount is not None and not 0 < amount <= current.amount:
            raise InvalidAmount(
                "capture amount must be positive and no more than the authorized amount",
                {"amount": amount, "authorized": current.amount},
            )

        key = idempotency_key(booking_id, "capture")
        log_hold_operation(
            logger,
            "capture",
            hold_id=hold_id,
            booking_id=booking_id,
            amount=amount if amount is not None else current.amount,
            idempotency_key=key,
            phase="attempt",
        )
        try:
            captured = self.processor.capture(hold_id, amount, key)
        except BookingError as e:
            log_hold_operation(
                logger, "capture", hold_id=hold_id, booking_id=booking_id, error=e.message
            )
            raise

        amount_captured = captured.amount_captured or (
            amount if amount is not None else current.amount
        )
        log_hold_operation(
            logger,
            "capture",
            hold_id=hold_id,
            booking_id=booking_id,
            amount=amount_captured,
            hold_status=captured.status.value,
            idempotency_key=key,
            phase="succeeded",
        )
        return CaptureResult(hold_id=hold_id, amount_captured=amount_captured)

    def void_or_refund(
        self, hold_id: str, booking_id: str, refund_amount: int
    ) -> VoidOrRefundResult:
        """Release a hold: void it if uncaptured, otherwise refund.

        For an uncaptured hold the full amount is released and
        ``refund_amount`` is informational only.

        Raises:
            InvalidAmount: If the refund is negative or exceeds the captured amount
        """
        if refund_amount < 0:
            raise InvalidAmount("refund amount must not be negative", {"refund_amount": refund_amount})

        current = self.processor.retrieve(hold_id)

        if current.status == HoldStatus.VOIDED:
            log_hold_operation(
                logger, "void", hold_id=hold_id, booking_id=booking_id, result="already_voided"
            )
            return VoidOrRefundResult(
                hold_id=hold_id, action=HoldAction.VOIDED, refund_amount=refund_amount
            )

        if current.status != HoldStatus.CAPTURED:
            key = idempotency_key(booking_id, "void")
            log_hold_operation(
                logger, "void", hold_id=hold_id, booking_id=booking_id, idempotency_key=key, phase="attempt"
            )
            try:
                voided = self.processor.void(hold_id, key)
            except BookingError as e:
                log_hold_operation(
                    logger, "void", hold_id=hold_id, booking_id=booking_id, error=e.message
                )
                raise
            log_hold_operation(
                logger,
                "void",
                hold_id=hold_id,
                booking_id=booking_id,
                hold_status=voided.status.value,
                idempotency_key=key,
                phase="succeeded",
            )
            return VoidOrRefundResult(
                hold_id=hold_id, action=HoldAction.VOIDED, refund_amount=refund_amount
            )

        if refund_amount > current.amount_captured:
            raise InvalidAmount(
                "refund exceeds captured amount",
                {"refund_amount": refund_amount, "captured": current.amount_captured},
            )
        if refund_amount == 0:
            log_hold_operation(
                logger, "refund", hold_id=hold_id, booking_id=booking_id, amount=0, result="nothing_to_refund"
            )
            return VoidOrRefundResult(hold_id=hold_id, action=HoldAction.NONE, refund_amount=0)

        key = idempotency_key(booking_id, "refund", str(refund_amount))
        log_hold_operation(
            logger,
            "refund",
            hold_id=hold_id,
            booking_id=booking_id,
            amount=refund_amount,
            idempotency_key=key,
            phase="attempt",
        )
        try:
            refund_id = self.processor.refund(hold_id, refund_amount, key)
        except BookingError as e:
            log_hold_operation(
                logger, "refund", hold_id=hold_id, booking_id=booking_id, error=e.message
            )
            raise
        log_hold_operation(
            logger,
            "refund",
            hold_id=hold_id,
            booking_id=booking_id,
            amount=refund_amount,
            idempotency_key=key,
            refund_id=refund_id,
            phase="succeeded",
        )
        return VoidOrRefundResult(
            hold_id=hold_id,
            action=HoldAction.REFUNDED,
            refund_amount=refund_amount,
            refund_id=refund_id,
        )

    def reconcile(self, booking_id: str) -> Optional[HoldRef]:
        """Ask the processor which hold, if any, exists for ``booking_id``."""
        hold = self.processor.find_hold_for_booking(booking_id)
        log_hold_operation(
            logger,
            "reconcile",
            hold_id=hold.hold_id if hold else None,
            booking_id=booking_id,
            hold_status=hold.status.value if hold else None,
            result="found" if hold else "not_found",
        )
        return hold
