"""Unit tests for StripePaymentProcessor.

All Stripe interactions are mocked; no network calls are made.

Test categories:
- Initialization and credential retrieval
- PaymentIntent parameters for each operation
- Stripe error translation
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from casaora_bookings.models.enums import HoldStatus
from casaora_bookings.models.errors import (
    AmbiguousOutcome,
    CardDeclined,
    InvalidHoldState,
    ProcessorUnavailable,
)
from casaora_bookings.services.payment_processor import (
    StripePaymentProcessor,
    translate_stripe_error,
)
from casaora_bookings.services.ssm_service import SSMServiceError

TEST_SECRET_KEY = "sk_test_abc123xyz"
BOOKING_ID = "bk-123"


def _intent(status: str = "requires_capture", amount: int = 100_000, received: int = 0):
    return SimpleNamespace(
        id="pi_123",
        amount=amount,
        amount_received=received,
        currency="cop",
        status=status,
        metadata={"booking_id": BOOKING_ID},
    )


# === Fixtures ===


@pytest.fixture
def mock_ssm_service():
    """Mock SSM service for credential retrieval."""
    with patch("casaora_bookings.services.payment_processor.get_ssm_service") as mock_get_ssm:
        mock_ssm = MagicMock()
        mock_ssm.get_secure_string.side_effect = lambda name: {
            "/casaora/dev/stripe/secret_key": TEST_SECRET_KEY,
        }[name]
        mock_get_ssm.return_value = mock_ssm
        yield mock_ssm


@pytest.fixture
def mock_stripe_client():
    with patch("casaora_bookings.services.payment_processor.StripeClient") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value = mock_client
        yield mock_client


@pytest.fixture
def processor(mock_ssm_service, mock_stripe_client) -> StripePaymentProcessor:
    return StripePaymentProcessor(environment="dev")


# === Initialization ===


class TestInitialization:
    def test_client_lazy_initialized(self, processor: StripePaymentProcessor) -> None:
        assert processor._client is None

    def test_reads_secret_key_from_ssm(
        self, processor: StripePaymentProcessor, mock_ssm_service, mock_stripe_client
    ) -> None:
        mock_stripe_client.payment_intents.retrieve.return_value = _intent()

        processor.retrieve("pi_123")

        mock_ssm_service.get_secure_string.assert_called_once_with("/casaora/dev/stripe/secret_key")

    def test_uses_environment_variable(self, mock_ssm_service) -> None:
        with patch.dict("os.environ", {"ENVIRONMENT": "staging"}):
            assert StripePaymentProcessor()._environment == "staging"

    def test_ssm_failure_is_processor_unavailable(self, mock_ssm_service, mock_stripe_client) -> None:
        mock_ssm_service.get_secure_string.side_effect = SSMServiceError("SSM error")

        with pytest.raises(ProcessorUnavailable) as exc_info:
            StripePaymentProcessor(environment="dev").retrieve("pi_123")

        assert "Failed to initialize Stripe client" in exc_info.value.message


# === Operations ===


class TestAuthorize:
    def test_creates_manual_capture_intent(
        self, processor: StripePaymentProcessor, mock_stripe_client
    ) -> None:
        mock_stripe_client.payment_intents.create.return_value = _intent()

        hold = processor.authorize(
            booking_id=BOOKING_ID,
            amount=100_000,
            currency="COP",
            customer_id="cus_1",
            payment_method_ref="pm_card_visa",
            idempotency_key="booking-bk-123-authorize",
        )

        kwargs = mock_stripe_client.payment_intents.create.call_args.kwargs
        params = kwargs["params"]
        assert params["capture_method"] == "manual"
        assert params["amount"] == 100_000
        assert params["currency"] == "cop"
        assert params["metadata"] == {"booking_id": BOOKING_ID}
        assert params["customer"] == "cus_1"
        assert params["payment_method"] == "pm_card_visa"
        assert params["confirm"] is True
        assert kwargs["options"] == {"idempotency_key": "booking-bk-123-authorize"}

        assert hold.hold_id == "pi_123"
        assert hold.status == HoldStatus.REQUIRES_CAPTURE
        assert hold.currency == "COP"

    def test_without_payment_method_does_not_confirm(
        self, processor: StripePaymentProcessor, mock_stripe_client
    ) -> None:
        mock_stripe_client.payment_intents.create.return_value = _intent("requires_payment_method")

        hold = processor.authorize(
            booking_id=BOOKING_ID,
            amount=100_000,
            currency="COP",
            customer_id=None,
            payment_method_ref=None,
            idempotency_key="k",
        )

        params = mock_stripe_client.payment_intents.create.call_args.kwargs["params"]
        assert "confirm" not in params
        assert "customer" not in params
        assert hold.status == HoldStatus.REQUIRES_CONFIRMATION


class TestCaptureVoidRefund:
    def test_capture_with_amount(self, processor: StripePaymentProcessor, mock_stripe_client) -> None:
        mock_stripe_client.payment_intents.capture.return_value = _intent("succeeded", received=80_000)

        hold = processor.capture("pi_123", 80_000, "booking-bk-123-capture")

        mock_stripe_client.payment_intents.capture.assert_called_once_with(
            "pi_123",
            params={"amount_to_capture": 80_000},
            options={"idempotency_key": "booking-bk-123-capture"},
        )
        assert hold.status == HoldStatus.CAPTURED
        assert hold.amount_captured == 80_000
        assert hold.booking_id == BOOKING_ID

    def test_void_cancels_intent(self, processor: StripePaymentProcessor, mock_stripe_client) -> None:
        mock_stripe_client.payment_intents.cancel.return_value = _intent("canceled")

        hold = processor.void("pi_123", "booking-bk-123-void")

        assert hold.status == HoldStatus.VOIDED
        assert mock_stripe_client.payment_intents.cancel.call_args.kwargs["options"] == {
            "idempotency_key": "booking-bk-123-void"
        }

    def test_refund(self, processor: StripePaymentProcessor, mock_stripe_client) -> None:
        mock_stripe_client.refunds.create.return_value = SimpleNamespace(id="re_1")

        refund_id = processor.refund("pi_123", 50_000, "booking-bk-123-refund-50000")

        assert refund_id == "re_1"
        mock_stripe_client.refunds.create.assert_called_once_with(
            params={"payment_intent": "pi_123", "amount": 50_000},
            options={"idempotency_key": "booking-bk-123-refund-50000"},
        )

    def test_create_customer(self, processor: StripePaymentProcessor, mock_stripe_client) -> None:
        mock_stripe_client.customers.create.return_value = SimpleNamespace(id="cus_9")

        assert processor.create_customer("cust-1", "ana@example.com", "customer-cust-1") == "cus_9"
        params = mock_stripe_client.customers.create.call_args.kwargs["params"]
        assert params == {"metadata": {"customer_ref": "cust-1"}, "email": "ana@example.com"}


class TestFindHold:
    def test_searches_by_booking_metadata(
        self, processor: StripePaymentProcessor, mock_stripe_client
    ) -> None:
        mock_stripe_client.payment_intents.search.return_value = SimpleNamespace(data=[_intent()])

        hold = processor.find_hold_for_booking(BOOKING_ID)

        query = mock_stripe_client.payment_intents.search.call_args.kwargs["params"]["query"]
        assert query == "metadata['booking_id']:'bk-123'"
        assert hold is not None and hold.hold_id == "pi_123"

    def test_no_match(self, processor: StripePaymentProcessor, mock_stripe_client) -> None:
        mock_stripe_client.payment_intents.search.return_value = SimpleNamespace(data=[])

        assert processor.find_hold_for_booking(BOOKING_ID) is None


# === Error translation ===


class TestErrorTranslation:
    def test_card_error_is_declined(self) -> None:
        error = stripe.CardError("Your card was declined.", None, "card_declined")

        translated = translate_stripe_error(error, "authorize")

        assert isinstance(translated, CardDeclined)
        assert translated.processor_code == "card_declined"
        assert "declined" in translated.message

    def test_connection_error_is_ambiguous(self) -> None:
        translated = translate_stripe_error(stripe.APIConnectionError("timeout"), "capture", "pi_1")

        assert isinstance(translated, AmbiguousOutcome)
        assert translated.details["hold_id"] == "pi_1"

    def test_unexpected_state_is_invalid_hold_state(self) -> None:
        error = stripe.InvalidRequestError(
            "This PaymentIntent could not be captured", None, code="payment_intent_unexpected_state"
        )

        assert isinstance(translate_stripe_error(error, "capture", "pi_1"), InvalidHoldState)

    @pytest.mark.parametrize(
        "error",
        [
            stripe.RateLimitError("slow down"),
            stripe.APIError("server error"),
            stripe.AuthenticationError("bad key"),
        ],
    )
    def test_other_errors_are_unavailable(self, error: stripe.StripeError) -> None:
        translated = translate_stripe_error(error, "refund")

        assert isinstance(translated, ProcessorUnavailable)
        assert translated.retryable

    def test_sdk_error_surfaces_translated(
        self, processor: StripePaymentProcessor, mock_stripe_client
    ) -> None:
        mock_stripe_client.payment_intents.create.side_effect = stripe.CardError(
            "Insufficient funds", None, "card_declined"
        )

        with pytest.raises(CardDeclined):
            processor.authorize(
                booking_id=BOOKING_ID,
                amount=100_000,
                currency="COP",
                customer_id="cus_1",
                payment_method_ref="pm_1",
                idempotency_key="k",
            )
