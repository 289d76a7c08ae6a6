"""Tests for correlation IDs and structured lifecycle logging."""

import importlib
import logging

import pytest

from casaora_bookings.utils.logging import (
    CorrelationIdFilter,
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_hold_operation,
    log_lifecycle_event,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def no_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


class TestCorrelationId:
    def test_set_and_get(self) -> None:
        assert set_correlation_id("req-1") == "req-1"
        assert get_correlation_id() == "req-1"

    def test_generates_when_missing(self) -> None:
        cid = set_correlation_id()

        assert cid
        assert get_correlation_id() == cid

    def test_formatter_prefixes_id(self) -> None:
        set_correlation_id("req-9")
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

        assert StructuredFormatter("%(message)s").format(record) == "[req-9] hello"

    def test_logger_attaches_id(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("casaora_bookings.tests")
        set_correlation_id("req-7")

        with caplog.at_level(logging.INFO):
            logger.info("ping")

        assert caplog.records[-1].correlation_id == "req-7"

    @pytest.mark.parametrize(
        "module_name",
        [
            "casaora_bookings.services.booking_store",
            "casaora_bookings.services.payment_processor",
            "casaora_bookings.services.identity",
            "casaora_api.exceptions",
        ],
    )
    def test_module_loggers_carry_id_filter(self, module_name: str) -> None:
        module = importlib.import_module(module_name)

        assert module.logger.name == module_name
        assert any(isinstance(f, CorrelationIdFilter) for f in module.logger.filters)


class TestLifecycleLogging:
    def test_success_logs_info(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("casaora_bookings.tests")

        with caplog.at_level(logging.INFO):
            log_lifecycle_event(
                logger, "cancel", "bk-1", from_status="confirmed", to_status="canceled"
            )

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == (
            "Booking cancel | booking_id=bk-1 | from_status=confirmed | to_status=canceled"
        )
        assert record.booking_id == "bk-1"

    def test_error_and_critical_levels(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("casaora_bookings.tests")

        with caplog.at_level(logging.INFO):
            log_lifecycle_event(logger, "complete", "bk-1", error="boom")
            log_lifecycle_event(logger, "complete", "bk-1", error="boom", critical=True)

        assert [r.levelno for r in caplog.records[-2:]] == [logging.ERROR, logging.CRITICAL]

    def test_hold_operation_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger("casaora_bookings.tests")

        with caplog.at_level(logging.INFO):
            log_hold_operation(logger, "capture", hold_id="pi_1", booking_id="bk-1", amount=0)

        record = caplog.records[-1]
        assert record.hold_id == "pi_1"
        assert record.amount == 0
