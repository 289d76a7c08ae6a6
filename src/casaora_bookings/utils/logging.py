"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for request tracing
- Structured logging formatter for consistent log output
- Helper functions for payment-hold and lifecycle logging

Usage:
    from casaora_bookings.utils.logging import get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    logger.info("Cancelling booking", extra={"booking_id": "bk-123"})
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes every line with the correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"
        base = super().format(record)
        return f"[{record.correlation_id}] {base}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: str = "INFO") -> None:
    """Install the structured formatter on the root logger.

    Safe to call more than once; an existing structured handler is reused.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in root.handlers:
        if isinstance(handler.formatter, StructuredFormatter):
            return
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(DEFAULT_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def _emit(
    logger: logging.Logger, headline: str, context: dict[str, Any], *, error: bool, critical: bool
) -> None:
    msg_parts = [headline]
    for key, value in context.items():
        if key != "operation":
            msg_parts.append(f"{key}={value}")
    message = " | ".join(msg_parts)

    if critical:
        logger.critical(message, extra=context)
    elif error:
        logger.error(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_hold_operation(
    logger: logging.Logger,
    operation: str,
    *,
    hold_id: str | None = None,
    booking_id: str | None = None,
    amount: int | None = None,
    hold_status: str | None = None,
    idempotency_key: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a payment-hold operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g., "authorize", "capture", "refund")
        hold_id: Processor hold reference if available
        booking_id: Booking the hold belongs to
        amount: Amount in minor units if relevant
        hold_status: Hold status reported by the processor
        idempotency_key: Key sent with the processor call
        error: Error message if operation failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation}

    if hold_id:
        context["hold_id"] = hold_id
    if booking_id:
        context["booking_id"] = booking_id
    if amount is not None:
        context["amount"] = amount
    if hold_status:
        context["hold_status"] = hold_status
    if idempotency_key:
        context["idempotency_key"] = idempotency_key
    if error:
        context["error"] = error

    context.update(extra)
    _emit(logger, f"Hold operation: {operation}", context, error=bool(error), critical=False)


def log_lifecycle_event(
    logger: logging.Logger,
    operation: str,
    booking_id: str,
    *,
    from_status: str | None = None,
    to_status: str | None = None,
    actor_ref: str | None = None,
    error: str | None = None,
    critical: bool = False,
    **extra: Any,
) -> None:
    """Log a booking lifecycle step.

    Args:
        logger: Logger instance
        operation: Lifecycle operation (e.g., "cancel", "complete")
        booking_id: Booking ID
        from_status: Status before the step
        to_status: Status after the step
        actor_ref: Who triggered the step
        error: Error message if the step failed
        critical: Log at CRITICAL, for states that need manual reconciliation
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"operation": operation, "booking_id": booking_id}

    if from_status:
        context["from_status"] = from_status
    if to_status:
        context["to_status"] = to_status
    if actor_ref:
        context["actor_ref"] = actor_ref
    if error:
        context["error"] = error

    context.update(extra)
    _emit(logger, f"Booking {operation}", context, error=bool(error), critical=critical)
