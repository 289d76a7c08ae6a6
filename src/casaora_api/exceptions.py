"""FastAPI exception handlers for converting BookingError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 402 Payment Required: card declined
- 403 Forbidden: actor may not act on the booking
- 404 Not Found: booking or subscription not found
- 409 Conflict: concurrent or illegal state changes, duplicate generation
- 422 Unprocessable Entity: policy blocks and invalid input
- 502 Bad Gateway: processor outcome unknown, reconciliation needed
- 503 Service Unavailable: processor temporarily unavailable

Usage:
    from casaora_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_402_PAYMENT_REQUIRED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from casaora_bookings.models.errors import BookingError, ErrorCode
from casaora_bookings.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Policy and input errors -> 422
    ErrorCode.POLICY_BLOCKED: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.PAST_DATE: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INVALID_AMOUNT: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.VALIDATION_FAILED: HTTP_422_UNPROCESSABLE_ENTITY,
    # State conflicts -> 409
    ErrorCode.CONFLICTING_TRANSITION: HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: HTTP_409_CONFLICT,
    ErrorCode.ALREADY_GENERATED: HTTP_409_CONFLICT,
    ErrorCode.INVALID_HOLD_STATE: HTTP_409_CONFLICT,
    # Authorization -> 403
    ErrorCode.UNAUTHORIZED: HTTP_403_FORBIDDEN,
    # Not found -> 404
    ErrorCode.BOOKING_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.SUBSCRIPTION_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Processor errors
    ErrorCode.CARD_DECLINED: HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.PROCESSOR_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.AMBIGUOUS_OUTCOME: HTTP_502_BAD_GATEWAY,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode (422 if not explicitly mapped)."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_422_UNPROCESSABLE_ENTITY)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError to its ErrorResponse JSON body.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The BookingError exception

    Returns:
        JSONResponse with error details and appropriate status code.
    """
    status_code = get_http_status_for_error(exc.code)
    if status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code.value)
    headers = {"Retry-After": "5"} if exc.retryable else None
    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback for uncaught exceptions; internal details are not exposed."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error_code": "ERR_INTERNAL",
            "message": "An unexpected error occurred",
            "recovery": "Please try again later or contact support",
            "retryable": False,
            "details": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
