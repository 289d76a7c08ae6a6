"""Booking lifecycle endpoints.

Provides REST endpoints for:
- Creating bookings and placing their payment hold
- Professional acceptance, decline and check-in
- Policy-driven cancellation (with a side-effect free preview)
- Rescheduling and completion with payment capture

Every endpoint requires authentication. API Gateway validates the JWT and
passes the actor's identity via the x-user-sub header. Notification events
returned by the lifecycle service are dispatched before responding.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from starlette.status import HTTP_201_CREATED

from casaora_api.dependencies import (
    get_actor_ref,
    get_lifecycle_service,
    get_notification_dispatcher,
)
from casaora_api.models.bookings import (
    AuthorizeBookingRequest,
    CancelBookingRequest,
    CompleteBookingRequest,
    CreateBookingRequest,
    DeclineBookingRequest,
    RescheduleBookingRequest,
)
from casaora_bookings.models.booking import Booking
from casaora_bookings.models.results import (
    BookingResult,
    CancellationOutcome,
    CancellationPreview,
    CompletionOutcome,
)
from casaora_bookings.services.lifecycle_service import BookingLifecycleService
from casaora_bookings.services.notifications import NotificationDispatcher

router = APIRouter(tags=["bookings"])

_AUTH_RESPONSES: dict = {
    401: {"description": "Authentication required"},
    403: {"description": "Actor may not act on this booking"},
    404: {"description": "Booking not found"},
}


@router.post(
    "/bookings",
    summary="Create booking",
    description="""
Create a booking for the authenticated customer and place its payment hold.

The amount is the explicit `amount` if given, otherwise the hourly rate times
the duration, never below the minimum booking amount.

**Notes:**
- `scheduled_start` must be timezone-aware and in the future
- A declined or failed hold leaves no booking behind
- An unknown processor outcome (502) keeps the booking in `pending_payment`
  for reconciliation
""",
    response_model=BookingResult,
    status_code=HTTP_201_CREATED,
    responses={
        402: {"description": "Card declined"},
        422: {"description": "Invalid amount or date in the past"},
        502: {"description": "Processor outcome unknown"},
    },
)
async def create_booking(
    body: CreateBookingRequest,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingResult:
    result = service.create_booking(body.to_draft(actor_ref))
    dispatcher.dispatch(result.events)
    return result


@router.get(
    "/bookings/{booking_id}",
    summary="Get booking",
    response_model=Booking,
    responses=_AUTH_RESPONSES,
)
async def get_booking(
    booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> Booking:
    """Get a booking the actor is a party to."""
    return service.get_booking(booking_id, actor_ref)


@router.post(
    "/bookings/{booking_id}/authorize",
    summary="Authorize booking payment",
    description="""
Place the payment hold for a booking still in `pending_payment`, typically a
subscription-generated occurrence. Uses the subscription's payment method
when none is given.
""",
    response_model=BookingResult,
    responses={**_AUTH_RESPONSES, 402: {"description": "Card declined"}},
)
async def authorize_booking(
    booking_id: str,
    body: Optional[AuthorizeBookingRequest] = Body(default=None),
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> BookingResult:
    body = body or AuthorizeBookingRequest()
    service.get_booking(booking_id, actor_ref)
    return service.authorize_booking(booking_id, body.payment_method_ref, body.customer_email)


@router.post(
    "/bookings/{booking_id}/reconcile",
    summary="Reconcile booking payment",
    description="Resolve a booking left pending by an unknown processor outcome.",
    response_model=BookingResult,
    responses=_AUTH_RESPONSES,
)
async def reconcile_booking(
    booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> BookingResult:
    service.get_booking(booking_id, actor_ref)
    return service.reconcile_booking_payment(booking_id)


@router.post(
    "/bookings/{booking_id}/confirm",
    summary="Confirm booking",
    description="Professional accepts an authorized booking.",
    response_model=BookingResult,
    responses={**_AUTH_RESPONSES, 409: {"description": "Booking is not authorized"}},
)
async def confirm_booking(
    booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingResult:
    result = service.confirm_booking(booking_id, actor_ref)
    dispatcher.dispatch(result.events)
    return result


@router.post(
    "/bookings/{booking_id}/check-in",
    summary="Check in",
    description="Professional marks a confirmed booking as in progress.",
    response_model=BookingResult,
    responses=_AUTH_RESPONSES,
)
async def check_in_booking(
    booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> BookingResult:
    return service.check_in_booking(booking_id, actor_ref)


@router.post(
    "/bookings/{booking_id}/decline",
    summary="Decline booking",
    description="Professional declines the booking. Any active hold is voided.",
    response_model=BookingResult,
    responses=_AUTH_RESPONSES,
)
async def decline_booking(
    booking_id: str,
    body: Optional[DeclineBookingRequest] = Body(default=None),
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingResult:
    reason = body.reason if body else None
    result = service.decline_booking(booking_id, actor_ref, reason)
    dispatcher.dispatch(result.events)
    return result


@router.get(
    "/bookings/{booking_id}/cancellation-preview",
    summary="Preview cancellation",
    description="""
Refund percentage and amount a cancellation would get right now.

**Refund tiers:**
- 72 hours or more before the start: 100%
- 24 to 72 hours before the start: 50%
- Less than 24 hours before the start: no refund
""",
    response_model=CancellationPreview,
    responses=_AUTH_RESPONSES,
)
async def preview_cancellation(
    booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> CancellationPreview:
    return service.preview_cancellation(booking_id, actor_ref)


@router.post(
    "/bookings/{booking_id}/cancel",
    summary="Cancel booking",
    description="""
Cancel a booking under the cancellation policy.

An uncaptured hold is voided; captured funds are refunded by the policy's
percentage. Policy and conflict errors carry the computed refund details.
""",
    response_model=CancellationOutcome,
    responses={
        **_AUTH_RESPONSES,
        409: {"description": "Booking changed concurrently or cannot be cancelled"},
        422: {"description": "Cancellation blocked by policy"},
    },
)
async def cancel_booking(
    booking_id: str,
    body: Optional[CancelBookingRequest] = Body(default=None),
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CancellationOutcome:
    reason = body.reason if body else None
    outcome = service.cancel_booking(booking_id, actor_ref, reason)
    dispatcher.dispatch(outcome.events)
    return outcome


@router.post(
    "/bookings/{booking_id}/reschedule",
    summary="Reschedule booking",
    description="""
Move a booking to a new start time. The booking returns to `authorized` and
the professional must confirm again. The payment hold is kept.
""",
    response_model=BookingResult,
    responses={**_AUTH_RESPONSES, 422: {"description": "New start is in the past"}},
)
async def reschedule_booking(
    booking_id: str,
    body: RescheduleBookingRequest,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingResult:
    result = service.reschedule_booking(
        booking_id, body.new_start, body.new_duration_minutes, actor_ref
    )
    dispatcher.dispatch(result.events)
    return result


@router.post(
    "/bookings/{booking_id}/complete",
    summary="Complete booking",
    description="""
Professional captures the payment hold and marks an in-progress booking
completed. An optional `final_amount` may lower the charge. For
subscription bookings the next occurrence is generated; a generation failure
is reported in `recurrence_error` and never fails the completion.
""",
    response_model=CompletionOutcome,
    responses=_AUTH_RESPONSES,
)
async def complete_booking(
    booking_id: str,
    body: Optional[CompleteBookingRequest] = Body(default=None),
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CompletionOutcome:
    final_amount = body.final_amount if body else None
    outcome = service.complete_booking(booking_id, final_amount, actor_ref)
    dispatcher.dispatch(outcome.events)
    return outcome
