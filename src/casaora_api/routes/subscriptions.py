"""Recurring subscription endpoints.

Customers start, pause, resume and cancel subscriptions. Occurrences after
the first are generated when the previous one completes; the generate
endpoint lets a scheduler retry generation for a completed booking.
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from casaora_api.dependencies import (
    get_actor_ref,
    get_lifecycle_service,
    get_notification_dispatcher,
)
from casaora_api.models.subscriptions import CreateSubscriptionRequest, SubscriptionStatusRequest
from casaora_bookings.models.results import GenerationResult, SubscriptionResult
from casaora_bookings.models.subscription import RecurringSubscription
from casaora_bookings.services.identity import check_party_access
from casaora_bookings.services.lifecycle_service import BookingLifecycleService
from casaora_bookings.services.notifications import NotificationDispatcher

router = APIRouter(tags=["subscriptions"])


@router.post(
    "/subscriptions",
    summary="Create subscription",
    description="""
Start a recurring subscription for the authenticated customer.

Weekly plans get 15% off, biweekly 12% and monthly 10%. The first occurrence
is booked and authorized immediately.
""",
    response_model=SubscriptionResult,
    status_code=HTTP_201_CREATED,
    responses={
        402: {"description": "Card declined for the first occurrence"},
        422: {"description": "Unknown timezone or first date in the past"},
    },
)
async def create_subscription(
    body: CreateSubscriptionRequest,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SubscriptionResult:
    result = service.create_subscription(body.to_draft(actor_ref))
    dispatcher.dispatch(result.events)
    return result


@router.get(
    "/subscriptions/{subscription_id}",
    summary="Get subscription",
    response_model=RecurringSubscription,
    responses={404: {"description": "Subscription not found"}},
)
async def get_subscription(
    subscription_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> RecurringSubscription:
    subscription = service.store.get_subscription(subscription_id)
    if service.identity is not None:
        check_party_access(
            service.identity,
            actor_ref,
            subscription.customer_ref,
            subscription.professional_ref,
        )
    return subscription


@router.post(
    "/subscriptions/{subscription_id}/status",
    summary="Pause, resume or cancel subscription",
    response_model=SubscriptionResult,
    responses={
        403: {"description": "Only the subscribing customer may change the status"},
        409: {"description": "Status change not allowed from the current status"},
    },
)
async def set_subscription_status(
    subscription_id: str,
    body: SubscriptionStatusRequest,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
) -> SubscriptionResult:
    return service.set_subscription_status(subscription_id, body.status, actor_ref)


@router.post(
    "/recurrence/{completed_booking_id}/generate",
    summary="Generate next occurrence",
    description="""
Generate the next booking of the subscription a completed booking belongs to.

At most one booking is ever generated per completed booking; repeating the
call returns `replayed` with the booking generated the first time.
""",
    response_model=GenerationResult,
    responses={
        404: {"description": "Booking or subscription not found"},
        409: {"description": "Booking is not completed"},
    },
)
async def generate_next_occurrence(
    completed_booking_id: str,
    actor_ref: str = Depends(get_actor_ref),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> GenerationResult:
    service.get_booking(completed_booking_id, actor_ref)
    result = service.generate_next(completed_booking_id)
    dispatcher.dispatch(result.events)
    return result
