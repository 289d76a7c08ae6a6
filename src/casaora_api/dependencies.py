"""FastAPI dependency injection providers for the lifecycle services.

Factory functions are wrapped in @lru_cache so each service is built once
per process and shares the DynamoDB singleton.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── BookingStore
        │       └── PaymentHoldManager (+ StripePaymentProcessor)
        ├── ProfileRoleResolver
        └── BookingLifecycleService (store, holds, calculator, identity)
    NotificationDispatcher (EventBridgeNotificationEmitter)

Testing:
    Use reset_services() to clear cached instances between tests, or
    override providers with app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Request
from fastapi.exceptions import HTTPException
from starlette.status import HTTP_401_UNAUTHORIZED

from casaora_bookings.config import PolicyConfig, get_settings
from casaora_bookings.services.booking_store import BookingStore
from casaora_bookings.services.dynamodb import get_dynamodb_service, reset_dynamodb_service
from casaora_bookings.services.identity import ProfileRoleResolver
from casaora_bookings.services.lifecycle_service import BookingLifecycleService
from casaora_bookings.services.notifications import (
    EventBridgeNotificationEmitter,
    NotificationDispatcher,
)
from casaora_bookings.services.payment_hold_manager import PaymentHoldManager
from casaora_bookings.services.payment_processor import get_stripe_processor
from casaora_bookings.services.policy_calculator import PolicyCalculator

USER_SUB_HEADER = "x-user-sub"


@lru_cache
def get_booking_store() -> BookingStore:
    return BookingStore(db=get_dynamodb_service())


@lru_cache
def get_hold_manager() -> PaymentHoldManager:
    """Get cached PaymentHoldManager backed by Stripe."""
    return PaymentHoldManager(get_stripe_processor(), get_booking_store())


@lru_cache
def get_lifecycle_service() -> BookingLifecycleService:
    """Get cached BookingLifecycleService instance.

    Returns:
        BookingLifecycleService wired with the store, hold manager, default
        policy and the profile-table role resolver.
    """
    return BookingLifecycleService(
        store=get_booking_store(),
        holds=get_hold_manager(),
        calculator=PolicyCalculator(PolicyConfig()),
        identity=ProfileRoleResolver(get_dynamodb_service()),
    )


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    settings = get_settings()
    return NotificationDispatcher(
        EventBridgeNotificationEmitter(
            bus_name=settings.notification_bus_name,
            source=settings.notification_source,
        )
    )


def get_actor_ref(request: Request) -> str:
    """Actor reference from the API Gateway-injected ``x-user-sub`` header.

    API Gateway validates the JWT before the request reaches us, so the
    header is trusted.

    Raises:
        HTTPException: 401 if the header is missing
    """
    actor_ref = request.headers.get(USER_SUB_HEADER)
    if not actor_ref or not actor_ref.strip():
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return actor_ref.strip()


def reset_services() -> None:
    """Clear all cached service instances and the DynamoDB singleton."""
    get_booking_store.cache_clear()
    get_hold_manager.cache_clear()
    get_lifecycle_service.cache_clear()
    get_notification_dispatcher.cache_clear()
    get_stripe_processor.cache_clear()
    get_settings.cache_clear()
    reset_dynamodb_service()
