"""Services for the Casaora booking lifecycle engine."""

from .booking_store import BookingStore
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .identity import IdentityResolver, ProfileRoleResolver, check_booking_access
from .lifecycle_service import BookingLifecycleService
from .notifications import (
    EventBridgeNotificationEmitter,
    NotificationDispatcher,
    NotificationEmitter,
)
from .payment_hold_manager import PaymentHoldManager, idempotency_key
from .payment_processor import PaymentProcessor, StripePaymentProcessor, get_stripe_processor
from .policy_calculator import PolicyCalculator
from .recurrence_generator import RecurrenceGenerator
from .ssm_service import SSMService, SSMServiceError, get_ssm_service

__all__ = [
    "BookingLifecycleService",
    "BookingStore",
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "IdentityResolver",
    "ProfileRoleResolver",
    "check_booking_access",
    "EventBridgeNotificationEmitter",
    "NotificationDispatcher",
    "NotificationEmitter",
    "PaymentHoldManager",
    "idempotency_key",
    "PaymentProcessor",
    "StripePaymentProcessor",
    "get_stripe_processor",
    "PolicyCalculator",
    "RecurrenceGenerator",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
]
