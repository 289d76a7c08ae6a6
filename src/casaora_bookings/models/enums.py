"""Enumeration types for Casaora booking data models."""

from enum import Enum


class BookingStatus(str, Enum):
    """Status of a service booking."""

    PENDING_PAYMENT = "pending_payment"
    AUTHORIZED = "authorized"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    DECLINED = "declined"


class BookingEvent(str, Enum):
    """Events that drive a booking through its lifecycle."""

    HOLD_AUTHORIZED = "hold_authorized"
    HOLD_FAILED = "hold_failed"
    ACCEPT = "accept"  # professional acceptance (external)
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    CHECK_IN = "check_in"  # external
    CHECK_OUT = "check_out"
    DECLINE = "decline"


class HoldStatus(str, Enum):
    """Status of a payment hold at the processor."""

    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_CAPTURE = "requires_capture"
    CAPTURED = "captured"
    VOIDED = "voided"


class HoldAction(str, Enum):
    """What happened to the held funds when a booking was released."""

    VOIDED = "voided"
    REFUNDED = "refunded"
    NONE = "none"


class Frequency(str, Enum):
    """Recurrence frequency of a subscription."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class SubscriptionStatus(str, Enum):
    """Status of a recurring subscription."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"  # ended by the user
    COMPLETED = "completed"  # ended naturally by its termination condition


class TerminationMode(str, Enum):
    """How a recurring subscription ends."""

    OCCURRENCES = "occurrences"
    DATE = "date"
    NEVER = "never"


class ActorRole(str, Enum):
    """Role of an actor acting on a booking."""

    CUSTOMER = "customer"
    PROFESSIONAL = "professional"
    ADMIN = "admin"


class NotificationEventType(str, Enum):
    """Notification events emitted by the lifecycle service."""

    NEW_BOOKING = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELED = "booking.canceled"
    BOOKING_RESCHEDULED = "booking.rescheduled"
    BOOKING_DECLINED = "booking.declined"
    BOOKING_COMPLETED = "booking.completed"
    RECURRING_BOOKING_CREATED = "booking.recurring_created"
    SUBSCRIPTION_COMPLETED = "subscription.completed"
