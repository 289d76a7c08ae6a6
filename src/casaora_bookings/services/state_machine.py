"""Booking state machine.

The transition table is the single source of truth for which lifecycle
events are legal from which statuses. The booking store consults it before
every persisted status change.
"""

from types import MappingProxyType
from typing import Mapping

from ..models.enums import BookingEvent, BookingStatus
from ..models.errors import InvalidTransition

TRANSITIONS: Mapping[tuple[BookingStatus, BookingEvent], BookingStatus] = MappingProxyType(
    {
        (BookingStatus.PENDING_PAYMENT, BookingEvent.HOLD_AUTHORIZED): BookingStatus.AUTHORIZED,
        (BookingStatus.AUTHORIZED, BookingEvent.ACCEPT): BookingStatus.CONFIRMED,
        (BookingStatus.AUTHORIZED, BookingEvent.CANCEL): BookingStatus.CANCELED,
        (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELED,
        (BookingStatus.AUTHORIZED, BookingEvent.RESCHEDULE): BookingStatus.AUTHORIZED,
        (BookingStatus.CONFIRMED, BookingEvent.RESCHEDULE): BookingStatus.AUTHORIZED,
        (BookingStatus.CONFIRMED, BookingEvent.CHECK_IN): BookingStatus.IN_PROGRESS,
        (BookingStatus.IN_PROGRESS, BookingEvent.CHECK_OUT): BookingStatus.COMPLETED,
        (BookingStatus.PENDING_PAYMENT, BookingEvent.DECLINE): BookingStatus.DECLINED,
        (BookingStatus.AUTHORIZED, BookingEvent.DECLINE): BookingStatus.DECLINED,
    }
)

TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELED, BookingStatus.DECLINED}
)


def next_status(current: BookingStatus, event: BookingEvent) -> BookingStatus:
    """Status a booking moves to when ``event`` happens in ``current``.

    ``hold_failed`` has no target: the pending row is deleted instead.

    Raises:
        InvalidTransition: If the pair is not in the transition table
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(current.value, event.value) from None


def event_for(current: BookingStatus, target: BookingStatus) -> BookingEvent:
    """The event that moves ``current`` to ``target``.

    Raises:
        InvalidTransition: If no event connects the two statuses
    """
    for (source, event), destination in TRANSITIONS.items():
        if source == current and destination == target:
            return event
    raise InvalidTransition(current.value, f"move to {target.value}")


def allowed_events(current: BookingStatus) -> list[BookingEvent]:
    return [event for (source, event) in TRANSITIONS if source == current]


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES
