"""Notification delivery for lifecycle events.

Lifecycle operations return ``NotificationEvent`` lists instead of sending
anything. Delivery is best-effort: a failure is logged and dropped, and
never undoes a booking state change that already committed.
"""

import json
from typing import Optional, Protocol

import boto3

from ..models.results import NotificationEvent
from ..utils.logging import get_correlation_id, get_logger

logger = get_logger(__name__)

# EventBridge accepts at most 10 entries per PutEvents call
PUT_EVENTS_BATCH_SIZE = 10


class NotificationEmitter(Protocol):
    def emit(self, events: list[NotificationEvent]) -> None: ...


class EventBridgeNotificationEmitter:
    """Publishes notification events to an EventBridge bus.

    Each event becomes one entry with ``DetailType`` set to the event type
    (e.g., ``booking.canceled``) so downstream rules can route by type.
    """

    def __init__(
        self,
        bus_name: str = "default",
        source: str = "casaora.bookings",
        client: Optional[object] = None,
    ) -> None:
        self.bus_name = bus_name
        self.source = source
        self._client = client or boto3.client("events")

    def _entry(self, event: NotificationEvent) -> dict:
        detail = {
            "booking_id": event.booking_id,
            "recipient_ref": event.recipient_ref,
            "payload": event.payload,
            "correlation_id": get_correlation_id(),
        }
        return {
            "Source": self.source,
            "DetailType": event.event_type.value,
            "Detail": json.dumps(detail, default=str),
            "EventBusName": self.bus_name,
        }

    def emit(self, events: list[NotificationEvent]) -> None:
        """Publish events in batches.

        Raises:
            RuntimeError: If EventBridge rejected any entry
        """
        for start in range(0, len(events), PUT_EVENTS_BATCH_SIZE):
            batch = events[start : start + PUT_EVENTS_BATCH_SIZE]
            response = self._client.put_events(Entries=[self._entry(e) for e in batch])  # type: ignore[attr-defined]
            failed = response.get("FailedEntryCount", 0)
            if failed:
                raise RuntimeError(f"EventBridge rejected {failed} of {len(batch)} notification events")


class NotificationDispatcher:
    """Best-effort delivery of lifecycle events."""

    def __init__(self, emitter: NotificationEmitter) -> None:
        self.emitter = emitter

    def dispatch(self, events: list[NotificationEvent]) -> int:
        """Deliver events, logging and dropping failures.

        Returns:
            Number of events handed to the emitter successfully
        """
        if not events:
            return 0
        try:
            self.emitter.emit(events)
        except Exception as e:
            logger.error(
                "Notification delivery failed for %d event(s) (%s): %s",
                len(events),
                ", ".join(sorted({ev.event_type.value for ev in events})),
                e,
            )
            return 0
        logger.info("Dispatched %d notification event(s)", len(events))
        return len(events)
