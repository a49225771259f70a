"""
EventPublisher -- in-process fan-out of committed lot change events.

Responsibility:
    Delivers ``LotChangeEvent`` DTOs to registered subscribers (the
    notification layer, reporting caches) after the transaction that
    produced them has committed.

Architecture position:
    Kernel > Services.  Holds no session; the durable copy of every event
    is the LotEvent outbox row written by the LifecycleEngine.

Invariants enforced:
    - Events are delivered in the order they were recorded.
    - A failing subscriber never affects the committed transition or the
      other subscribers; the failure is logged at ERROR with traceback.
"""

import threading
from typing import Callable, Iterable

from yard_kernel.domain.dtos import LotChangeEvent
from yard_kernel.logging_config import get_logger

logger = get_logger("services.event_publisher")

Subscriber = Callable[[LotChangeEvent], None]


class EventPublisher:
    """Subscriber registry and synchronous dispatcher."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: LotChangeEvent) -> int:
        """
        Deliver one event to every subscriber.

        Returns:
            Number of subscribers that handled the event without raising.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.error(
                    "event_subscriber_failed",
                    exc_info=True,
                    extra={
                        "event_id": str(event.event_id),
                        "lot_id": str(event.lot_id),
                        "action": event.action,
                        "subscriber": getattr(subscriber, "__qualname__", repr(subscriber)),
                    },
                )
            else:
                delivered += 1

        logger.debug(
            "event_published",
            extra={
                "event_id": str(event.event_id),
                "action": event.action,
                "delivered": delivered,
                "subscribers": len(subscribers),
            },
        )
        return delivered

    def publish_all(self, events: Iterable[LotChangeEvent]) -> None:
        for event in events:
            self.publish(event)
