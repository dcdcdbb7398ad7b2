"""
Event Broadcaster
=================

Output sink that fans engine events out to every subscriber.

Each subscriber gets its own BoundedBuffer, so one slow subscriber only
loses its own oldest events and never stalls the engine or the others.
Delivery is at-least-once per subscriber while subscribed; there is no
ordering guarantee across zones.

Example:
    broadcaster = EventBroadcaster(queue_size=256)
    subscription = broadcaster.subscribe()

    broadcaster.publish(OutputEvent(event="density_update", data=sample))

    event = await subscription.get(timeout=1.0)
    broadcaster.unsubscribe(subscription)
"""

import logging
from typing import List

from crowd_whisper.models.output import OutputEvent
from crowd_whisper.stream.buffer import BoundedBuffer


logger = logging.getLogger(__name__)


class EventBroadcaster:
    """Fan-out of OutputEvents to subscriber buffers."""

    def __init__(self, queue_size: int = 256) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        self.queue_size = queue_size
        self._subscribers: List[BoundedBuffer[OutputEvent]] = []
        self._published: int = 0

    def subscribe(self) -> BoundedBuffer[OutputEvent]:
        """Register a new subscriber and return its buffer."""
        subscription: BoundedBuffer[OutputEvent] = BoundedBuffer(
            maxsize=self.queue_size,
            name="subscriber",
        )
        self._subscribers.append(subscription)
        logger.info(f"Subscriber added (total={len(self._subscribers)})")
        return subscription

    def unsubscribe(self, subscription: BoundedBuffer[OutputEvent]) -> None:
        """Remove a subscriber. Unknown subscriptions are ignored."""
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.info(f"Subscriber removed (total={len(self._subscribers)})")

    def publish(self, event: OutputEvent) -> int:
        """
        Deliver an event to every subscriber.

        Returns:
            Number of subscribers the event was delivered to
        """
        self._published += 1
        for subscription in self._subscribers:
            subscription.put_nowait(event)
        return len(self._subscribers)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def metrics(self) -> dict:
        return {
            "subscribers": len(self._subscribers),
            "published": self._published,
            "dropped": sum(s.dropped_count for s in self._subscribers),
        }
