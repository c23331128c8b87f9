"""Real-time Hub - Imperative Shell.

In-process registry of currently connected real-time subscribers (for
example WebSocket connections). Broadcasts are fire-and-forget and
at-most-once per subscriber; late joiners get a connection-established
message, never a replay of missed events.
"""

import logging
import threading
import uuid
from typing import Any, Callable


logger = logging.getLogger(__name__)


CONNECTION_ESTABLISHED = {"type": "connection_established"}

Subscriber = Callable[[dict[str, Any]], None]


class RealtimeHub:
    """Fan-out of messages to connected subscribers.

    This is part of the imperative shell - subscribers do the actual I/O.
    A subscriber that raises is logged and disconnected.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, Subscriber] = {}

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> str:
        """Register a subscriber and greet it.

        Args:
            subscriber: Callable invoked with each message dict

        Returns:
            Subscription ID for unsubscribe()
        """
        subscription_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers[subscription_id] = subscriber

        logger.info("Real-time subscriber %s connected", subscription_id)
        self._deliver(subscription_id, subscriber, dict(CONNECTION_ESTABLISHED))
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscriber. Returns False if it was not registered."""
        with self._lock:
            removed = self._subscribers.pop(subscription_id, None)

        if removed is not None:
            logger.info("Real-time subscriber %s disconnected", subscription_id)
        return removed is not None

    def broadcast(self, message: dict[str, Any]) -> int:
        """Send a message to every subscriber connected right now.

        Args:
            message: JSON-serializable message

        Returns:
            Number of subscribers that accepted the message
        """
        with self._lock:
            subscribers = list(self._subscribers.items())

        delivered = 0
        for subscription_id, subscriber in subscribers:
            if self._deliver(subscription_id, subscriber, message):
                delivered += 1

        logger.debug(
            "Broadcast %s to %d/%d subscribers",
            message.get("type"),
            delivered,
            len(subscribers),
        )
        return delivered

    def _deliver(
        self,
        subscription_id: str,
        subscriber: Subscriber,
        message: dict[str, Any],
    ) -> bool:
        try:
            subscriber(message)
            return True
        except Exception as e:
            logger.warning(
                "Dropping real-time subscriber %s after send failure: %s",
                subscription_id,
                e,
            )
            self.unsubscribe(subscription_id)
            return False
