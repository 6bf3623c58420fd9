"""
In-process change bus for storage events.

Browsers tell every *other* tab when a storage key changes. This module gives
the in-memory storage backend the same capability: each storage view (one per
simulated tab) publishes its writes here, and every other view hears about
them.

Design decisions:
- Synchronous delivery, handlers called in subscription order
- A handler that raises is logged and doesn't stop the others
- The bus knows nothing about keys or JSON; it only routes StorageEvents
- Filtering out a tab's own writes is the subscriber's job (see origin)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from session.models import utcnow

logger = logging.getLogger("change_bus")


@dataclass(frozen=True)
class StorageEvent:
    """
    A single key change.

    Attributes:
        key: The key that changed
        old_value: Raw value before the change (None if it didn't exist)
        new_value: Raw value after the change (None if it was removed)
        origin: Identifier of the storage view that made the change
    """
    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    origin: str
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def removed(self) -> bool:
        return self.new_value is None


# Type alias for storage event handlers
StorageListener = Callable[[StorageEvent], None]


class ChangeBus:
    """
    Pub/sub for storage events shared by several storage views.

    Example usage:
        bus = ChangeBus()
        bus.subscribe(lambda event: print(event.key))
        bus.publish(StorageEvent("cart:u1", None, "[]", origin="tab-1"))
    """

    def __init__(self):
        self._subscribers: list[StorageListener] = []

    def subscribe(self, listener: StorageListener) -> None:
        """Register a listener for every storage event."""
        self._subscribers.append(listener)
        logger.debug("Subscribed storage listener")

    def unsubscribe(self, listener: StorageListener) -> bool:
        """
        Remove a listener.

        Returns:
            True if the listener was found and removed, False otherwise
        """
        try:
            self._subscribers.remove(listener)
            return True
        except ValueError:
            return False

    def publish(self, event: StorageEvent) -> int:
        """
        Deliver an event to all listeners.

        Returns:
            Number of listeners that were called
        """
        logger.debug(f"Publishing change of '{event.key}' from {event.origin}")
        handlers_called = 0
        for listener in list(self._subscribers):
            handlers_called += 1
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Storage listener raised for key '{event.key}': {e}")
        return handlers_called

    def get_subscriber_count(self) -> int:
        return len(self._subscribers)

    def clear_subscribers(self) -> None:
        """Remove all listeners (useful for testing)."""
        self._subscribers.clear()
