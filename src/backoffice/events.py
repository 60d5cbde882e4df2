"""Publish/subscribe hub for sync lifecycle events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger("florence.backoffice.events")


class SyncEventType(str, Enum):
    STARTED = "sync_started"
    COMPLETED = "sync_completed"
    FAILED = "sync_failed"
    SKIPPED = "sync_skipped"
    NEW_BOOKINGS = "new_bookings"


@dataclass(frozen=True)
class SyncEvent:
    """One lifecycle event.

    ``payload`` holds the event-specific fields: ``trigger`` on every event,
    ``reason`` on skips, ``error`` on failures, ``synced_count`` and
    ``total_count`` on completion and new-booking notices.
    """

    type: SyncEventType
    payload: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)


Subscriber = Callable[[SyncEvent], Any]


class EventNotifier:
    """Synchronous fan-out to subscribers.

    A subscriber that raises is logged and skipped; the remaining subscribers
    still run and the publisher never sees the exception.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: SyncEvent) -> None:
        # Snapshot so a callback may unsubscribe itself mid-publish
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Sync event subscriber failed on %s", event.type.value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
