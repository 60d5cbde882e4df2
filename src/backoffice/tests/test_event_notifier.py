"""Tests for EventNotifier fan-out and subscriber isolation."""

from __future__ import annotations

import logging

from src.backoffice.events import EventNotifier, SyncEvent, SyncEventType


def _event(**payload) -> SyncEvent:
    return SyncEvent(SyncEventType.STARTED, payload)


class TestEventNotifier:
    def test_publish_reaches_every_subscriber(self) -> None:
        notifier = EventNotifier()
        first, second = [], []
        notifier.subscribe(first.append)
        notifier.subscribe(second.append)
        event = _event(trigger="manual")
        notifier.publish(event)
        assert first == [event]
        assert second == [event]

    def test_unsubscribe(self) -> None:
        notifier = EventNotifier()
        seen: list[SyncEvent] = []
        unsubscribe = notifier.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        notifier.publish(_event())
        assert seen == []
        assert notifier.subscriber_count == 0

    def test_failing_subscriber_is_isolated(self, caplog) -> None:
        notifier = EventNotifier()
        seen: list[SyncEvent] = []

        def broken(event: SyncEvent) -> None:
            raise RuntimeError("toast failed")

        notifier.subscribe(broken)
        notifier.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="florence.backoffice.events"):
            notifier.publish(_event())
        assert len(seen) == 1
        assert "sync_started" in caplog.text

    def test_subscriber_may_unsubscribe_during_publish(self) -> None:
        notifier = EventNotifier()
        seen: list[str] = []
        handles = {}

        def once(event: SyncEvent) -> None:
            seen.append("once")
            handles["once"]()

        handles["once"] = notifier.subscribe(once)
        notifier.subscribe(lambda event: seen.append("always"))
        notifier.publish(_event())
        notifier.publish(_event())
        assert seen == ["once", "always", "always"]

    def test_event_payload_access(self) -> None:
        event = SyncEvent(SyncEventType.SKIPPED, {"reason": "not due"})
        assert event.get("reason") == "not due"
        assert event.get("error") is None
        assert event.type.value == "sync_skipped"
