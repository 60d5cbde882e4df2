"""Sources of automatic sync requests.

A trigger source is attached to a ``fire(trigger)`` callback and calls it
whenever it wants a sync attempt.  Sources only request; the orchestrator
decides whether the attempt actually runs.

    PeriodicTimer        fires ``periodic`` every interval
    HostLifecycleSource  fires ``focus`` / ``visibility`` after a short delay
                         when the host reports those events

A server-side deployment attaches only the periodic timer and calls
``sync_now`` for manual runs.  All scheduling uses ``loop.call_later``, so
sources must be attached from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Protocol

logger = logging.getLogger("florence.backoffice.triggers")


class Trigger(str, Enum):
    STARTUP = "startup"
    PERIODIC = "periodic"
    FOCUS = "focus"
    VISIBILITY = "visibility"
    MANUAL = "manual"


FireCallback = Callable[[Trigger], None]


class TriggerSource(Protocol):
    def attach(self, fire: FireCallback) -> None: ...

    def detach(self) -> None: ...


class PeriodicTimer:
    """Fires ``Trigger.PERIODIC`` every ``interval`` seconds until detached."""

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._fire: FireCallback | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def attach(self, fire: FireCallback) -> None:
        self.detach()
        self._fire = fire
        self._schedule()
        logger.debug("Periodic trigger every %.0fs", self.interval)

    def detach(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._fire = None

    def set_interval(self, interval: float) -> None:
        """Change the period; a running timer restarts with the new value."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        if self._fire is not None:
            self.attach(self._fire)

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        fire = self._fire
        if fire is None:
            return
        self._schedule()
        fire(Trigger.PERIODIC)


class HostLifecycleSource:
    """Bridges host focus and visibility events into delayed triggers.

    ``notify_focus`` and ``notify_visibility`` are called by the host (desktop
    shell, UI bridge).  While detached they are ignored.
    """

    def __init__(self, delay: float = 1.0) -> None:
        self.delay = delay
        self._fire: FireCallback | None = None
        self._pending: set[asyncio.TimerHandle] = set()

    @property
    def attached(self) -> bool:
        return self._fire is not None

    def attach(self, fire: FireCallback) -> None:
        self.detach()
        self._fire = fire

    def detach(self) -> None:
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()
        self._fire = None

    def notify_focus(self) -> None:
        self._schedule(Trigger.FOCUS)

    def notify_visibility(self, visible: bool) -> None:
        if visible:
            self._schedule(Trigger.VISIBILITY)

    def _schedule(self, trigger: Trigger) -> None:
        if self._fire is None:
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def run() -> None:
            self._pending.discard(handle)
            if self._fire is not None:
                self._fire(trigger)

        handle = loop.call_later(self.delay, run)
        self._pending.add(handle)
