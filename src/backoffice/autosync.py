"""Automatic Bokun sync orchestration for the back-office client.

State machine::

    IDLE ──perform_sync──▶ IN_PROGRESS ──(completed | failed | skipped)──▶ IDLE

At most one sync runs at a time across every trigger.  A trigger that
arrives mid-sync is skipped with reason "already in progress"; it is never
queued and never cancels the running attempt.

Automatic triggers (startup, periodic, focus, visibility) only run when the
last successful sync is older than ``interval_minutes``; ``manual`` always
runs.  Only an admin session starts the service.

Usage::

    service = AutoSyncService(remote, storage, notifier)
    service.initialize("admin")          # inside the running event loop
    record = await service.sync_now()
    service.stop()
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from src.backoffice.cache import utc_now
from src.backoffice.config_loader import SyncConfig, SyncDefaults, get_sync_defaults
from src.backoffice.events import EventNotifier, SyncEvent, SyncEventType
from src.backoffice.remote import RemoteClient
from src.backoffice.storage import LAST_SYNC_KEY, KeyValueStorage, auth_token
from src.backoffice.triggers import (
    HostLifecycleSource,
    PeriodicTimer,
    Trigger,
    TriggerSource,
)

logger = logging.getLogger("florence.backoffice.autosync")

SYNC_PATH = "/api/bokun_sync"
ADMIN_ROLE = "admin"

SKIP_IN_PROGRESS = "already in progress"
SKIP_NOT_DUE = "not due"
SKIP_NOT_AUTHENTICATED = "not authenticated"
SKIP_DISABLED = "disabled"


class SyncState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"


class SyncResult(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SyncRecord:
    """Outcome of one sync attempt.  Only ``last_sync_time`` is persisted."""

    last_sync_time: datetime | None
    trigger: Trigger
    result: SyncResult
    reason: str | None = None
    error: str | None = None
    synced_count: int = 0
    total_count: int = 0


@dataclass(frozen=True)
class SyncStatus:
    enabled: bool
    last_sync_time: datetime | None
    sync_in_progress: bool
    interval_minutes: float


class SyncFailed(Exception):
    """The sync endpoint answered without ``success: true``."""


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed %s value %r", LAST_SYNC_KEY, value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def _count(payload: dict[str, Any], key: str) -> int:
    try:
        return int(payload.get(key) or 0)
    except (TypeError, ValueError):
        return 0


class AutoSyncService:
    """Decides when to sync bookings, runs the sync, and reports progress.

    Owned by ``BackOfficeContext``; nothing here is module-level state.
    """

    def __init__(
        self,
        remote: RemoteClient,
        storage: KeyValueStorage,
        notifier: EventNotifier,
        config: SyncConfig | None = None,
        defaults: SyncDefaults | None = None,
        lifecycle: HostLifecycleSource | None = None,
        sources: Iterable[TriggerSource] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service in the IDLE state.

        Args:
            remote:    Client for the bokun_sync endpoint.
            storage:   Session storage (auth token, last sync time).
            notifier:  Receives every lifecycle event.
            config:    Initial runtime config.  Defaults to autosync.yaml.
            defaults:  Delays and other loaded defaults.
            lifecycle: Focus/visibility source driven by the host.
            sources:   Extra trigger sources attached on start().
            clock:     Returns the current aware UTC datetime.
        """
        self._defaults = defaults or get_sync_defaults()
        self._remote = remote
        self._storage = storage
        self._notifier = notifier
        self.config = dataclasses.replace(config or self._defaults.sync)
        self._clock = clock

        self._lock = asyncio.Lock()
        self._timer = PeriodicTimer(self.config.interval.total_seconds())
        self.lifecycle = lifecycle or HostLifecycleSource(self._defaults.focus_delay)
        self._extra_sources = list(sources)
        self._startup_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._active = False

        self.last_sync_time = _parse_timestamp(storage.get(LAST_SYNC_KEY))
        self.last_record: SyncRecord | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return SyncState.IN_PROGRESS if self._lock.locked() else SyncState.IDLE

    @property
    def active(self) -> bool:
        return self._active

    @property
    def timer_running(self) -> bool:
        return self._timer.running

    def status(self) -> SyncStatus:
        return SyncStatus(
            enabled=self.config.enabled,
            last_sync_time=self.last_sync_time,
            sync_in_progress=self.state is SyncState.IN_PROGRESS,
            interval_minutes=self.config.interval_minutes,
        )

    def should_sync(self, trigger: Trigger) -> bool:
        if trigger is Trigger.MANUAL:
            return True
        if self.last_sync_time is None:
            return True
        return self._clock() - self.last_sync_time >= self.config.interval

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def perform_sync(self, trigger: Trigger) -> SyncRecord:
        """Run one sync attempt.  Never raises for sync failures."""
        if self._lock.locked():
            return self._skip(trigger, SKIP_IN_PROGRESS)
        if not self.should_sync(trigger):
            return self._skip(trigger, SKIP_NOT_DUE)
        if not auth_token(self._storage):
            return self._skip(trigger, SKIP_NOT_AUTHENTICATED)

        # No await between locked() above and this acquire
        async with self._lock:
            self._publish(SyncEventType.STARTED, trigger=trigger.value)
            logger.info("Auto-sync started (%s)", trigger.value)
            try:
                config = await self._remote.get(SYNC_PATH, params={"action": "config"})
                if not (isinstance(config, dict) and config.get("sync_enabled")):
                    return self._skip(trigger, SKIP_DISABLED)

                result = await self._remote.get(
                    SYNC_PATH,
                    params={
                        "action": "sync",
                        "type": "manual" if trigger is Trigger.MANUAL else "auto",
                        "triggered_by": trigger.value,
                    },
                )
                if not (isinstance(result, dict) and result.get("success")):
                    error = result.get("error") if isinstance(result, dict) else None
                    raise SyncFailed(error or "Sync failed")
            except Exception as exc:
                return self._fail(trigger, exc)

            return self._complete(trigger, result)

    async def sync_now(self) -> SyncRecord:
        return await self.perform_sync(Trigger.MANUAL)

    def _skip(self, trigger: Trigger, reason: str) -> SyncRecord:
        logger.info("Auto-sync skipped (%s): %s", trigger.value, reason)
        self._publish(SyncEventType.SKIPPED, trigger=trigger.value, reason=reason)
        return self._record(trigger, SyncResult.SKIPPED, reason=reason)

    def _fail(self, trigger: Trigger, exc: Exception) -> SyncRecord:
        logger.warning("Auto-sync failed (%s): %s", trigger.value, exc)
        self._publish(SyncEventType.FAILED, trigger=trigger.value, error=str(exc))
        return self._record(trigger, SyncResult.FAILED, error=str(exc))

    def _complete(self, trigger: Trigger, result: dict[str, Any]) -> SyncRecord:
        now = self._clock()
        self.last_sync_time = now
        try:
            self._storage.set(LAST_SYNC_KEY, _format_timestamp(now))
        except OSError as exc:
            logger.warning("Could not persist last sync time: %s", exc)

        synced = _count(result, "synced_count")
        total = _count(result, "total_bookings")
        logger.info("Auto-sync completed (%s): %d of %d bookings", trigger.value, synced, total)
        self._publish(
            SyncEventType.COMPLETED,
            trigger=trigger.value, synced_count=synced, total_count=total,
        )
        if synced > 0 and trigger is not Trigger.MANUAL:
            self._publish(
                SyncEventType.NEW_BOOKINGS,
                trigger=trigger.value, synced_count=synced, total_count=total,
            )
        return self._record(
            trigger, SyncResult.COMPLETED, synced_count=synced, total_count=total
        )

    def _record(self, trigger: Trigger, result: SyncResult, **extra: Any) -> SyncRecord:
        record = SyncRecord(
            last_sync_time=self.last_sync_time, trigger=trigger, result=result, **extra
        )
        self.last_record = record
        return record

    def _publish(self, event_type: SyncEventType, **payload: Any) -> None:
        self._notifier.publish(SyncEvent(event_type, payload))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, user_role: str | None) -> bool:
        """Start for admins, stop for everyone else.  Returns True when started."""
        if user_role == ADMIN_ROLE:
            self.start()
            return True
        logger.info("Auto-sync not started for role %r", user_role)
        self.stop()
        return False

    def start(self) -> None:
        """Attach trigger sources and schedule the startup sync.  Idempotent."""
        if self._active:
            return
        self._active = True
        loop = asyncio.get_running_loop()

        if self.config.enabled:
            self._timer.attach(self._fire)
        self.lifecycle.attach(self._fire)
        for source in self._extra_sources:
            source.attach(self._fire)

        if self.config.on_startup_sync and self.should_sync(Trigger.STARTUP):
            self._startup_handle = loop.call_later(
                self._defaults.startup_delay, self._fire, Trigger.STARTUP
            )
        logger.info(
            "Auto-sync started: every %s min, periodic %s",
            self.config.interval_minutes, "on" if self.config.enabled else "off",
        )

    def stop(self) -> None:
        """Detach every trigger source.  An in-flight sync runs to completion."""
        if self._startup_handle is not None:
            self._startup_handle.cancel()
            self._startup_handle = None
        self._timer.detach()
        self.lifecycle.detach()
        for source in self._extra_sources:
            source.detach()
        if self._active:
            logger.info("Auto-sync stopped")
        self._active = False

    def update_config(self, **changes: Any) -> SyncConfig:
        """Apply config changes; the periodic timer follows ``enabled`` at once.

        Raises:
            TypeError: For an unknown config field.
            ValueError: For a non-positive interval.
        """
        new = dataclasses.replace(self.config, **changes)
        if new.interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        interval_changed = new.interval_minutes != self.config.interval_minutes
        self.config = new

        if interval_changed:
            self._timer.set_interval(new.interval.total_seconds())
        if self._active and new.enabled and not self._timer.running:
            self._timer.attach(self._fire)
        elif not new.enabled and self._timer.running:
            self._timer.detach()
        logger.info("Auto-sync config updated: %s", changes)
        return new

    def on_app_focus(self) -> None:
        self.lifecycle.notify_focus()

    def on_visibility_change(self, visible: bool) -> None:
        self.lifecycle.notify_visibility(visible)

    # ------------------------------------------------------------------
    # Trigger dispatch
    # ------------------------------------------------------------------

    def _fire(self, trigger: Trigger) -> None:
        if trigger is Trigger.STARTUP:
            self._startup_handle = None
        if trigger in (Trigger.FOCUS, Trigger.VISIBILITY) and not self.config.on_focus_sync:
            return
        if not self.should_sync(trigger):
            logger.debug("Auto-sync %s trigger ignored: not due", trigger.value)
            return
        self._spawn(self.perform_sync(trigger))

    def _spawn(self, coro: Awaitable[SyncRecord]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every trigger-spawned sync has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
