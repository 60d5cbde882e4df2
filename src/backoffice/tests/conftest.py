"""Shared fixtures for the back-office client tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from src.backoffice.cache import CacheStore
from src.backoffice.config_loader import SyncConfig, SyncDefaults
from src.backoffice.events import EventNotifier, SyncEvent
from src.backoffice.remote import RemoteClient
from src.backoffice.storage import MemoryStorage

BASE_URL = "http://office.test"
TEST_TOKEN = "header.payload.signature"
NOW = datetime(2026, 6, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable stand-in for ``utc_now``."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


# ---------------------------------------------------------------------------
# HTTP backend double
# ---------------------------------------------------------------------------


class FakeBackend:
    """MockTransport handler with canned responses per route.

    Routes are keyed by method, path and (optionally) the ``action`` query
    parameter.  Unrouted requests answer 404.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str, str | None], Any] = {}

    def on(
        self,
        method: str,
        path: str,
        json: Any = None,
        status: int = 200,
        action: str | None = None,
        error: Exception | None = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> None:
        self._routes[(method, path, action)] = (status, json, error, handler)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = request.url.params.get("action")
        route = self._routes.get((request.method, request.url.path, action))
        if route is None:
            route = self._routes.get((request.method, request.url.path, None))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        status, body, error, handler = route
        if error is not None:
            raise error
        if handler is not None:
            return handler(request)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage({"authToken": TEST_TOKEN})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def remote(backend: FakeBackend, storage: MemoryStorage) -> RemoteClient:
    return RemoteClient(
        BASE_URL, storage, http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend))
    )


@pytest.fixture
def cache(storage: MemoryStorage, clock: FakeClock) -> CacheStore:
    return CacheStore(storage, clock=clock)


@pytest.fixture
def fast_defaults() -> SyncDefaults:
    return SyncDefaults(
        sync=SyncConfig(on_startup_sync=False),
        startup_delay=0.01,
        focus_delay=0.01,
    )


@pytest.fixture
def notifier() -> EventNotifier:
    return EventNotifier()


@pytest.fixture
def events(notifier: EventNotifier) -> list[SyncEvent]:
    captured: list[SyncEvent] = []
    notifier.subscribe(captured.append)
    return captured


# ---------------------------------------------------------------------------
# Sync endpoint double
# ---------------------------------------------------------------------------


class FakeSyncRemote:
    """Answers the two bokun_sync actions used by the orchestrator."""

    def __init__(
        self,
        enabled: bool = True,
        result: Any = None,
        error: Exception | None = None,
    ) -> None:
        self.enabled = enabled
        self.result = result if result is not None else {
            "success": True, "synced_count": 3, "total_bookings": 10,
        }
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[dict[str, Any]] = []

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        params = dict(params or {})
        self.calls.append(params)
        if params.get("action") == "config":
            return {"sync_enabled": self.enabled}
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result

    @property
    def sync_calls(self) -> list[dict[str, Any]]:
        return [c for c in self.calls if c.get("action") == "sync"]


@pytest.fixture
def sync_remote() -> FakeSyncRemote:
    return FakeSyncRemote()
