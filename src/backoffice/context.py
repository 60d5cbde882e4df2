"""Top-level owner of the back-office client components.

Usage::

    async with BackOfficeContext("https://office.example.com", storage) as ctx:
        ctx.login(token, role="admin", name="Giulia")
        tours = await ctx.repository.get_tours()
        ctx.notifier.subscribe(print)
        ...
        ctx.logout()
"""

from __future__ import annotations

import logging
from typing import Iterable

import httpx

from src.backoffice.autosync import AutoSyncService
from src.backoffice.cache import CacheStore
from src.backoffice.config_loader import SyncConfig, SyncDefaults, get_sync_defaults
from src.backoffice.events import EventNotifier
from src.backoffice.remote import RemoteClient
from src.backoffice.repository import BackOfficeRepository
from src.backoffice.storage import (
    AUTH_TOKEN_KEY,
    LEGACY_TOKEN_KEY,
    USER_NAME_KEY,
    USER_ROLE_KEY,
    KeyValueStorage,
    MemoryStorage,
    auth_token,
)
from src.backoffice.triggers import HostLifecycleSource, TriggerSource

logger = logging.getLogger("florence.backoffice")


class BackOfficeContext:
    """Builds storage-backed cache, remote client, repository and auto-sync.

    Auto-sync runs only between ``login`` with the admin role and ``logout``.
    ``login``/``logout`` schedule timers, so call them inside the event loop.
    """

    def __init__(
        self,
        base_url: str,
        storage: KeyValueStorage | None = None,
        defaults: SyncDefaults | None = None,
        sync_config: SyncConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        lifecycle: HostLifecycleSource | None = None,
        sources: Iterable[TriggerSource] = (),
    ) -> None:
        self.defaults = defaults or get_sync_defaults()
        self.storage = storage if storage is not None else MemoryStorage()
        self.cache = CacheStore(self.storage, expiry=self.defaults.cache_expiry)
        self.remote = RemoteClient(
            base_url, self.storage,
            timeout=self.defaults.request_timeout, http_client=http_client,
        )
        self.notifier = EventNotifier()
        self.repository = BackOfficeRepository(self.remote, self.cache)
        self.autosync = AutoSyncService(
            self.remote, self.storage, self.notifier,
            config=sync_config, defaults=self.defaults,
            lifecycle=lifecycle, sources=sources,
        )

    @property
    def authenticated(self) -> bool:
        return bool(auth_token(self.storage))

    @property
    def user_role(self) -> str | None:
        return self.storage.get(USER_ROLE_KEY)

    def login(self, token: str, role: str, name: str | None = None) -> bool:
        """Persist the session and start auto-sync for admins.

        Returns True when auto-sync was started.
        """
        self.storage.set(AUTH_TOKEN_KEY, token)
        self.storage.set(USER_ROLE_KEY, role)
        if name:
            self.storage.set(USER_NAME_KEY, name)
        logger.info("Session started for %s (%s)", name or "user", role)
        return self.autosync.initialize(role)

    def resume(self) -> bool:
        """Re-initialize auto-sync from a session already in storage."""
        if not self.authenticated:
            return False
        return self.autosync.initialize(self.user_role)

    def logout(self) -> None:
        self.autosync.stop()
        for key in (AUTH_TOKEN_KEY, LEGACY_TOKEN_KEY, USER_ROLE_KEY, USER_NAME_KEY):
            self.storage.delete(key)
        logger.info("Session ended")

    async def aclose(self) -> None:
        """Stop triggers, let an in-flight sync finish, release the HTTP client."""
        self.autosync.stop()
        await self.autosync.wait_idle()
        await self.remote.aclose()

    async def __aenter__(self) -> "BackOfficeContext":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
