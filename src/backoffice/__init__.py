"""Client-side data sync and caching for the Florence back office."""

from src.backoffice.autosync import (
    AutoSyncService,
    SyncRecord,
    SyncResult,
    SyncState,
    SyncStatus,
)
from src.backoffice.cache import CachedPayload, CacheStore
from src.backoffice.config_loader import SyncConfig, SyncDefaults, load_sync_defaults
from src.backoffice.context import BackOfficeContext
from src.backoffice.errors import (
    AuthError,
    BackOfficeError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from src.backoffice.events import EventNotifier, SyncEvent, SyncEventType
from src.backoffice.pages import Page, Pagination, decode_page
from src.backoffice.remote import RemoteClient
from src.backoffice.repository import BackOfficeRepository, FallbackResolver
from src.backoffice.storage import JsonFileStorage, MemoryStorage
from src.backoffice.triggers import HostLifecycleSource, PeriodicTimer, Trigger

__all__ = [
    "AuthError",
    "AutoSyncService",
    "BackOfficeContext",
    "BackOfficeError",
    "BackOfficeRepository",
    "CacheStore",
    "CachedPayload",
    "EventNotifier",
    "FallbackResolver",
    "HostLifecycleSource",
    "JsonFileStorage",
    "MemoryStorage",
    "NetworkError",
    "NotFoundError",
    "Page",
    "Pagination",
    "PeriodicTimer",
    "RemoteClient",
    "ServerError",
    "SyncConfig",
    "SyncDefaults",
    "SyncEvent",
    "SyncEventType",
    "SyncRecord",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "Trigger",
    "ValidationError",
    "decode_page",
    "load_sync_defaults",
]
