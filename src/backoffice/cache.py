"""Timestamped cache entries on top of key-value storage.

Each entry is stored as JSON ``{"timestamp": <epoch ms>, "data": ...}``.
An entry is fresh while ``now - timestamp < expiry``; stale entries are kept
as the last-resort fallback and only removed by ``clear``.

A key may have a legacy alias (``tours_v1`` -> ``tours``) holding the bare
payload for older readers.  ``write`` updates both and ``clear`` removes
both, so a cleared entry can never come back through the alias.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from src.backoffice.storage import KeyValueStorage

logger = logging.getLogger("florence.backoffice.cache")

TOURS_KEY = "tours_v1"
LEGACY_TOURS_KEY = "tours"
GUIDES_KEY = "guides_v1"
TICKETS_KEY = "tickets_v1"

DEFAULT_LEGACY_KEYS: dict[str, str] = {TOURS_KEY: LEGACY_TOURS_KEY}
DEFAULT_EXPIRY = timedelta(seconds=60)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_millis(moment: datetime) -> int:
    return round(moment.timestamp() * 1000)


def _from_millis(millis: Any) -> datetime:
    if isinstance(millis, bool) or not isinstance(millis, (int, float)):
        raise ValueError(f"timestamp must be a number, got {millis!r}")
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class CachedPayload:
    """A cached value and the moment it was written."""

    timestamp: datetime
    data: Any


class CacheStore:
    """Read, write and expire cache entries.

    Usage::

        cache = CacheStore(storage)
        cache.write("tours_v1", payload)
        entry = cache.read("tours_v1")
        if entry and cache.is_fresh(entry):
            return entry.data
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        expiry: timedelta = DEFAULT_EXPIRY,
        legacy_keys: dict[str, str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the cache.

        Args:
            storage:     Backing key-value store.
            expiry:      Freshness window.
            legacy_keys: Primary key -> legacy alias key.
            clock:       Returns the current aware UTC datetime.
        """
        self._storage = storage
        self.expiry = expiry
        self._legacy_keys = DEFAULT_LEGACY_KEYS if legacy_keys is None else legacy_keys
        self._clock = clock

    def legacy_key(self, key: str) -> str | None:
        return self._legacy_keys.get(key)

    def read(self, key: str) -> CachedPayload | None:
        """Return the entry for ``key``, or None when absent or malformed."""
        try:
            raw = self._storage.get(key)
            if raw is None:
                return None
            stored = json.loads(raw)
            if not isinstance(stored, dict) or "data" not in stored:
                raise ValueError("missing data field")
            return CachedPayload(timestamp=_from_millis(stored.get("timestamp")), data=stored["data"])
        except (OSError, ValueError, TypeError, OverflowError) as exc:
            logger.warning("Ignoring malformed cache entry %s: %s", key, exc)
            return None

    def read_legacy(self, key: str) -> Any | None:
        """Bare payload stored under the legacy alias of ``key``, if any."""
        alias = self.legacy_key(key)
        if alias is None:
            return None
        try:
            raw = self._storage.get(alias)
            return None if raw is None else json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring malformed legacy cache entry %s: %s", alias, exc)
            return None

    def write(self, key: str, data: Any) -> None:
        """Store ``data`` stamped with the current time.  Failures are logged."""
        entry = {"timestamp": _to_millis(self._clock()), "data": data}
        try:
            self._storage.set(key, json.dumps(entry, default=str))
            alias = self.legacy_key(key)
            if alias is not None:
                self._storage.set(alias, json.dumps(data, default=str))
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not write cache entry %s: %s", key, exc)

    def is_fresh(self, payload: CachedPayload) -> bool:
        return self._clock() - payload.timestamp < self.expiry

    def clear(self, key: str) -> None:
        """Remove ``key`` and its legacy alias.  Safe to call repeatedly."""
        keys = [key]
        alias = self.legacy_key(key)
        if alias is not None:
            keys.append(alias)
        for k in keys:
            try:
                self._storage.delete(k)
            except OSError as exc:
                logger.warning("Could not clear cache entry %s: %s", k, exc)
        logger.debug("Cache cleared: %s", ", ".join(keys))
