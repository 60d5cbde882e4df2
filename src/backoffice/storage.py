"""Persisted client state: a flat string key-value store.

Two backends share one interface:

    MemoryStorage    process-local dict, for tests and ephemeral hosts
    JsonFileStorage  one JSON object on disk, rewritten on every change

Concurrent writers are not coordinated; the last write wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("florence.backoffice.storage")

# Session and cache keys shared with the web front end
AUTH_TOKEN_KEY = "authToken"
LEGACY_TOKEN_KEY = "token"
USER_ROLE_KEY = "userRole"
USER_NAME_KEY = "userName"
LAST_SYNC_KEY = "bokun_last_sync"


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStorage:
    """Storage persisted as a single JSON object.

    The file is read once at construction.  Every ``set``/``delete`` rewrites
    it through a temporary file and ``os.replace`` so a crash never leaves a
    half-written file behind.  A missing or corrupt file starts empty.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable storage file %s: %s", self._path, exc)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring storage file %s: not a JSON object", self._path)
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".storage-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()


def auth_token(storage: KeyValueStorage) -> str | None:
    """Bearer token from storage, accepting the older ``token`` key."""
    return storage.get(AUTH_TOKEN_KEY) or storage.get(LEGACY_TOKEN_KEY)
