"""Load and validate the auto-sync defaults.

The defaults live in ``autosync.yaml`` alongside this module and are loaded
once and cached.  Pass an explicit path to ``load_sync_defaults`` to use a
deployment-specific file instead.

Usage::

    from src.backoffice.config_loader import get_sync_defaults

    defaults = get_sync_defaults()
    defaults.sync.interval_minutes     # 15
    defaults.cache_expiry              # timedelta(seconds=60)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("florence.backoffice.config")

_CONFIG_PATH = Path(__file__).parent / "autosync.yaml"


@dataclass
class SyncConfig:
    """Runtime auto-sync settings.  Mutable through ``update_config``."""

    enabled: bool = True
    interval_minutes: float = 15
    on_startup_sync: bool = True
    on_focus_sync: bool = True

    @property
    def interval(self) -> timedelta:
        return timedelta(minutes=self.interval_minutes)


@dataclass
class SyncDefaults:
    """Validated contents of autosync.yaml.

    Attributes:
        version:         Config schema version string.
        sync:            Initial SyncConfig for new services.
        startup_delay:   Seconds between start() and the startup sync.
        focus_delay:     Seconds between a focus/visibility event and its sync.
        cache_expiry:    Freshness window of cached collections.
        request_timeout: Remote call timeout in seconds.
    """

    version: str = "1.0"
    sync: SyncConfig = field(default_factory=SyncConfig)
    startup_delay: float = 2.0
    focus_delay: float = 1.0
    cache_expiry: timedelta = timedelta(seconds=60)
    request_timeout: float = 30.0


class ConfigValidationError(ValueError):
    """Raised when autosync.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Auto-sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return raw


def _validate_and_build(raw: dict) -> SyncDefaults:
    """Validate the parsed YAML and build SyncDefaults, collecting every error."""
    errors: list[str] = []

    def _section(name: str) -> dict:
        value = raw.get(name) or {}
        if not isinstance(value, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return value

    def _positive(section: dict, key: str, where: str, default: float) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {value!r}")
            return default
        if number <= 0:
            errors.append(f"{where}.{key} must be positive, got {number}")
        return number

    def _flag(section: dict, key: str, where: str, default: bool) -> bool:
        value = section.get(key, default)
        if not isinstance(value, bool):
            errors.append(f"{where}.{key} must be true or false, got {value!r}")
            return default
        return value

    sync_raw = _section("sync")
    sync = SyncConfig(
        enabled=_flag(sync_raw, "enabled", "sync", True),
        interval_minutes=_positive(sync_raw, "interval_minutes", "sync", 15),
        on_startup_sync=_flag(sync_raw, "on_startup_sync", "sync", True),
        on_focus_sync=_flag(sync_raw, "on_focus_sync", "sync", True),
    )

    triggers_raw = _section("triggers")
    cache_raw = _section("cache")
    remote_raw = _section("remote")

    defaults = SyncDefaults(
        version=str(raw.get("version", "1.0")),
        sync=sync,
        startup_delay=_positive(triggers_raw, "startup_delay_seconds", "triggers", 2.0),
        focus_delay=_positive(triggers_raw, "focus_delay_seconds", "triggers", 1.0),
        cache_expiry=timedelta(seconds=_positive(cache_raw, "expiry_seconds", "cache", 60)),
        request_timeout=_positive(remote_raw, "timeout_seconds", "remote", 30.0),
    )

    if errors:
        raise ConfigValidationError(
            f"autosync.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )
    return defaults


def load_sync_defaults(path: Path | str | None = None) -> SyncDefaults:
    """Load and validate auto-sync defaults.

    Args:
        path: Override path to YAML.  Uses the bundled autosync.yaml by default.
    """
    target = Path(path) if path else _CONFIG_PATH
    defaults = _validate_and_build(_load_yaml(target))
    logger.info("Loaded auto-sync config v%s from %s", defaults.version, target)
    return defaults


_defaults: SyncDefaults | None = None
_defaults_lock = threading.Lock()


def get_sync_defaults() -> SyncDefaults:
    """Return the bundled defaults, loading them on first call."""
    global _defaults
    if _defaults is None:
        with _defaults_lock:
            if _defaults is None:
                _defaults = load_sync_defaults()
    return _defaults


def parse_config(raw: dict[str, Any]) -> SyncDefaults:
    """Validate an already-parsed mapping (e.g. from a host settings file)."""
    return _validate_and_build(raw)
