"""Collection responses in one canonical shape.

The backend answers list endpoints with ``{"data": [...], "pagination": {...}}``.
Older deployments answered with a bare JSON array.  ``decode_page`` accepts
either (and ``None``) and always returns a ``Page``; nothing past this module
inspects the raw shape.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Iterator

logger = logging.getLogger("florence.backoffice.pages")


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    per_page: int = 0
    total: int = 0
    total_pages: int = 0

    @classmethod
    def single(cls, count: int) -> "Pagination":
        """Pagination for an unpaged list of ``count`` items."""
        return cls(page=1, per_page=count, total=count, total_pages=1 if count else 0)


@dataclass(frozen=True)
class Page:
    """One page of a collection."""

    items: list[dict[str, Any]] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the ``{data, pagination}`` wire shape."""
        return {"data": list(self.items), "pagination": asdict(self.pagination)}


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _decode_pagination(raw: Any, count: int) -> Pagination:
    if not isinstance(raw, dict):
        return Pagination.single(count)
    per_page = _int(raw.get("per_page", raw.get("limit")), count)
    total = _int(raw.get("total"), count)
    default_pages = math.ceil(total / per_page) if per_page > 0 else (1 if total else 0)
    return Pagination(
        page=_int(raw.get("page"), 1),
        per_page=per_page,
        total=total,
        total_pages=_int(raw.get("total_pages", raw.get("pages")), default_pages),
    )


def _items(raw: list[Any]) -> list[dict[str, Any]]:
    items = [item for item in raw if isinstance(item, dict)]
    if len(items) != len(raw):
        logger.warning("Dropped %d non-object items from collection", len(raw) - len(items))
    return items


def decode_page(payload: Any) -> Page:
    """Normalize a list response.

    Accepted shapes:
        [ {...}, ... ]                        bare list (legacy)
        {"data": [...], "pagination": {...}}  current shape
        None                                  empty page

    Anything else decodes to an empty page and logs a warning.
    """
    if payload is None:
        return Page()

    if isinstance(payload, list):
        items = _items(payload)
        return Page(items=items, pagination=Pagination.single(len(items)))

    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        items = _items(payload["data"])
        return Page(items=items, pagination=_decode_pagination(payload.get("pagination"), len(items)))

    logger.warning("Unrecognized collection payload of type %s", type(payload).__name__)
    return Page()
