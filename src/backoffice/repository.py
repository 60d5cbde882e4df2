"""Read-through cached access to tours, guides and museum tickets.

Reads go through ``FallbackResolver``:

    1. fresh cache entry and no forced refresh  -> cached data, no request
    2. otherwise fetch, write-through, return
    3. fetch failed  -> stale entry (logged) -> legacy alias -> default

Mutations always hit the server.  On success the affected cache is
refreshed.  On ``NetworkError`` a local edit is applied to the cached
collection and the local result is returned; the error is re-raised only
when nothing was cached to edit.  The paid and cancelled toggles edit the
cache but always re-raise.  On ``ServerError`` (the server answered, e.g.
404) the cache is left untouched and the error is re-raised.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

from src.backoffice.cache import GUIDES_KEY, TICKETS_KEY, TOURS_KEY, CacheStore
from src.backoffice.errors import NetworkError
from src.backoffice.pages import Page, decode_page
from src.backoffice.remote import RemoteClient

logger = logging.getLogger("florence.backoffice.repository")

TOURS_PATH = "/api/tours"
GUIDES_PATH = "/api/guides"
TICKETS_PATH = "/api/tickets"

Items = list[dict[str, Any]]


class FallbackResolver:
    """Serve a cached value, refresh it, or fall back.  Never raises."""

    def __init__(self, cache: CacheStore) -> None:
        self._cache = cache

    async def resolve(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
        default: Any = None,
    ) -> Any:
        cached = self._cache.read(key)
        if cached is not None and not force_refresh and self._cache.is_fresh(cached):
            logger.debug("Cache hit: %s", key)
            return cached.data

        try:
            data = await fetch()
        except Exception as exc:
            if cached is not None:
                logger.warning("Serving stale %s cached at %s: %s", key, cached.timestamp, exc)
                return cached.data
            legacy = self._cache.read_legacy(key)
            if legacy is not None:
                logger.warning("Serving legacy cache for %s: %s", key, exc)
                return legacy
            logger.warning("No cached %s to fall back on: %s", key, exc)
            return default

        self._cache.write(key, data)
        return data


def _normalize_tour(tour: dict[str, Any]) -> dict[str, Any]:
    return {**tour, "paid": bool(tour.get("paid")), "cancelled": bool(tour.get("cancelled"))}


def _normalize_ticket(ticket: dict[str, Any]) -> dict[str, Any]:
    return {**ticket, "code": ticket.get("museum") or ticket.get("code") or ""}


def _local_ticket(ticket: dict[str, Any]) -> dict[str, Any]:
    museum = ticket.get("museum") or ticket.get("code") or ""
    try:
        quantity = int(ticket.get("quantity") or 0)
        price = float(ticket.get("price") or 0)
    except (TypeError, ValueError):
        quantity, price = 0, 0.0
    return {
        "location": "",
        "ticket_type": "",
        "date": "",
        "time": "",
        "notes": None,
        "status": "available",
        **ticket,
        "id": _local_id(),
        "museum": museum,
        "code": museum,
        "quantity": quantity,
        "price": price,
    }


def _same_id(item: dict[str, Any], item_id: Any) -> bool:
    return str(item.get("id")) == str(item_id)


def _local_id() -> str:
    return f"local-{int(time.time() * 1000)}"


class BackOfficeRepository:
    """Tours, guides and museum tickets for the back-office UI.

    Usage::

        repo = BackOfficeRepository(remote, CacheStore(storage))
        tours = await repo.get_tours()
        await repo.update_tour_paid_status(42, True)
    """

    def __init__(
        self,
        remote: RemoteClient,
        cache: CacheStore,
        resolver: FallbackResolver | None = None,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._resolver = resolver or FallbackResolver(cache)
        self._paged_tour_keys: set[str] = set()

    # ------------------------------------------------------------------
    # Tours
    # ------------------------------------------------------------------

    async def get_tours(
        self,
        force_refresh: bool = False,
        page: int | None = None,
        per_page: int | None = None,
    ) -> Page:
        """Tours with ``paid``/``cancelled`` as booleans.  Never raises."""
        params = {"page": page, "per_page": per_page}
        key = TOURS_KEY
        if page is not None or per_page is not None:
            key = f"{TOURS_KEY}:page={page}:per_page={per_page}"
            self._paged_tour_keys.add(key)

        async def fetch() -> dict[str, Any]:
            return decode_page(await self._remote.get(TOURS_PATH, params=params)).to_payload()

        payload = await self._resolver.resolve(key, fetch, force_refresh=force_refresh)
        decoded = decode_page(payload)
        return Page(items=[_normalize_tour(t) for t in decoded.items], pagination=decoded.pagination)

    async def add_tour(self, tour: dict[str, Any]) -> dict[str, Any]:
        try:
            created = await self._remote.post(TOURS_PATH, json=tour)
        except NetworkError:
            local = _normalize_tour({**tour, "id": _local_id()})
            if not self._edit_cached(TOURS_KEY, lambda items: items + [local]):
                raise
            return local
        await self._refresh_tours()
        return created

    async def update_tour(self, tour_id: int | str, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._mutate_tour(
            tour_id, changes, lambda: self._remote.put(f"{TOURS_PATH}/{tour_id}", json=changes)
        )

    async def update_tour_paid_status(self, tour_id: int | str, paid: Any) -> dict[str, Any]:
        body = {"paid": bool(paid)}
        return await self._mutate_tour(
            tour_id, body,
            lambda: self._remote.put(f"{TOURS_PATH}/{tour_id}/paid", json=body),
            offline_result=False,
        )

    async def update_tour_cancel_status(self, tour_id: int | str, cancelled: Any) -> dict[str, Any]:
        body = {"cancelled": bool(cancelled)}
        return await self._mutate_tour(
            tour_id, body,
            lambda: self._remote.put(f"{TOURS_PATH}/{tour_id}/cancelled", json=body),
            offline_result=False,
        )

    async def delete_tour(self, tour_id: int | str) -> Any:
        try:
            result = await self._remote.delete(f"{TOURS_PATH}/{tour_id}")
        except NetworkError:
            if not self._edit_cached(
                TOURS_KEY, lambda items: [t for t in items if not _same_id(t, tour_id)]
            ):
                raise
            return True
        await self._refresh_tours()
        return result

    def clear_tour_cache(self) -> None:
        self._cache.clear(TOURS_KEY)
        for key in self._paged_tour_keys:
            self._cache.clear(key)
        self._paged_tour_keys.clear()

    async def _mutate_tour(
        self,
        tour_id: int | str,
        changes: dict[str, Any],
        send: Callable[[], Awaitable[Any]],
        offline_result: bool = True,
    ) -> dict[str, Any]:
        """Send a tour change.

        With ``offline_result`` False the cached tour is still edited on a
        network failure but the error always propagates.
        """
        try:
            updated = await send()
        except NetworkError:
            edited = self._edit_cached(TOURS_KEY, lambda items: _merge(items, tour_id, changes))
            if not (edited and offline_result):
                raise
            return {**changes, "id": tour_id}
        await self._refresh_tours()
        return updated

    async def _refresh_tours(self) -> None:
        # The base entry stays as the fallback if this refresh fails
        for key in self._paged_tour_keys:
            self._cache.clear(key)
        self._paged_tour_keys.clear()
        await self.get_tours(force_refresh=True)

    # ------------------------------------------------------------------
    # Guides
    # ------------------------------------------------------------------

    async def get_guides(self, force_refresh: bool = False) -> Page:
        async def fetch() -> dict[str, Any]:
            return decode_page(await self._remote.get(GUIDES_PATH)).to_payload()

        return decode_page(
            await self._resolver.resolve(GUIDES_KEY, fetch, force_refresh=force_refresh)
        )

    async def add_guide(self, guide: dict[str, Any]) -> dict[str, Any]:
        try:
            created = await self._remote.post(GUIDES_PATH, json=guide)
        except NetworkError:
            local = {**guide, "id": _local_id()}
            if not self._edit_cached(GUIDES_KEY, lambda items: items + [local]):
                raise
            return local
        self._cache.clear(GUIDES_KEY)
        return created

    async def update_guide(self, guide_id: int | str, changes: dict[str, Any]) -> dict[str, Any]:
        try:
            updated = await self._remote.put(f"{GUIDES_PATH}/{guide_id}", json=changes)
        except NetworkError:
            if not self._edit_cached(GUIDES_KEY, lambda items: _merge(items, guide_id, changes)):
                raise
            return {**changes, "id": guide_id}
        self._cache.clear(GUIDES_KEY)
        return updated

    async def delete_guide(self, guide_id: int | str) -> Any:
        try:
            result = await self._remote.delete(f"{GUIDES_PATH}/{guide_id}")
        except NetworkError:
            if not self._edit_cached(
                GUIDES_KEY, lambda items: [g for g in items if not _same_id(g, guide_id)]
            ):
                raise
            return True
        self._cache.clear(GUIDES_KEY)
        return result

    # ------------------------------------------------------------------
    # Museum tickets
    # ------------------------------------------------------------------

    async def get_tickets(self, force_refresh: bool = False) -> Page:
        """Ticket stock, each item carrying ``code`` (the museum).  Never raises."""

        async def fetch() -> dict[str, Any]:
            return decode_page(await self._remote.get(TICKETS_PATH)).to_payload()

        decoded = decode_page(
            await self._resolver.resolve(TICKETS_KEY, fetch, force_refresh=force_refresh)
        )
        return Page(items=[_normalize_ticket(t) for t in decoded.items], pagination=decoded.pagination)

    async def add_ticket(self, ticket: dict[str, Any]) -> dict[str, Any]:
        try:
            created = await self._remote.post(TICKETS_PATH, json=ticket)
        except NetworkError:
            local = _local_ticket(ticket)
            if not self._edit_cached(TICKETS_KEY, lambda items: items + [local]):
                raise
            return local
        self._cache.clear(TICKETS_KEY)
        return _normalize_ticket(created)

    async def update_ticket(self, ticket_id: int | str, changes: dict[str, Any]) -> dict[str, Any]:
        try:
            updated = await self._remote.put(f"{TICKETS_PATH}/{ticket_id}", json=changes)
        except NetworkError:
            if not self._edit_cached(TICKETS_KEY, lambda items: _merge(items, ticket_id, changes)):
                raise
            return {**changes, "id": ticket_id}
        self._cache.clear(TICKETS_KEY)
        return _normalize_ticket(updated)

    async def delete_ticket(self, ticket_id: int | str) -> Any:
        try:
            result = await self._remote.delete(f"{TICKETS_PATH}/{ticket_id}")
        except NetworkError:
            if not self._edit_cached(
                TICKETS_KEY, lambda items: [t for t in items if not _same_id(t, ticket_id)]
            ):
                raise
            return True
        self._cache.clear(TICKETS_KEY)
        return result

    # ------------------------------------------------------------------
    # Local cache edits
    # ------------------------------------------------------------------

    def _edit_cached(self, key: str, edit: Callable[[Items], Items]) -> bool:
        """Apply ``edit`` to the cached collection under ``key``.

        Returns False when nothing is cached under ``key`` or its alias.
        """
        cached = self._cache.read(key)
        source = cached.data if cached is not None else self._cache.read_legacy(key)
        if source is None:
            logger.debug("No cached %s to edit locally", key)
            return False
        page = decode_page(source)
        edited = Page(items=edit(list(page.items)), pagination=page.pagination)
        self._cache.write(key, edited.to_payload())
        logger.info("Applied local edit to cached %s after network failure", key)
        return True


def _merge(items: Items, item_id: int | str, changes: dict[str, Any]) -> Items:
    return [{**item, **changes} if _same_id(item, item_id) else item for item in items]
