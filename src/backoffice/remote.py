"""Authenticated HTTP client for the back-office REST API.

Every request carries:
    Authorization: Bearer <authToken>   when a token is stored
    ?_=<epoch ms>                       strictly increasing cache buster

Failures are raised as ``NetworkError`` (no response) or a ``ServerError``
subclass (non-2xx).  This client never touches the cache.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from src.backoffice.errors import NetworkError, error_for_status
from src.backoffice.storage import KeyValueStorage, auth_token

logger = logging.getLogger("florence.backoffice.remote")

CACHE_BUSTER_PARAM = "_"
DEFAULT_TIMEOUT = 30.0


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class RemoteClient:
    """Thin async wrapper around ``httpx.AsyncClient``.

    Usage::

        remote = RemoteClient("http://localhost:8000", storage)
        payload = await remote.get("/api/tours", params={"page": 1})
        await remote.aclose()
    """

    def __init__(
        self,
        base_url: str,
        storage: KeyValueStorage,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:    Backend origin, e.g. ``https://office.example.com``.
            storage:     Session storage holding the bearer token.
            timeout:     Per-request timeout in seconds.
            http_client: Pre-built client (tests pass one with a MockTransport).
            clock:       Epoch milliseconds source for the cache buster.
        """
        self.base_url = base_url.rstrip("/")
        self._storage = storage
        self._timeout = timeout
        self._http = http_client
        self._owns_client = http_client is None
        self._clock = clock
        self._last_buster = 0

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
        return self._http

    def _cache_buster(self) -> int:
        # Two requests in the same millisecond still get distinct values
        value = max(self._clock(), self._last_buster + 1)
        self._last_buster = value
        return value

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = auth_token(self._storage)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None if empty)."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        query[CACHE_BUSTER_PARAM] = self._cache_buster()
        url = path if path.startswith("http") else f"{self.base_url}{path}"

        logger.debug("%s %s", method, path)
        try:
            response = await self._client().request(
                method, url, params=query, json=json, headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{method} {path} timed out after {self._timeout}s") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        body = _decode_body(response)
        if not response.is_success:
            logger.debug("%s %s -> HTTP %d", method, path, response.status_code)
            raise error_for_status(response.status_code, body)
        return body

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        return await self.request("PUT", path, params=params, json=json)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def aclose(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.aclose()
        self._http = None


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
