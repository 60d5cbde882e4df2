"""Bokun REST API client.

Every request is signed with HMAC-SHA1 over::

    <X-Bokun-Date> + <access key> + <HTTP METHOD> + <path with query string>

and sent with the ``X-Bokun-Date``, ``X-Bokun-AccessKey`` and
``X-Bokun-Signature`` headers.  The date is UTC in ``YYYY-MM-DD HH:MM:SS``.

Endpoints used:
    POST /booking.json/booking-search — Bookings by start date range and role
    GET  /activity.json/{id}          — Product details (rates, languages)
    POST /activity.json/search        — Connection test
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable

import httpx

from src.config import Settings, get_settings

logger = logging.getLogger("florence.bokun.client")

#: Roles queried for bookings: SUPPLIER returns OTA bookings (Viator,
#: GetYourGuide), SELLER returns direct website bookings.
BOOKING_ROLES = ("SUPPLIER", "SELLER")
BOOKING_STATUSES = ["CONFIRMED", "PENDING", "CANCELLED"]


class BokunAPIError(Exception):
    """Raised when Bokun answers with a non-2xx status or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BokunRateLimitError(BokunAPIError):
    """Raised locally when the per-minute request budget is spent."""


class BokunClient:
    """Signed async client for the Bokun API.

    Usage::

        client = BokunClient.from_settings(get_settings())
        bookings = await client.search_bookings(date(2026, 5, 1), date(2026, 8, 31))
        await client.aclose()
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        vendor_id: str = "",
        base_url: str = "https://api.bokun.io",
        timeout: float = 30.0,
        max_requests_per_minute: int = 400,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the client.

        Args:
            access_key:              Bokun access key.
            secret_key:              Bokun secret key (HMAC signing key).
            vendor_id:               Bokun vendor ID, informational only.
            base_url:                API base URL without trailing slash.
            timeout:                 Per-request timeout in seconds.
            max_requests_per_minute: Local request budget (Bokun allows 400).
            http_client:             Optional pre-configured httpx client (for testing).
            clock:                   Monotonic clock used by the rate limiter.
        """
        self._access_key = access_key
        self._secret_key = secret_key
        self.vendor_id = vendor_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_requests = max_requests_per_minute
        self._http_client = http_client
        self._owns_client = http_client is None
        self._clock = clock
        self._window_start = 0.0
        self._request_count = 0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BokunClient":
        s = settings or get_settings()
        return cls(
            access_key=s.bokun_access_key,
            secret_key=s.bokun_secret_key,
            vendor_id=s.bokun_vendor_id,
            base_url=s.bokun_api_base_url,
            timeout=s.bokun_timeout_seconds,
            max_requests_per_minute=s.bokun_max_requests_per_minute,
        )

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, date_str: str, method: str, path: str) -> str:
        message = f"{date_str}{self._access_key}{method.upper()}{path}"
        digest = hmac.new(
            self._secret_key.encode(), message.encode(), hashlib.sha1
        ).digest()
        return base64.b64encode(digest).decode("utf-8")

    def _headers(self, method: str, path: str) -> dict[str, str]:
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        return {
            "X-Bokun-Date": date_str,
            "X-Bokun-AccessKey": self._access_key,
            "X-Bokun-Signature": self.sign(date_str, method, path),
            "Content-Type": "application/json;charset=UTF-8",
            "User-Agent": "Florence-Guides/1.0",
        }

    def _check_rate_limit(self) -> None:
        now = self._clock()
        if now - self._window_start >= 60:
            self._window_start = now
            self._request_count = 0
        if self._request_count >= self._max_requests:
            wait = int(60 - (now - self._window_start))
            raise BokunRateLimitError(
                f"Rate limit exceeded. Please wait {wait} seconds.", status_code=429
            )
        self._request_count += 1

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Send a signed request and return the decoded JSON body.

        Raises:
            BokunRateLimitError: Local request budget exhausted.
            BokunAPIError:       Transport failure or non-2xx response.
        """
        self._check_rate_limit()
        headers = self._headers(method, path)
        logger.debug("Bokun %s %s", method, path)

        try:
            response = await self._client().request(
                method, f"{self._base_url}{path}", headers=headers, json=json
            )
        except httpx.HTTPError as exc:
            raise BokunAPIError(f"Bokun request failed: {exc}") from exc

        if response.status_code >= 400:
            raise BokunAPIError(
                f"Bokun API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def search_bookings(
        self,
        start: date,
        end: date,
        page_size: int = 200,
        max_pages: int = 10,
    ) -> list[dict]:
        """Return all bookings whose tour starts between ``start`` and ``end``.

        Both booking roles are queried and results are de-duplicated by
        booking id.  A failing role is logged and skipped; if every role
        fails the last error is raised.

        Args:
            start:     First tour date (inclusive).
            end:       Last tour date (inclusive).
            page_size: Bookings per page (at least 200).
            max_pages: Safety cap on pages per role.

        Returns:
            List of raw booking dicts.
        """
        page_size = max(page_size, 200)
        bookings: list[dict] = []
        seen: set[Any] = set()
        last_error: BokunAPIError | None = None
        failed_roles = 0

        for role in BOOKING_ROLES:
            try:
                page = 0
                while page < max_pages:
                    result = await self._request(
                        "POST",
                        "/booking.json/booking-search",
                        json={
                            "bookingRole": role,
                            "bookingStatuses": BOOKING_STATUSES,
                            "pageSize": page_size,
                            "page": page,
                            "startDateRange": {
                                "from": f"{start.isoformat()}T00:00:00.000Z",
                                "to": f"{end.isoformat()}T23:59:59.999Z",
                                "includeLower": True,
                                "includeUpper": True,
                            },
                        },
                    ) or {}
                    items = result.get("items") or []
                    if not items:
                        break
                    for booking in items:
                        booking_id = booking.get("id")
                        if booking_id is not None and booking_id not in seen:
                            seen.add(booking_id)
                            bookings.append(booking)
                    total_hits = result.get("totalHits", len(items))
                    page += 1
                    if page * page_size >= total_hits:
                        break
                logger.debug("Bokun role %s: %d unique bookings so far", role, len(bookings))
            except BokunAPIError as exc:
                logger.warning("Bokun booking search failed for role %s: %s", role, exc)
                last_error = exc
                failed_roles += 1

        if failed_roles == len(BOOKING_ROLES) and last_error is not None:
            raise last_error

        logger.info("Bokun: %d unique bookings between %s and %s", len(bookings), start, end)
        return bookings

    async def get_product(self, product_id: int | str) -> dict:
        return await self._request("GET", f"/activity.json/{product_id}") or {}

    async def test_connection(self) -> dict:
        """Probe the API with a one-result activity search."""
        try:
            await self._request("POST", "/activity.json/search", json={"page": 1, "pageSize": 1})
        except BokunAPIError as exc:
            logger.warning("Bokun connection test failed: %s", exc)
            return {
                "success": False,
                "error": str(exc),
                "error_code": exc.status_code,
                "base_url": self._base_url,
            }
        return {
            "success": True,
            "message": "Connection successful",
            "base_url": self._base_url,
            "access_key_preview": f"{self._access_key[:8]}...",
        }
