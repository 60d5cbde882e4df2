"""Typed failures raised by the back-office client.

    BackOfficeError
    ├── NetworkError           no response (timeout, DNS, refused connection)
    └── ServerError            non-2xx response, carries status and body
        ├── ValidationError    400 / 422
        ├── AuthError          401
        └── NotFoundError      404
"""

from __future__ import annotations

from typing import Any


class BackOfficeError(Exception):
    """Base class for every client-side failure."""


class NetworkError(BackOfficeError):
    """The request never produced a response."""


class ServerError(BackOfficeError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, body: Any = None, message: str | None = None) -> None:
        self.status = status
        self.body = body
        super().__init__(message or _message_from_body(status, body))


class ValidationError(ServerError):
    """The server rejected the request body or parameters."""


class AuthError(ServerError):
    """The bearer token is missing, expired or invalid."""


class NotFoundError(ServerError):
    """The addressed guide or tour does not exist."""


_STATUS_ERRORS: dict[int, type[ServerError]] = {
    400: ValidationError,
    401: AuthError,
    404: NotFoundError,
    422: ValidationError,
}


def _message_from_body(status: int, body: Any) -> str:
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        if isinstance(detail, str):
            return f"HTTP {status}: {detail}"
    if isinstance(body, str) and body:
        return f"HTTP {status}: {body[:200]}"
    return f"HTTP {status}"


def error_for_status(status: int, body: Any = None) -> ServerError:
    """Build the most specific ServerError subclass for a status code."""
    return _STATUS_ERRORS.get(status, ServerError)(status, body)
