"""Error taxonomy for linkvault.

Only transport-level failures are raised. Validation and rate limiting
report structured results instead (see ``validation`` and ``ratelimit``);
the client turns those results into exceptions at the call site.
"""

from __future__ import annotations

import json
from typing import Any

from linkvault.utils import safe_get

STATUS_TO_ERROR_CODE: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


class LinkVaultError(Exception):
    """Base class for every error surfaced to the user."""

    code: str = "ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationRejection(LinkVaultError):
    """Input was rejected before it reached the network."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, reason: str, field: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.field = field


class AuthorizationFailure(LinkVaultError):
    """The server answered 401; the session has been discarded."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Session expired. Please login again.") -> None:
        super().__init__(message)


class PermissionDenied(LinkVaultError):
    """The current user may not perform the action (client-side check)."""

    code = "FORBIDDEN"


class RateLimited(LinkVaultError):
    """Too many attempts for one action, locally or reported by the server."""

    code = "RATE_LIMITED"

    def __init__(
        self,
        message: str = "Too many requests. Please wait before trying again.",
        key: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.retry_after = retry_after


class NetworkFailure(LinkVaultError):
    """Timeout or connectivity problem; safe to retry."""

    code = "NETWORK_ERROR"


class ServerError(LinkVaultError):
    """Non-2xx response; ``message`` is the server's own text where available."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = STATUS_TO_ERROR_CODE.get(status_code, "ERROR")

    @property
    def is_transient(self) -> bool:
        return self.status_code >= 500


class NotFound(ServerError):
    """The addressed resource does not exist."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status_code=404)


class MalformedPayload(ServerError):
    """A 2xx response whose body does not match the expected shape."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=502)
        self.code = "MALFORMED_PAYLOAD"


def extract_server_message(body: str) -> str:
    """Pull a human-readable message out of an error body.

    Supports:
    - plain text bodies (the server's ``http.Error`` output)
    - ``{"error": {"code": "...", "message": "..."}}``
    - ``{"message": "..."}`` or ``{"error": "..."}``
    """
    text = (body or "").strip()
    if not text:
        return ""

    try:
        data: Any = json.loads(text)
    except ValueError:
        return text

    if isinstance(data, dict):
        for path in (("error", "message"), ("message",), ("error",), ("detail",)):
            value = safe_get(data, *path)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return text


def error_from_status(
    status_code: int,
    body: str = "",
    retry_after: int | None = None,
) -> LinkVaultError:
    """Build the exception matching a non-2xx status.

    Args:
        status_code: HTTP status code
        body: Raw response body
        retry_after: Parsed ``Retry-After`` header, if any

    Returns:
        The exception to raise (not raised here)
    """
    message = extract_server_message(body)

    if status_code == 401:
        return AuthorizationFailure()
    if status_code == 403:
        return PermissionDenied(message or "Access denied")
    if status_code == 404:
        return NotFound(message or "Not found")
    if status_code == 429:
        return RateLimited(
            message or "Too many requests. Please wait before trying again.",
            retry_after=retry_after,
        )
    return ServerError(message or f"HTTP Error: {status_code}", status_code=status_code)
