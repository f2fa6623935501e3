"""HTTP client for the links server.

This module provides an async HTTP client with:
- Lazy connection pooling (HTTP/2 when available)
- Client-side rate limiting per endpoint before anything hits the network
- Bearer authentication from the session gate
- Forced logout on any 401 for the current token
- Retry with exponential backoff for idempotent GETs
- Typed errors for every non-2xx response

Example:
    >>> from linkvault.api import LinksClient
    >>> from linkvault.session import SessionGate
    >>>
    >>> async with LinksClient(SessionGate()) as client:
    ...     await client.login("alice", "Secret123")
    ...     store = await client.fetch_links()
    ...     print(f"Fetched {len(store)} links")
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from linkvault.config import settings
from linkvault.errors import (
    AuthorizationFailure,
    LinkVaultError,
    MalformedPayload,
    NetworkFailure,
    RateLimited,
    ServerError,
    ValidationRejection,
    error_from_status,
    extract_server_message,
)
from linkvault.logging import logger
from linkvault.models import Link, LinkDraft, LinkMetadata, Session, User
from linkvault.ratelimit import RateLimiter, rate_limiter
from linkvault.session import SessionGate
from linkvault.store import LinkStore, parse_links
from linkvault.types import AuthResponseData, LinksPayload, MetadataData
from linkvault.validation import (
    ValidationResult,
    validate_credentials,
    validate_link_draft,
    validate_link_id,
    validate_url,
)

# =============================================================================
# Endpoints
# =============================================================================

LOGIN_PATH = "/api/login"
REGISTER_PATH = "/api/register"
LINKS_PATH = "/api/links"
PUBLIC_LINKS_PATH = "/api/public-links"
METADATA_PATH = "/api/metadata"
GOOGLE_AUTH_PATH = "/api/auth/google"
ADMIN_USERS_PATH = "/api/admin/users"
ADMIN_LINKS_PATH = "/api/admin/links"


def _is_transient(exc: BaseException) -> bool:
    """Retry on connectivity problems and 5xx, never on 4xx."""
    if isinstance(exc, NetworkFailure):
        return True
    return isinstance(exc, ServerError) and exc.is_transient and not isinstance(exc, MalformedPayload)


def _raise_rejection(result: ValidationResult) -> None:
    if not result.is_valid:
        raise ValidationRejection(result.message, reason=result.reason.value, field=result.field)


def _retry_after(resp: httpx.Response) -> int | None:
    value = resp.headers.get("Retry-After")
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


# =============================================================================
# Async Links Client
# =============================================================================


class LinksClient:
    """Async client for the links server REST API.

    Args:
        session: Gate supplying the bearer token and receiving 401s
        base_url: Server URL (defaults to settings.api_base_url)
        timeout: Overall timeout in seconds (defaults to settings.request_timeout)
        retry_attempts: Attempts for GET requests (defaults to settings.retry_attempts)
        retry_wait: Tenacity wait strategy between attempts
        limiter: Rate limiter (defaults to the process-wide one)
        transport: Custom httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        session: SessionGate | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_wait: wait_base | None = None,
        limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session or SessionGate()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = httpx.Timeout(
            timeout=timeout or settings.request_timeout,
            connect=min(5.0, timeout or settings.request_timeout),
        )
        self._retry_attempts = retry_attempts or settings.retry_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=8)
        self._limiter = limiter if limiter is not None else rate_limiter
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                http2=settings.http2 and self._transport is None,
                transport=self._transport,
                follow_redirects=True,
                headers={
                    "Accept": "application/json, text/plain, */*",
                },
            )
        return self._client

    async def __aenter__(self) -> "LinksClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close all connections and cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def _check_rate_limit(self, key: str, max_attempts: int, window_ms: int) -> None:
        result = self._limiter.check(key, max_attempts, window_ms)
        if not result.allowed:
            logger.warning(f"⚠️ Rate limited locally: {key} (reset in {result.reset_seconds}s)")
            raise RateLimited(key=key, retry_after=result.reset_seconds)

    def _require_session(self) -> str:
        token = self.session.token
        if token is None:
            raise AuthorizationFailure("Not logged in.")
        return token

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
        token: str | None = None,
    ) -> Any:
        """Perform one HTTP request and decode the response.

        Raises:
            NetworkFailure: Timeout or connectivity problem
            AuthorizationFailure: 401 (forces logout when ``token`` is current)
            LinkVaultError: Typed error for any other non-2xx
        """
        client = await self._ensure_client()
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            resp = await client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise NetworkFailure("Request timeout. Please try again.") from exc
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Network error: {exc}") from exc

        if resp.status_code == 401:
            if token is not None:
                self.session.authorization_failed(token)
                raise AuthorizationFailure()
            raise AuthorizationFailure(extract_server_message(resp.text) or "Invalid credentials")

        if not resp.is_success:
            logger.debug(f"{method} {path} -> HTTP {resp.status_code}: {resp.text[:200]}")
            raise error_from_status(resp.status_code, resp.text, _retry_after(resp))

        if "application/json" not in resp.headers.get("content-type", ""):
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedPayload(f"Invalid JSON from {path}") from exc

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
        auth: bool = True,
    ) -> Any:
        """Rate-limit, authenticate and send; GETs are retried on transient errors."""
        token = self._require_session() if auth else None
        self._check_rate_limit(
            f"api_{path}", settings.api_rate_limit_max, settings.api_rate_limit_window_ms
        )

        if method != "GET":
            return await self._send(method, path, json=json, params=params, token=token)

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception(_is_transient),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(method, path, json=json, params=params, token=token)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def _authenticate(self, path: str, username: str, password: str, registration: bool) -> Session:
        result = validate_credentials(username, password, registration=registration)
        _raise_rejection(result)
        creds = result.value

        self._check_rate_limit(
            f"login_{creds.username}",
            settings.login_rate_limit_max,
            settings.login_rate_limit_window_ms,
        )
        data: AuthResponseData | None = await self._request(
            "POST",
            path,
            json={"username": creds.username, "password": creds.password},
            auth=False,
        )
        try:
            return self.session.adopt_auth_response(data or {})
        except (ValueError, ValidationError) as exc:
            raise MalformedPayload(f"Invalid authentication response: {exc}") from exc

    async def login(self, username: str, password: str) -> Session:
        """Log in and adopt the returned session.

        Raises:
            ValidationRejection: Credentials fail local checks
            RateLimited: Too many attempts for this username
            AuthorizationFailure: Invalid credentials
        """
        return await self._authenticate(LOGIN_PATH, username, password, registration=False)

    async def register(self, username: str, password: str) -> Session:
        """Create an account (stronger password rules) and adopt its session."""
        return await self._authenticate(REGISTER_PATH, username, password, registration=True)

    def oauth_start_url(self) -> str:
        """URL that starts the Google OAuth flow in a browser."""
        return f"{self.base_url}{GOOGLE_AUTH_PATH}"

    # -------------------------------------------------------------------------
    # Links
    # -------------------------------------------------------------------------

    async def fetch_links(self) -> LinkStore:
        """Fetch the current user's links."""
        data: LinksPayload | None = await self._request("GET", LINKS_PATH)
        return LinkStore.from_payload(data)

    async def fetch_public_links(self) -> LinkStore:
        """Fetch every non-private link (no authentication)."""
        return LinkStore.from_payload(await self._request("GET", PUBLIC_LINKS_PATH, auth=False))

    async def create_link(self, draft: LinkDraft | Mapping[str, Any]) -> Link:
        """Validate and create a link.

        Raises:
            ValidationRejection: URL, timestamp or category rejected locally
        """
        result = validate_link_draft(draft)
        _raise_rejection(result)

        data = await self._request("POST", LINKS_PATH, json=result.value)
        try:
            link = Link.model_validate({**result.value, **(data or {})})
        except ValidationError as exc:
            raise MalformedPayload(f"Invalid created link: {exc.errors()[0]['msg']}") from exc
        logger.info(f"✅ Created link {link.id}: {link.url}")
        return link

    async def delete_link(self, link_id: int) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request("DELETE", f"{LINKS_PATH}/{link_id}")

    async def set_favorite(self, link_id: int, is_favorite: bool) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request(
            "PUT", f"{LINKS_PATH}/{link_id}/favorite", json={"is_favorite": bool(is_favorite)}
        )

    async def increment_access(self, link_id: int) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request("PUT", f"{LINKS_PATH}/{link_id}/access", json={})

    async def fetch_metadata(self, url: str) -> LinkMetadata:
        """Fetch title/description/tags for a URL (used for auto-fill)."""
        result = validate_url(url)
        _raise_rejection(result)

        data: MetadataData | None = await self._request(
            "GET", METADATA_PATH, params={"url": result.value}
        )
        try:
            return LinkMetadata.model_validate(data or {})
        except ValidationError as exc:
            raise MalformedPayload("Invalid metadata response") from exc

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    async def admin_list_users(self) -> list[User]:
        data = await self._request("GET", ADMIN_USERS_PATH)
        try:
            return [User.model_validate(item) for item in data or []]
        except ValidationError as exc:
            raise MalformedPayload("Invalid user listing") from exc

    async def admin_list_links(self) -> list[Link]:
        return parse_links(await self._request("GET", ADMIN_LINKS_PATH))

    async def admin_set_user_admin(self, user_id: int, is_admin: bool) -> None:
        _raise_rejection(validate_link_id(user_id))
        await self._request(
            "PUT", f"{ADMIN_USERS_PATH}/{user_id}/admin", json={"is_admin": bool(is_admin)}
        )

    async def admin_delete_user(self, user_id: int) -> None:
        _raise_rejection(validate_link_id(user_id))
        await self._request("DELETE", f"{ADMIN_USERS_PATH}/{user_id}/delete")

    async def admin_delete_link(self, link_id: int) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request("DELETE", f"{ADMIN_LINKS_PATH}/{link_id}/delete")

    async def admin_lock_link(self, link_id: int, is_locked: bool) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request(
            "PUT", f"{ADMIN_LINKS_PATH}/{link_id}/lock", json={"is_locked": bool(is_locked)}
        )

    async def admin_force_private(self, link_id: int) -> None:
        _raise_rejection(validate_link_id(link_id))
        await self._request("PUT", f"{ADMIN_LINKS_PATH}/{link_id}/force-private", json={})


__all__ = [
    "LinksClient",
    "LinkVaultError",
    "LOGIN_PATH",
    "REGISTER_PATH",
    "LINKS_PATH",
    "PUBLIC_LINKS_PATH",
    "METADATA_PATH",
    "ADMIN_USERS_PATH",
    "ADMIN_LINKS_PATH",
]
