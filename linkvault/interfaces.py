"""Protocol interfaces for dependency injection.

``LinkService`` and ``AdminConsole`` depend on these contracts rather than
on ``LinksClient`` directly, so tests and alternative backends can supply
any object with the right methods. ``@runtime_checkable`` allows
``isinstance`` checks based on structure alone.

Example:
    >>> from linkvault.interfaces import ISessionStorage
    >>> class MemoryStorage:
    ...     def load(self): return None
    ...     def save(self, session): pass
    ...     def clear(self): pass
    >>> isinstance(MemoryStorage(), ISessionStorage)
    True
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from linkvault.models import Link, LinkDraft, LinkMetadata, Session, User
from linkvault.session import SessionGate
from linkvault.store import LinkStore


@runtime_checkable
class ILinksClient(Protocol):
    """Links server client interface.

    Implementations handle authentication, local rate limiting and error
    mapping; a 401 must be reported to ``session.authorization_failed``.
    """

    session: SessionGate

    async def login(self, username: str, password: str) -> Session:
        """Authenticate and adopt the session.

        Raises:
            ValidationRejection: Credentials fail local checks
            RateLimited: Too many attempts
            AuthorizationFailure: Invalid credentials
        """
        ...

    async def register(self, username: str, password: str) -> Session:
        ...

    async def fetch_links(self) -> LinkStore:
        """Fetch the current user's links.

        Raises:
            AuthorizationFailure: No session, or the token was rejected
        """
        ...

    async def fetch_public_links(self) -> LinkStore:
        ...

    async def create_link(self, draft: LinkDraft | Mapping[str, Any]) -> Link:
        ...

    async def delete_link(self, link_id: int) -> None:
        ...

    async def set_favorite(self, link_id: int, is_favorite: bool) -> None:
        ...

    async def increment_access(self, link_id: int) -> None:
        ...

    async def fetch_metadata(self, url: str) -> LinkMetadata:
        ...

    def oauth_start_url(self) -> str:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class IAdminClient(Protocol):
    """Admin endpoints; the server enforces the admin role."""

    async def admin_list_users(self) -> list[User]:
        ...

    async def admin_list_links(self) -> list[Link]:
        ...

    async def admin_set_user_admin(self, user_id: int, is_admin: bool) -> None:
        ...

    async def admin_delete_user(self, user_id: int) -> None:
        ...

    async def admin_delete_link(self, link_id: int) -> None:
        ...

    async def admin_lock_link(self, link_id: int, is_locked: bool) -> None:
        ...

    async def admin_force_private(self, link_id: int) -> None:
        ...


@runtime_checkable
class ISessionStorage(Protocol):
    """Persistence for the current session."""

    def load(self) -> Session | None:
        """Return the stored session, or None if there is none (or it is unreadable)."""
        ...

    def save(self, session: Session) -> None:
        ...

    def clear(self) -> None:
        ...


__all__ = ["IAdminClient", "ILinksClient", "ISessionStorage"]
