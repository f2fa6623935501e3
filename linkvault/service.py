"""Coordination of session, store and view for one user context.

``LinkService`` ties the pieces together:
1. Session: login, registration, OAuth callback, logout
2. Store: fetched wholesale from the server; only favorite and access-count
   changes are patched locally, after the server acknowledged them
3. View: memoized query results over the store and current criteria

Any transition to anonymous (explicit logout or a 401 from any call)
clears the store, resets the criteria and cancels a pending refresh.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Optional

from linkvault.api import LinksClient
from linkvault.errors import AuthorizationFailure, LinkVaultError, NotFound, PermissionDenied
from linkvault.interfaces import IAdminClient, ILinksClient
from linkvault.logging import logger
from linkvault.models import Link, LinkDraft, Session, User
from linkvault.query import GroupedView, LinkView, QueryCriteria
from linkvault.session import LogoutReason, SessionGate
from linkvault.store import LinkStore
from linkvault.validation import validate_tags


class LinkService:
    """Owns the link store and view for one session context.

    Example:
        >>> service = LinkService()
        >>> service.restore()
        >>> await service.refresh()
        >>> service.set_criteria(search="python", sort="access-desc")
        >>> for day, links in service.view().groups.items():
        ...     print(day, [link.url for link in links])
    """

    def __init__(
        self,
        client: Optional[ILinksClient] = None,
        session: Optional[SessionGate] = None,
    ):
        """Initialize the service.

        Args:
            client: Links client (creates new if None)
            session: Session gate (the client's gate if None)
        """
        self.client  = client or LinksClient(session=session)
        self.session = session or self.client.session
        self.store   = LinkStore()
        self.links   = LinkView(self.store)
        self.public  = False

        self._refresh_task: Optional[asyncio.Task[LinkStore]] = None
        self.session.on_logout(self._on_logout)

    async def close(self) -> None:
        """Cancel pending work and close the client."""
        self._cancel_refresh()
        await self.client.close()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def _on_logout(self, reason: LogoutReason) -> None:
        self._cancel_refresh()
        self.store.clear()
        self.links.reset()
        logger.debug(f"Cleared link store after logout ({reason.value})")

    def restore(self) -> Optional[Session]:
        """Resume the persisted session, if any."""
        return self.session.restore()

    async def login(self, username: str, password: str) -> Session:
        session = await self.client.login(username, password)
        self.public = False
        return session

    async def register(self, username: str, password: str) -> Session:
        session = await self.client.register(username, password)
        self.public = False
        return session

    def adopt_oauth_callback(self, url: str) -> str:
        """Adopt OAuth redirect parameters; returns the cleaned URL."""
        cleaned = self.session.adopt_oauth_callback(url)
        if self.session.is_authenticated:
            self.public = False
        return cleaned

    def logout(self) -> bool:
        return self.session.logout(LogoutReason.EXPLICIT)

    # -------------------------------------------------------------------------
    # Store
    # -------------------------------------------------------------------------

    def _cancel_refresh(self) -> None:
        task = self._refresh_task
        self._refresh_task = None
        if task is None or task.done():
            return

        try:
            running = asyncio.current_task()
        except RuntimeError:
            running = None
        # A 401 inside the fetch logs out from within the task itself
        if task is not running:
            task.cancel()

    async def refresh(self) -> Optional[GroupedView]:
        """Replace the store with the user's links from the server.

        A newer refresh cancels an older one still in flight. A response
        that completes after the session changed is discarded.

        Returns:
            The refreshed view, or None if the result was superseded

        Raises:
            AuthorizationFailure: Not logged in, or the token was rejected
            NetworkFailure: Store is left unchanged
        """
        token = self.session.token
        if token is None:
            raise AuthorizationFailure("Not logged in.")

        self._cancel_refresh()
        task = asyncio.ensure_future(self.client.fetch_links())
        self._refresh_task = task

        try:
            fetched = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Refresh superseded")
            return None
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

        if self.session.token != token:
            logger.debug("Discarding links fetched for a previous session")
            return None

        self.store.replace(fetched)
        self.public = False
        logger.info(f"🔄 Loaded {len(self.store)} links")
        return self.view()

    async def load_public(self) -> GroupedView:
        """Replace the store with every public link (no session needed)."""
        self._cancel_refresh()
        fetched = await self.client.fetch_public_links()
        self.store.replace(fetched)
        self.public = True
        logger.info(f"🌐 Loaded {len(self.store)} public links")
        return self.view()

    async def add_link(self, draft: LinkDraft | Mapping[str, Any]) -> Link:
        """Create a link, then re-fetch.

        Raises:
            ValidationRejection: Draft rejected locally; nothing is sent
        """
        link = await self.client.create_link(draft)
        await self.refresh()
        return link

    async def delete_link(self, link_id: int) -> None:
        await self.client.delete_link(link_id)
        await self.refresh()

    def _require_link(self, link_id: int) -> Link:
        link = self.store.get(link_id)
        if link is None:
            raise NotFound(f"Link {link_id} not found")
        return link

    async def toggle_favorite(self, link_id: int, value: Optional[bool] = None) -> Link:
        """Flip (or set) the favorite flag on the server, then patch locally.

        Args:
            link_id: Link to update
            value: Explicit flag; toggles the stored value when None

        Raises:
            NotFound: ``value`` is None and the link is not in the store
        """
        if value is None:
            value = not self._require_link(link_id).is_favorite

        await self.client.set_favorite(link_id, value)
        patched = self.store.patch_favorite(link_id, value)
        return patched or self._require_link(link_id)

    async def open_link(self, link_id: int) -> Link:
        """Record an access on the server, then bump the local count.

        Returns:
            The updated link, whose ``url`` the caller opens
        """
        self._require_link(link_id)
        await self.client.increment_access(link_id)
        patched = self.store.patch_access(link_id)
        return patched or self._require_link(link_id)

    async def autofill(self, draft: LinkDraft | Mapping[str, Any]) -> Optional[LinkDraft]:
        """Fill empty description and tags from the page metadata.

        Failures are logged and ignored.

        Returns:
            Completed draft, or None if metadata could not be fetched
        """
        if not isinstance(draft, LinkDraft):
            draft = LinkDraft.model_validate(dict(draft))

        try:
            metadata = await self.client.fetch_metadata(draft.url or "")
        except LinkVaultError as e:
            logger.warning(f"⚠️ Metadata lookup failed for {draft.url}: {e}")
            return None

        updates: dict[str, Any] = {}
        if not draft.description:
            updates["description"] = metadata.description or metadata.title
        if not draft.tags and metadata.tags:
            updates["tags"] = validate_tags(metadata.tags).value
        return draft.model_copy(update=updates)

    # -------------------------------------------------------------------------
    # View
    # -------------------------------------------------------------------------

    def set_criteria(self, **changes: Any) -> GroupedView:
        """Change search, privacy, category or sort and return the new view."""
        return self.links.update(**changes)

    @property
    def criteria(self) -> QueryCriteria:
        return self.links.criteria

    def view(self) -> GroupedView:
        return self.links.current

    def categories(self) -> list[str]:
        return list(self.links.current.categories)


class AdminConsole:
    """Admin operations for users flagged ``isAdmin``.

    The ``is_admin`` check only hides the console from other users; the
    server decides whether each call is authorized.

    Args:
        client: Client exposing the admin endpoints
        session: Gate holding the current user
    """

    def __init__(self, client: IAdminClient, session: SessionGate):
        self.client  = client
        self.session = session

    def _require_admin(self) -> None:
        if not self.session.is_authenticated:
            raise AuthorizationFailure("Not logged in.")
        if not self.session.is_admin:
            raise PermissionDenied("Access denied. Admin privileges required.")

    async def list_users(self) -> list[User]:
        self._require_admin()
        return await self.client.admin_list_users()

    async def list_links(self) -> list[Link]:
        self._require_admin()
        return await self.client.admin_list_links()

    async def set_user_admin(self, user_id: int, is_admin: bool) -> None:
        self._require_admin()
        await self.client.admin_set_user_admin(user_id, is_admin)
        logger.info(f"🛡️ User {user_id} admin={is_admin}")

    async def delete_user(self, user_id: int) -> None:
        self._require_admin()
        await self.client.admin_delete_user(user_id)
        logger.info(f"🗑️ Deleted user {user_id}")

    async def delete_link(self, link_id: int) -> None:
        self._require_admin()
        await self.client.admin_delete_link(link_id)
        logger.info(f"🗑️ Deleted link {link_id}")

    async def lock_link(self, link_id: int, is_locked: bool = True) -> None:
        self._require_admin()
        await self.client.admin_lock_link(link_id, is_locked)
        logger.info(f"🔒 Link {link_id} locked={is_locked}")

    async def force_private(self, link_id: int) -> None:
        self._require_admin()
        await self.client.admin_force_private(link_id)
        logger.info(f"🔒 Link {link_id} forced private")


__all__ = ["AdminConsole", "LinkService"]
