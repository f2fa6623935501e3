"""linkvault - bookmark manager client.

This package talks to a links server: it authenticates users, keeps a local
store of their links grouped by date, and answers search, filter and sort
queries over that store.

Example:
    >>> from linkvault import LinkService, SortMode
    >>> import asyncio
    >>>
    >>> async def main():
    ...     service = LinkService()
    ...     await service.login("alice", "Secret123")
    ...     await service.refresh()
    ...     view = service.set_criteria(sort=SortMode.ACCESS_DESC)
    ...     print(view.dates)
    ...     await service.close()
    >>>
    >>> asyncio.run(main())
"""

from linkvault.api import LinksClient
from linkvault.config import PrivacyFilter, SortMode, settings
from linkvault.errors import (
    AuthorizationFailure,
    LinkVaultError,
    MalformedPayload,
    NetworkFailure,
    NotFound,
    PermissionDenied,
    RateLimited,
    ServerError,
    ValidationRejection,
)
from linkvault.models import Link, LinkDraft, LinkMetadata, Session, User
from linkvault.query import GroupedView, LinkView, QueryCriteria, compute_view
from linkvault.ratelimit import RateLimiter, is_limited
from linkvault.service import AdminConsole, LinkService
from linkvault.session import SessionGate, SessionStorage
from linkvault.store import LinkStore
from linkvault.validation import (
    sanitize_text,
    validate_category,
    validate_credentials,
    validate_tags,
    validate_url,
)

__version__ = "0.1.0"

__all__ = [
    # Main components
    "LinkService",
    "AdminConsole",
    "LinksClient",
    "SessionGate",
    "SessionStorage",
    "LinkStore",
    "LinkView",
    "RateLimiter",
    # Configuration
    "settings",
    "PrivacyFilter",
    "SortMode",
    # Models
    "Link",
    "LinkDraft",
    "LinkMetadata",
    "Session",
    "User",
    # Queries
    "QueryCriteria",
    "GroupedView",
    "compute_view",
    # Validation
    "sanitize_text",
    "validate_url",
    "validate_tags",
    "validate_category",
    "validate_credentials",
    "is_limited",
    # Errors
    "LinkVaultError",
    "ValidationRejection",
    "AuthorizationFailure",
    "PermissionDenied",
    "RateLimited",
    "NetworkFailure",
    "ServerError",
    "NotFound",
    "MalformedPayload",
]
