"""Type definitions for linkvault wire payloads.

TypedDicts describing the JSON exchanged with the links server. The
Pydantic models in ``linkvault.models`` validate these shapes; the
TypedDicts document what the client sends and receives.

Example:
    >>> from linkvault.types import LinkData
    >>> link: LinkData = {
    ...     "id": 1,
    ...     "url": "https://example.com/",
    ...     "created_at": "2024-01-01 09:00:00",
    ...     "is_private": False,
    ... }
"""

from typing import NotRequired, Required, TypedDict


class UserData(TypedDict, total=False):
    """User record as returned by login, registration and OAuth.

    Attributes:
        id: Required unique identifier
        username: Required username
        isAdmin: Admin flag (``is_admin`` on admin endpoints)
        createdAt: Account creation timestamp
    """

    id: Required[int]
    username: Required[str]
    isAdmin: NotRequired[bool]
    is_admin: NotRequired[bool]
    email: NotRequired[str | None]
    createdAt: NotRequired[str]


class LinkData(TypedDict, total=False):
    """Link record as returned by the links endpoints.

    ``username`` is only present on public and admin listings.
    """

    id: Required[int]
    url: Required[str]
    created_at: Required[str]
    userId: NotRequired[int]
    description: NotRequired[str | None]
    tags: NotRequired[str | None]
    category: NotRequired[str | None]
    is_private: NotRequired[bool]
    is_favorite: NotRequired[bool]
    access_count: NotRequired[int | None]
    is_locked: NotRequired[bool]
    username: NotRequired[str]


class NewLinkData(TypedDict, total=False):
    """Body of ``POST /api/links`` after validation."""

    url: Required[str]
    description: Required[str]
    is_private: Required[bool]
    created_at: Required[str]
    tags: NotRequired[str]
    category: NotRequired[str]


class AuthResponseData(TypedDict):
    """Body of a successful login or registration."""

    token: str
    user: UserData


class MetadataData(TypedDict, total=False):
    """Body of ``GET /api/metadata``."""

    title: str
    description: str
    tags: list[str]


# Links grouped by ``YYYY-MM-DD`` date key, as sent by the server
LinksPayload = dict[str, list[LinkData]]
