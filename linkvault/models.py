"""Data models for linkvault.

Pydantic models validating the records exchanged with the links server:

1. ``User`` and ``Session`` for the authentication gate
2. ``Link`` for stored bookmarks (immutable; patches produce copies)
3. ``LinkDraft`` and ``LinkMetadata`` for link creation and auto-fill
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from linkvault.utils import date_key, format_timestamp, parse_timestamp

#: Category used when a link has none.
UNCATEGORIZED = "uncategorized"


# =============================================================================
# Users and sessions
# =============================================================================


class User(BaseModel):
    """Account as seen by the client.

    Attributes:
        id: Server-assigned user ID
        username: Login handle
        is_admin: Admin flag (``isAdmin`` on auth payloads, ``is_admin`` on
            admin listings)
        email: Present for OAuth accounts
        created_at: Account creation timestamp as sent by the server
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int
    username: str
    is_admin: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_admin", "isAdmin"),
        serialization_alias="isAdmin",
    )
    email: Optional[str] = None
    created_at: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt"),
        serialization_alias="createdAt",
    )


class Session(BaseModel):
    """An authenticated session. Never mutated; a new login replaces it."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    user: User
    token: str = Field(min_length=1)


# =============================================================================
# Links
# =============================================================================


class Link(BaseModel):
    """One stored bookmark.

    Attributes:
        id: Server-assigned, immutable identifier
        url: Absolute http(s) URL
        description: Optional free text
        tags: Comma-rendered tag list (``"a, b, c"``)
        category: Optional label; see ``effective_category``
        created_at: Creation time, naive UTC, second precision
        is_private: Visible only to the owner
        is_favorite: Owner-toggled flag
        access_count: Times the link was opened
        is_locked: Privacy locked by an admin
        user_id: Owner ID
        username: Owner name (public and admin listings only)
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int
    url: str
    description: Optional[str] = None
    tags: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    is_private: bool = False
    is_favorite: bool = False
    access_count: int = Field(default=0, ge=0)
    is_locked: bool = False
    user_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("user_id", "userId"),
        serialization_alias="userId",
    )
    username: Optional[str] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("access_count", mode="before")
    @classmethod
    def _coerce_access_count(cls, v: Any) -> int:
        return 0 if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> Optional[str]:
        if isinstance(v, list):
            return ", ".join(str(tag).strip() for tag in v if str(tag).strip())
        return v

    @field_serializer("created_at")
    def _serialize_created_at(self, v: datetime) -> Optional[str]:
        return format_timestamp(v)

    @property
    def effective_category(self) -> str:
        """``category``, or ``"uncategorized"`` when absent or empty."""
        return self.category or UNCATEGORIZED

    @property
    def tag_list(self) -> list[str]:
        """Tags split on commas, trimmed, empties dropped."""
        if not self.tags:
            return []
        return [tag.strip() for tag in self.tags.split(",") if tag.strip()]

    @property
    def date_key(self) -> date:
        """Calendar date bucket this link belongs to."""
        return date_key(self.created_at)

    @property
    def title(self) -> str:
        """Label used for display and alphabetical ordering."""
        return self.description or self.url


# =============================================================================
# Link creation
# =============================================================================


class LinkDraft(BaseModel):
    """Untrusted input for a new link, prior to validation."""

    model_config = ConfigDict(extra="ignore")

    url: Optional[str] = ""
    description: Optional[str] = ""
    tags: Optional[str | list[str]] = ""
    category: Optional[str] = ""
    is_private: bool = False
    created_at: Optional[str | datetime] = None


class LinkMetadata(BaseModel):
    """Page details returned by the metadata endpoint for auto-fill."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return v or ""

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v
