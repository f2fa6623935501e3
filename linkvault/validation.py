"""Input sanitization and validation.

Every function here takes untrusted input and returns a
``ValidationResult``. Nothing raises for malformed input: callers inspect
``is_valid`` and decide how to surface the ``reason``.

Example:
    >>> from linkvault.validation import validate_url, validate_tags
    >>> validate_url("example.com").value
    'https://example.com/'
    >>> validate_url("http://localhost:8080").reason
    <RejectionReason.BLOCKED_HOST: 'blocked_host'>
    >>> validate_tags("a, , b,,c").value
    'a, b, c'
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import HttpUrl, TypeAdapter, ValidationError

from linkvault.models import LinkDraft
from linkvault.types import NewLinkData
from linkvault.utils import format_timestamp, parse_timestamp, utc_now_wire

MAX_TEXT_LENGTH = 1000
MAX_DESCRIPTION_LENGTH = 500
MAX_CATEGORY_LENGTH = 50
MAX_USERNAME_LENGTH = 50
MAX_TAGS = 10
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

TAG_SEPARATOR = ", "

BLOCKED_HOST_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"^localhost$",
        r"^127\.",
        r"^10\.",
        r"^172\.(1[6-9]|2[0-9]|3[01])\.",
        r"^192\.168\.",
        r"^169\.254\.",
        r"^0\.0\.0\.0$",
        r"^::1$",
        r"^fe80:",
    )
)

_HTTP_PREFIX_RE = re.compile(r"^https?://", re.IGNORECASE)
# A scheme followed by a digit is a host:port pair ("example.com:8080")
_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):(?!\d)")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_CATEGORY_RE = re.compile(r"^[A-Za-z0-9\s\-_]+$")
# ASCII lowercase, uppercase and digit, each required once on registration
_PASSWORD_CLASS_RES = (re.compile(r"[a-z]"), re.compile(r"[A-Z]"), re.compile(r"[0-9]"))

_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)


class RejectionReason(StrEnum):
    """Why an input was rejected."""

    REQUIRED = "required"
    INVALID_FORMAT = "invalid_format"
    SCHEME_NOT_ALLOWED = "scheme_not_allowed"
    BLOCKED_HOST = "blocked_host"
    INVALID_CATEGORY = "invalid_category"
    USERNAME_TOO_SHORT = "username_too_short"
    PASSWORD_TOO_SHORT = "password_too_short"
    PASSWORD_TOO_WEAK = "password_too_weak"
    INVALID_ID = "invalid_id"
    INVALID_TIMESTAMP = "invalid_timestamp"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one input.

    ``value`` holds the normalized value when valid and is ``None`` otherwise.
    """

    is_valid: bool
    value: Any = None
    reason: RejectionReason | None = None
    message: str = ""
    field: str | None = None


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


def _accept(value: Any) -> ValidationResult:
    return ValidationResult(is_valid=True, value=value)


def _reject(reason: RejectionReason, message: str, field: str | None = None) -> ValidationResult:
    return ValidationResult(is_valid=False, reason=reason, message=message, field=field)


# =============================================================================
# Text fields
# =============================================================================


def sanitize_text(value: Any, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Trim, strip ``<``/``>`` and truncate. Non-strings become ``""``.

    Example:
        >>> sanitize_text("  <b>bold</b>  ")
        'bbold/b'
    """
    if not isinstance(value, str) or not value:
        return ""
    return _ANGLE_BRACKETS_RE.sub("", value.strip())[:max_length]


def validate_description(value: Any) -> ValidationResult:
    """Sanitize a description and bound it to 500 characters. Never rejects."""
    return _accept(sanitize_text(value)[:MAX_DESCRIPTION_LENGTH])


def validate_tags(value: Any) -> ValidationResult:
    """Normalize a comma-separated tag list. Never rejects.

    Empty segments are dropped and at most ten tags are kept, in their
    original order. A list of tags is accepted as well.

    Example:
        >>> validate_tags(",".join(str(i) for i in range(12))).value
        '0, 1, 2, 3, 4, 5, 6, 7, 8, 9'
    """
    if isinstance(value, (list, tuple)):
        value = ",".join(tag for tag in value if isinstance(tag, str))
    if not isinstance(value, str) or not value:
        return _accept("")

    tags = [tag for tag in (sanitize_text(part) for part in value.split(",")) if tag]
    return _accept(TAG_SEPARATOR.join(tags[:MAX_TAGS]))


def validate_category(value: Any) -> ValidationResult:
    """Restrict a category to letters, digits, spaces, hyphens and underscores.

    Missing or empty input is valid and means "uncategorized"; input that
    sanitizes to nothing (only spaces or angle brackets) is rejected.

    Example:
        >>> validate_category("Books-2024").value
        'Books-2024'
        >>> validate_category("Books & Stuff").is_valid
        False
    """
    if value is None or value == "":
        return _accept("")

    sanitized = sanitize_text(value)[:MAX_CATEGORY_LENGTH]
    if not _CATEGORY_RE.match(sanitized):
        return _reject(
            RejectionReason.INVALID_CATEGORY,
            "Category can only contain letters, numbers, spaces, hyphens, and underscores",
            field="category",
        )
    return _accept(sanitized)


# =============================================================================
# URLs
# =============================================================================


def is_blocked_host(host: str) -> bool:
    """True for loopback, private-network and link-local hosts."""
    host = host.lower().strip("[]")
    return any(pattern.search(host) for pattern in BLOCKED_HOST_PATTERNS)


def validate_url(value: Any) -> ValidationResult:
    """Normalize a URL, allowing only public http(s) targets.

    Input without a scheme gets ``https://``. Missing input, an unparsable
    URL, a non-http(s) scheme and a blocked host are distinct rejections.

    Example:
        >>> validate_url("javascript:alert(1)").reason
        <RejectionReason.SCHEME_NOT_ALLOWED: 'scheme_not_allowed'>
    """
    if not isinstance(value, str) or not value.strip():
        return _reject(RejectionReason.REQUIRED, "URL is required", field="url")

    candidate = value.strip()
    if not _HTTP_PREFIX_RE.match(candidate):
        if _SCHEME_RE.match(candidate):
            return _reject(
                RejectionReason.SCHEME_NOT_ALLOWED,
                "Only HTTP and HTTPS URLs are allowed",
                field="url",
            )
        candidate = f"https://{candidate}"

    try:
        parsed = _HTTP_URL_ADAPTER.validate_python(candidate)
    except ValidationError:
        return _reject(RejectionReason.INVALID_FORMAT, "Invalid URL format", field="url")

    if parsed.scheme not in ("http", "https"):
        return _reject(
            RejectionReason.SCHEME_NOT_ALLOWED,
            "Only HTTP and HTTPS URLs are allowed",
            field="url",
        )

    if is_blocked_host(parsed.host or ""):
        return _reject(
            RejectionReason.BLOCKED_HOST,
            "Private/localhost URLs are not allowed",
            field="url",
        )

    return _accept(str(parsed))


# =============================================================================
# Credentials, IDs and timestamps
# =============================================================================


def validate_credentials(
    username: Any,
    password: Any,
    registration: bool = False,
) -> ValidationResult:
    """Check login or registration credentials.

    The username is sanitized and truncated to 50 characters; the password
    is only measured, never altered. Registration additionally requires an
    uppercase letter, a lowercase letter and a digit.

    Returns:
        Result whose ``value`` is a ``Credentials`` instance when valid
    """
    if not isinstance(username, str) or not username or not isinstance(password, str) or not password:
        return _reject(
            RejectionReason.REQUIRED,
            "Username and password are required",
            field="username" if not (isinstance(username, str) and username) else "password",
        )

    clean_username = sanitize_text(username)[:MAX_USERNAME_LENGTH]
    if len(clean_username) < MIN_USERNAME_LENGTH:
        return _reject(
            RejectionReason.USERNAME_TOO_SHORT,
            f"Username must be at least {MIN_USERNAME_LENGTH} characters long",
            field="username",
        )

    if len(password) < MIN_PASSWORD_LENGTH:
        return _reject(
            RejectionReason.PASSWORD_TOO_SHORT,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            field="password",
        )

    if registration and not all(pattern.search(password) for pattern in _PASSWORD_CLASS_RES):
        return _reject(
            RejectionReason.PASSWORD_TOO_WEAK,
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number",
            field="password",
        )

    return _accept(Credentials(username=clean_username, password=password))


def validate_link_id(value: Any) -> ValidationResult:
    """Accept positive integers only (``bool`` is not an ID)."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return _reject(RejectionReason.INVALID_ID, "Invalid link ID", field="id")
    return _accept(value)


def validate_timestamp(value: Any) -> ValidationResult:
    """Normalize a timestamp to the server's ``YYYY-MM-DD HH:MM:SS`` layout."""
    if not isinstance(value, (str, datetime)):
        return _reject(RejectionReason.INVALID_TIMESTAMP, "Invalid timestamp", field="created_at")
    try:
        parsed = parse_timestamp(value)
    except (ValueError, OverflowError):
        return _reject(RejectionReason.INVALID_TIMESTAMP, "Invalid timestamp", field="created_at")
    return _accept(format_timestamp(parsed))


# =============================================================================
# Composite
# =============================================================================


def validate_link_draft(draft: LinkDraft | Mapping[str, Any]) -> ValidationResult:
    """Validate every field of a new link and build the request body.

    Tags and category are only included when non-empty. ``created_at``
    defaults to the current UTC time.

    Returns:
        Result whose ``value`` is a ``NewLinkData`` dict when valid; the first
        failing field's rejection otherwise
    """
    if not isinstance(draft, LinkDraft):
        draft = LinkDraft.model_validate(dict(draft))

    url = validate_url(draft.url)
    if not url.is_valid:
        return url

    if draft.created_at:
        created_at = validate_timestamp(draft.created_at)
        if not created_at.is_valid:
            return created_at
        timestamp = created_at.value
    else:
        timestamp = utc_now_wire()

    body: NewLinkData = {
        "url": url.value,
        "description": validate_description(draft.description).value,
        "is_private": bool(draft.is_private),
        "created_at": timestamp,
    }

    tags = validate_tags(draft.tags).value
    if tags:
        body["tags"] = tags

    category = validate_category(draft.category)
    if not category.is_valid:
        return category
    if category.value:
        body["category"] = category.value

    return _accept(body)


__all__ = [
    "Credentials",
    "RejectionReason",
    "ValidationResult",
    "is_blocked_host",
    "sanitize_text",
    "validate_category",
    "validate_credentials",
    "validate_description",
    "validate_link_draft",
    "validate_link_id",
    "validate_tags",
    "validate_timestamp",
    "validate_url",
]
