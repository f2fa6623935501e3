"""Session/auth gate.

Holds at most one session per process and decides whether requests are
made as an authenticated user or anonymously.

States:
    ANONYMOUS --login/register/OAuth callback--> AUTHENTICATED
    AUTHENTICATED --logout or 401--> ANONYMOUS

A 401 is tied to the token that was sent: only a failure for the current
token logs out, so a burst of failing requests triggers a single logout.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable, Mapping
from enum import StrEnum
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import httpx
from pydantic import ValidationError

from linkvault.logging import logger
from linkvault.models import Session, User
from linkvault.utils import redact_token

OAUTH_PARAMS = ("token", "user")


class SessionState(StrEnum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class LogoutReason(StrEnum):
    EXPLICIT = "explicit"
    UNAUTHORIZED = "unauthorized"


LogoutListener = Callable[[LogoutReason], None]


class SessionStorage:
    """Persists the session as JSON so it survives process restarts.

    Args:
        path: Session file; created with owner-only permissions
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Session | None:
        """Read the stored session; unreadable files are discarded."""
        if not self.path.exists():
            return None
        try:
            return Session.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning(f"⚠️ Discarding unreadable session file {self.path}: {exc}")
            self.clear()
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(session.model_dump_json(by_alias=True))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SessionGate:
    """Current credentials and the transitions between session states.

    Args:
        storage: Optional persistence; without it the session lives in memory

    Example:
        >>> gate = SessionGate()
        >>> gate.on_logout(lambda reason: store.clear())
        >>> gate.authenticate("tok", {"id": 1, "username": "alice"})
        >>> gate.authorization_failed("tok")
        True
        >>> gate.state
        <SessionState.ANONYMOUS: 'anonymous'>
    """

    def __init__(self, storage: SessionStorage | None = None) -> None:
        self._storage = storage
        self._session: Session | None = None
        self._listeners: list[LogoutListener] = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def state(self) -> SessionState:
        return SessionState.AUTHENTICATED if self._session else SessionState.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def token(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def is_admin(self) -> bool:
        return bool(self._session and self._session.user.is_admin)

    def auth_headers(self) -> dict[str, str]:
        """``Authorization`` header for the current session, if any."""
        if self._session is None:
            return {}
        return {"Authorization": f"Bearer {self._session.token}"}

    def on_logout(self, listener: LogoutListener) -> None:
        """Register a callback run once per transition to ANONYMOUS."""
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def restore(self) -> Session | None:
        """Adopt the persisted session, if there is one."""
        if self._storage is None:
            return None
        session = self._storage.load()
        if session is not None:
            self._session = session
            logger.debug(f"Restored session for {session.user.username}")
        return session

    def authenticate(self, token: str, user: User | Mapping[str, Any]) -> Session:
        """Replace any current session with a new one."""
        session = Session(
            token=token,
            user=user if isinstance(user, User) else User.model_validate(user),
        )
        self._session = session
        if self._storage is not None:
            self._storage.save(session)
        logger.info(
            f"🔑 Authenticated as {session.user.username} (token {redact_token(token)})"
        )
        return session

    def adopt_auth_response(self, payload: Mapping[str, Any]) -> Session:
        """Authenticate from a ``{token, user}`` login/registration body.

        Raises:
            ValueError: If the body has no token or user
        """
        token = payload.get("token")
        user = payload.get("user")
        if not token or not isinstance(user, Mapping):
            raise ValueError("Authentication response is missing token or user")
        return self.authenticate(str(token), user)

    def adopt_oauth_callback(self, url: str) -> str:
        """Adopt ``token``/``user`` query parameters from an OAuth redirect.

        The ``user`` parameter is URL-encoded JSON. Both parameters are
        removed from the returned URL whenever present so the token cannot
        be replayed from history or a shared link, even if parsing failed.

        Returns:
            The URL without the OAuth parameters
        """
        parsed = httpx.URL(url)
        if not any(name in parsed.params for name in OAUTH_PARAMS):
            return url

        token = parsed.params.get("token")
        user_raw = parsed.params.get("user")
        if token and user_raw:
            try:
                user_data = json.loads(unquote(user_raw))
                self.authenticate(token, user_data)
            except (ValueError, ValidationError) as exc:
                logger.error(f"❌ Error parsing OAuth callback: {exc}")
        else:
            logger.warning("⚠️ OAuth callback missing token or user parameter")

        for name in OAUTH_PARAMS:
            parsed = parsed.copy_remove_param(name)
        return str(parsed)

    def logout(self, reason: LogoutReason = LogoutReason.EXPLICIT) -> bool:
        """Drop the session.

        Returns:
            True if a session was dropped (listeners ran), False if already
            anonymous
        """
        if self._session is None:
            return False

        username = self._session.user.username
        self._session = None
        if self._storage is not None:
            self._storage.clear()

        logger.info(f"👋 Logged out {username} ({reason.value})")
        for listener in list(self._listeners):
            listener(reason)
        return True

    def authorization_failed(self, token: str | None) -> bool:
        """Handle a 401 for a request sent with ``token``.

        Only a failure for the current token forces a logout; stale failures
        from requests made under an earlier session are ignored.

        Returns:
            True if this call logged the session out
        """
        if self._session is None or token != self._session.token:
            return False
        logger.warning("⚠️ Authorization failed, session expired")
        return self.logout(LogoutReason.UNAUTHORIZED)
