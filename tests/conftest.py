"""Pytest configuration and shared fixtures for linkvault tests."""

import os
import sys
import tempfile

# Settings are read at import time; pin them before linkvault is imported
os.environ["LINKVAULT_ENVIRONMENT"] = "testing"
os.environ["LINKVAULT_DATA_DIR"] = tempfile.mkdtemp(prefix="linkvault-tests-")
os.environ["LINKVAULT_API_BASE_URL"] = "http://links.test"

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from loguru import logger
from tenacity import wait_none

from linkvault.api import LinksClient
from linkvault.models import Link
from linkvault.ratelimit import RateLimiter, rate_limiter
from linkvault.session import SessionGate, SessionStorage
from linkvault.store import LinkStore

BASE_URL = "http://links.test"
TOKEN = "tok_abcdefghijklmnop"


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """The process-wide limiter must not leak attempts between tests."""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


# =============================================================================
# Fake Clock and Server
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Reply = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class FakeServer:
    """Routes requests to canned replies and records what was sent.

    Each route holds a queue of replies; the last one repeats forever.
    Unrouted requests get a plain-text 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Reply) -> "FakeServer":
        self.routes[(method.upper(), path)] = list(replies)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, text="Not found")

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return reply(request)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def user_data() -> dict[str, Any]:
    """User record as sent on login."""
    return {
        "id": 7,
        "username": "alice",
        "isAdmin": False,
        "createdAt": "2024-01-01T00:00:00Z",
    }


@pytest.fixture
def admin_data() -> dict[str, Any]:
    return {"id": 1, "username": "root", "isAdmin": True}


@pytest.fixture
def auth_payload(user_data: dict[str, Any]) -> dict[str, Any]:
    return {"token": TOKEN, "user": user_data}


def link_record(link_id: int, created_at: str, **fields: Any) -> dict[str, Any]:
    """Link record in the server's wire shape."""
    record: dict[str, Any] = {
        "id": link_id,
        "userId": 7,
        "url": f"https://example.com/{link_id}",
        "description": "",
        "tags": "",
        "category": "",
        "created_at": created_at,
        "is_private": False,
        "is_favorite": False,
        "access_count": 0,
        "is_locked": False,
    }
    record.update(fields)
    return record


def make_link(link_id: int, created_at: str = "2024-01-01 12:00:00", **fields: Any) -> Link:
    return Link.model_validate(link_record(link_id, created_at, **fields))


@pytest.fixture
def links_payload() -> dict[str, list[dict[str, Any]]]:
    """Grouped ``GET /api/links`` body over three days."""
    return {
        "2024-01-03": [
            link_record(
                5,
                "2024-01-03 09:00:00",
                url="https://docs.python.org/3/",
                description="Python docs",
                tags="python, docs",
                category="reading",
                is_favorite=True,
                access_count=12,
            ),
        ],
        "2024-01-02": [
            link_record(
                3,
                "2024-01-02 18:30:00",
                url="https://news.ycombinator.com/",
                description="Hacker News",
                tags="news",
                category="news",
                access_count=30,
            ),
            link_record(
                4,
                "2024-01-02 08:15:00",
                url="https://example.org/secret",
                description="private notes",
                is_private=True,
                access_count=2,
            ),
        ],
        "2024-01-01": [
            link_record(
                1,
                "2024-01-01 10:00:00",
                url="https://pypi.org/",
                description="PyPI",
                tags="python, packages",
                category="Reading",
                access_count=5,
            ),
            link_record(
                2,
                "2024-01-01 11:00:00",
                url="https://github.com/",
                description="GitHub",
                tags="code",
                is_favorite=True,
                access_count=5,
            ),
        ],
    }


@pytest.fixture
def store(links_payload: dict[str, list[dict[str, Any]]]) -> LinkStore:
    return LinkStore.from_payload(links_payload)


# =============================================================================
# Session and Client
# =============================================================================


@pytest.fixture
def session_file(tmp_path: Path) -> Path:
    return tmp_path / "session.json"


@pytest.fixture
def gate(session_file: Path) -> SessionGate:
    return SessionGate(SessionStorage(session_file))


@pytest.fixture
def logged_in_gate(gate: SessionGate, user_data: dict[str, Any]) -> SessionGate:
    gate.authenticate(TOKEN, user_data)
    return gate


@pytest.fixture
def make_client(server: FakeServer) -> Callable[..., LinksClient]:
    """Factory for clients wired to the fake server, retrying without delay."""

    def _make(session: SessionGate, **kwargs: Any) -> LinksClient:
        kwargs.setdefault("retry_attempts", 3)
        kwargs.setdefault("retry_wait", wait_none())
        kwargs.setdefault("limiter", RateLimiter())
        return LinksClient(
            session=session,
            base_url=BASE_URL,
            transport=httpx.MockTransport(server),
            **kwargs,
        )

    return _make


@pytest.fixture
def client(make_client: Callable[..., LinksClient], logged_in_gate: SessionGate) -> LinksClient:
    return make_client(logged_in_gate)


@pytest.fixture
def anon_client(make_client: Callable[..., LinksClient], gate: SessionGate) -> LinksClient:
    return make_client(gate)
