"""Unit tests for CLI commands."""

import json

import httpx
import pytest
import typer
from rich.console import Console
from typer.testing import CliRunner

from conftest import TOKEN
from linkvault import cli
from linkvault.cli import app
from linkvault.service import LinkService
from linkvault.session import SessionGate, SessionStorage

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, make_client, session_file):
    """Point the CLI at the fake server and a temporary session file."""

    def _build() -> LinkService:
        gate = SessionGate(SessionStorage(session_file))
        service = LinkService(client=make_client(gate), session=gate)
        service.restore()
        return service

    monkeypatch.setattr(cli, "build_service", _build)
    monkeypatch.setattr(cli, "console", Console(width=200))


@pytest.fixture
def logged_in(session_file, user_data):
    SessionGate(SessionStorage(session_file)).authenticate(TOKEN, user_data)


@pytest.fixture
def logged_in_admin(session_file, admin_data):
    SessionGate(SessionStorage(session_file)).authenticate("admin-token", admin_data)


@pytest.fixture
def with_links(server, links_payload):
    server.on("GET", "/api/links", httpx.Response(200, json=links_payload))
    return server


def test_cli_app_exists():
    assert isinstance(app, typer.Typer)


# =============================================================================
# Session Commands
# =============================================================================


class TestSessionCommands:
    def test_login(self, server, auth_payload, session_file):
        server.on("POST", "/api/login", httpx.Response(200, json=auth_payload))

        result = runner.invoke(app, ["login", "alice", "--password", "secret"])

        assert result.exit_code == 0
        assert "Logged in as alice" in result.stdout
        assert session_file.exists()

    def test_login_prompts_for_password(self, server, auth_payload):
        server.on("POST", "/api/login", httpx.Response(200, json=auth_payload))

        result = runner.invoke(app, ["login", "alice"], input="secret\n")

        assert result.exit_code == 0

    def test_login_invalid_credentials(self, server, session_file):
        server.on("POST", "/api/login", httpx.Response(401, text="Invalid credentials"))

        result = runner.invoke(app, ["login", "alice", "--password", "wrongpw"])

        assert result.exit_code == 1
        assert "Login failed: Invalid credentials" in result.stdout
        assert not session_file.exists()

    def test_login_rejected_locally(self, server):
        result = runner.invoke(app, ["login", "alice", "--password", "123"])

        assert result.exit_code == 1
        assert "at least 6 characters" in result.stdout
        assert server.requests == []

    def test_register_weak_password(self, server):
        result = runner.invoke(app, ["register", "alice", "--password", "secret1"])

        assert result.exit_code == 1
        assert "uppercase" in result.stdout

    def test_register(self, server, auth_payload):
        server.on("POST", "/api/register", httpx.Response(200, json=auth_payload))

        result = runner.invoke(app, ["register", "alice", "--password", "Secret1"])

        assert result.exit_code == 0
        assert "Account created for alice" in result.stdout

    def test_whoami_anonymous(self):
        result = runner.invoke(app, ["whoami"])

        assert result.exit_code == 1
        assert "Not logged in" in result.stdout

    def test_whoami(self, logged_in):
        result = runner.invoke(app, ["whoami"])

        assert result.exit_code == 0
        assert "alice" in result.stdout

    def test_logout(self, logged_in, session_file):
        result = runner.invoke(app, ["logout"])

        assert result.exit_code == 0
        assert "Logged out" in result.stdout
        assert not session_file.exists()

    def test_oauth_url(self):
        result = runner.invoke(app, ["oauth-url"])

        assert result.exit_code == 0
        assert "http://links.test/api/auth/google" in result.stdout

    def test_oauth_callback(self, session_file):
        url = "http://app.test/?token=abc&user=%7B%22id%22%3A2%2C%22username%22%3A%22gina%22%7D"

        result = runner.invoke(app, ["oauth-callback", url])

        assert result.exit_code == 0
        assert "Logged in as gina" in result.stdout
        assert session_file.exists()

    def test_oauth_callback_without_session(self):
        result = runner.invoke(app, ["oauth-callback", "http://app.test/?token=abc"])

        assert result.exit_code == 1


# =============================================================================
# Link Commands
# =============================================================================


class TestLinkCommands:
    def test_links(self, logged_in, with_links):
        result = runner.invoke(app, ["links"])

        assert result.exit_code == 0
        assert "2024-01-03" in result.stdout
        assert "PyPI" in result.stdout
        assert "5 of 5 links" in result.stdout
        assert result.stdout.index("2024-01-03") < result.stdout.index("2024-01-01")

    def test_links_search(self, logged_in, with_links):
        result = runner.invoke(app, ["links", "--search", "python", "--sort", "access-desc"])

        assert result.exit_code == 0
        assert "2 of 5 links" in result.stdout
        assert "GitHub" not in result.stdout

    def test_links_empty_view(self, logged_in, with_links):
        result = runner.invoke(app, ["links", "--privacy", "private", "--category", "news"])

        assert result.exit_code == 0
        assert "No links found" in result.stdout

    def test_links_bad_option(self, logged_in, with_links):
        result = runner.invoke(app, ["links", "--sort", "random"])

        assert result.exit_code == 2

    def test_links_anonymous(self, server):
        result = runner.invoke(app, ["links"])

        assert result.exit_code == 1
        assert "Not logged in" in result.stdout
        assert server.requests == []

    def test_links_public(self, server, links_payload):
        server.on("GET", "/api/public-links", httpx.Response(200, json=links_payload))

        result = runner.invoke(app, ["links", "--public"])

        assert result.exit_code == 0
        assert "Owner" in result.stdout

    def test_categories(self, logged_in, with_links):
        result = runner.invoke(app, ["categories"])

        assert result.exit_code == 0
        assert "news" in result.stdout
        assert "uncategorized" in result.stdout

    def test_add(self, logged_in, with_links):
        with_links.on("POST", "/api/links", httpx.Response(200, json={"id": 11}))

        result = runner.invoke(app, ["add", "example.com", "--tags", "a, b", "--private"])

        assert result.exit_code == 0
        assert "Saved link 11" in result.stdout

    def test_add_with_autofill(self, logged_in, with_links):
        with_links.on(
            "GET",
            "/api/metadata",
            httpx.Response(200, json={"title": "Example Domain", "description": "", "tags": []}),
        )
        with_links.on("POST", "/api/links", httpx.Response(200, json={"id": 12}))

        result = runner.invoke(app, ["add", "example.com", "--autofill"])

        assert result.exit_code == 0
        assert b"Example Domain" in with_links.calls("POST", "/api/links")[0].content

    def test_add_rejected(self, logged_in, server):
        result = runner.invoke(app, ["add", "ftp://example.com"])

        assert result.exit_code == 1
        assert "Only HTTP and HTTPS" in result.stdout
        assert server.requests == []

    def test_delete(self, logged_in, with_links):
        with_links.on("DELETE", "/api/links/3", httpx.Response(200))

        result = runner.invoke(app, ["delete", "3", "--yes"])

        assert result.exit_code == 0
        assert "Deleted link 3" in result.stdout

    def test_delete_aborted(self, logged_in, server):
        result = runner.invoke(app, ["delete", "3"], input="n\n")

        assert result.exit_code == 1
        assert server.requests == []

    def test_favorite(self, logged_in, with_links):
        with_links.on("PUT", "/api/links/3/favorite", httpx.Response(200))

        result = runner.invoke(app, ["favorite", "3"])

        assert result.exit_code == 0
        assert "now ★ favorite" in result.stdout

    def test_favorite_off(self, logged_in, with_links):
        with_links.on("PUT", "/api/links/5/favorite", httpx.Response(200))

        result = runner.invoke(app, ["favorite", "5", "--off"])

        assert result.exit_code == 0
        assert "not a favorite" in result.stdout

    def test_open(self, logged_in, with_links):
        with_links.on("PUT", "/api/links/3/access", httpx.Response(200))

        result = runner.invoke(app, ["open", "3"])

        assert result.exit_code == 0
        assert "https://news.ycombinator.com/" in result.stdout

    def test_open_unknown_link(self, logged_in, with_links):
        result = runner.invoke(app, ["open", "99"])

        assert result.exit_code == 1
        assert "Link 99 not found" in result.stdout


# =============================================================================
# Admin Commands
# =============================================================================


class TestAdminCommands:
    def test_non_admin_is_denied(self, logged_in, server):
        result = runner.invoke(app, ["admin", "users"])

        assert result.exit_code == 1
        assert "Admin privileges required" in result.stdout
        assert server.requests == []

    def test_users(self, logged_in_admin, server, admin_data, user_data):
        server.on("GET", "/api/admin/users", httpx.Response(200, json=[admin_data, user_data]))

        result = runner.invoke(app, ["admin", "users"])

        assert result.exit_code == 0
        assert "root" in result.stdout
        assert "alice" in result.stdout

    def test_force_private(self, logged_in_admin, server):
        server.on("PUT", "/api/admin/links/3/force-private", httpx.Response(200))

        result = runner.invoke(app, ["admin", "force-private", "3"])

        assert result.exit_code == 0
        assert "now private" in result.stdout

    def test_lock_and_unlock(self, logged_in_admin, server):
        server.on("PUT", "/api/admin/links/3/lock", httpx.Response(200))

        assert runner.invoke(app, ["admin", "lock", "3"]).exit_code == 0
        assert runner.invoke(app, ["admin", "lock", "3", "--unlock"]).exit_code == 0

        bodies = [json.loads(r.content) for r in server.calls("PUT", "/api/admin/links/3/lock")]
        assert bodies == [{"is_locked": True}, {"is_locked": False}]
