"""Tests for the session/auth gate and its file storage."""

import json
import os
import stat
from urllib.parse import quote

import pytest

from conftest import TOKEN
from linkvault.models import Session, User
from linkvault.session import LogoutReason, SessionGate, SessionState, SessionStorage


class TestTransitions:
    def test_starts_anonymous(self):
        gate = SessionGate()

        assert gate.state == SessionState.ANONYMOUS
        assert gate.token is None
        assert gate.auth_headers() == {}
        assert not gate.is_admin

    def test_authenticate(self, gate, user_data):
        session = gate.authenticate(TOKEN, user_data)

        assert gate.state == SessionState.AUTHENTICATED
        assert session.user.username == "alice"
        assert gate.auth_headers() == {"Authorization": f"Bearer {TOKEN}"}

    def test_adopt_auth_response(self, gate, auth_payload):
        gate.adopt_auth_response(auth_payload)

        assert gate.token == TOKEN

    @pytest.mark.parametrize("payload", [{}, {"token": "t"}, {"user": {"id": 1, "username": "x"}}])
    def test_adopt_auth_response_requires_token_and_user(self, gate, payload):
        with pytest.raises(ValueError):
            gate.adopt_auth_response(payload)
        assert not gate.is_authenticated

    def test_admin_flag(self, gate, admin_data):
        gate.authenticate("t", admin_data)

        assert gate.is_admin

    def test_logout_runs_listeners_once(self, logged_in_gate):
        reasons = []
        logged_in_gate.on_logout(reasons.append)

        assert logged_in_gate.logout()
        assert not logged_in_gate.logout()

        assert reasons == [LogoutReason.EXPLICIT]
        assert logged_in_gate.state == SessionState.ANONYMOUS

    def test_new_login_replaces_session(self, logged_in_gate, admin_data):
        logged_in_gate.authenticate("other", admin_data)

        assert logged_in_gate.user.username == "root"
        assert logged_in_gate.token == "other"


class TestAuthorizationFailed:
    def test_repeated_failures_log_out_once(self, logged_in_gate):
        reasons = []
        logged_in_gate.on_logout(reasons.append)

        results = [logged_in_gate.authorization_failed(TOKEN) for _ in range(5)]

        assert results == [True, False, False, False, False]
        assert reasons == [LogoutReason.UNAUTHORIZED]

    def test_stale_token_is_ignored(self, logged_in_gate, user_data):
        logged_in_gate.authenticate("fresh-token", user_data)

        assert not logged_in_gate.authorization_failed(TOKEN)
        assert logged_in_gate.token == "fresh-token"

    def test_anonymous_failure_is_ignored(self):
        assert not SessionGate().authorization_failed(None)


class TestOAuthCallback:
    def callback(self, user: dict, token: str = "oauth-token", extra: str = "") -> str:
        return f"http://app.test/?token={token}&user={quote(json.dumps(user))}{extra}"

    def test_adopts_token_and_user(self, gate):
        cleaned = gate.adopt_oauth_callback(
            self.callback({"id": 3, "username": "gina", "email": "g@example.com", "isAdmin": False})
        )

        assert gate.token == "oauth-token"
        assert gate.user.email == "g@example.com"
        assert cleaned == "http://app.test/"

    def test_keeps_unrelated_parameters(self, gate):
        cleaned = gate.adopt_oauth_callback(self.callback({"id": 3, "username": "gina"}, extra="&tab=2"))

        assert "token" not in cleaned
        assert "user" not in cleaned
        assert "tab=2" in cleaned

    def test_bad_user_json_still_clears_parameters(self, gate):
        cleaned = gate.adopt_oauth_callback("http://app.test/?token=abc&user=%7Bnot-json")

        assert not gate.is_authenticated
        assert cleaned == "http://app.test/"

    def test_token_without_user_is_not_adopted(self, gate):
        cleaned = gate.adopt_oauth_callback("http://app.test/?token=abc")

        assert not gate.is_authenticated
        assert cleaned == "http://app.test/"

    def test_url_without_parameters_is_untouched(self, gate):
        url = "http://app.test/links?page=2"

        assert gate.adopt_oauth_callback(url) == url
        assert not gate.is_authenticated


class TestStorage:
    def test_session_persists_across_gates(self, session_file, user_data):
        SessionGate(SessionStorage(session_file)).authenticate(TOKEN, user_data)

        restored = SessionGate(SessionStorage(session_file))
        session = restored.restore()

        assert session.token == TOKEN
        assert restored.user.username == "alice"

    def test_file_is_owner_only(self, logged_in_gate, session_file):
        mode = stat.S_IMODE(os.stat(session_file).st_mode)

        assert mode == 0o600

    def test_logout_removes_file(self, logged_in_gate, session_file):
        logged_in_gate.logout()

        assert not session_file.exists()

    def test_corrupt_file_is_discarded(self, session_file):
        session_file.write_text("{not json", encoding="utf-8")

        assert SessionStorage(session_file).load() is None
        assert not session_file.exists()

    def test_missing_file(self, session_file):
        assert SessionGate(SessionStorage(session_file)).restore() is None

    def test_round_trip_keeps_admin_flag(self, session_file):
        storage = SessionStorage(session_file)
        storage.save(Session(user=User(id=1, username="root", is_admin=True), token="t"))

        assert storage.load().user.is_admin
