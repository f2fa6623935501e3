"""Unit tests for the error taxonomy."""

import pytest

from linkvault.errors import (
    AuthorizationFailure,
    LinkVaultError,
    MalformedPayload,
    NotFound,
    PermissionDenied,
    RateLimited,
    ServerError,
    error_from_status,
    extract_server_message,
)


class TestExtractServerMessage:
    @pytest.mark.parametrize(
        "body, expected",
        [
            ("Link not found\n", "Link not found"),
            ('{"error": {"code": "BAD", "message": "Bad input"}}', "Bad input"),
            ('{"message": "Username already exists"}', "Username already exists"),
            ('{"error": "Invalid URL"}', "Invalid URL"),
            ('{"detail": "Nope"}', "Nope"),
            ("", ""),
            ("   ", ""),
        ],
    )
    def test_shapes(self, body, expected):
        assert extract_server_message(body) == expected

    def test_unknown_json_falls_back_to_raw_text(self):
        assert extract_server_message('{"status": 1}') == '{"status": 1}'

    def test_json_list(self):
        assert extract_server_message("[1, 2]") == "[1, 2]"


class TestErrorFromStatus:
    def test_401(self):
        error = error_from_status(401, "Invalid token")

        assert isinstance(error, AuthorizationFailure)
        assert error.message == "Session expired. Please login again."

    def test_403(self):
        error = error_from_status(403, "Admin access required")

        assert isinstance(error, PermissionDenied)
        assert error.message == "Admin access required"

    def test_404_default_message(self):
        error = error_from_status(404)

        assert isinstance(error, NotFound)
        assert error.status_code == 404
        assert error.message == "Not found"

    def test_429_carries_retry_after(self):
        error = error_from_status(429, "", retry_after=30)

        assert isinstance(error, RateLimited)
        assert error.retry_after == 30

    def test_409_keeps_server_text(self):
        error = error_from_status(409, "Username already exists")

        assert type(error) is ServerError
        assert error.code == "CONFLICT"
        assert error.message == "Username already exists"
        assert not error.is_transient

    def test_5xx_is_transient(self):
        error = error_from_status(503)

        assert error.is_transient
        assert error.message == "HTTP Error: 503"
        assert error.code == "SERVICE_UNAVAILABLE"

    def test_unknown_status_code(self):
        assert error_from_status(418).code == "ERROR"


def test_hierarchy():
    error = MalformedPayload("Expected a list")

    assert isinstance(error, ServerError)
    assert isinstance(error, LinkVaultError)
    assert error.code == "MALFORMED_PAYLOAD"
    assert str(error) == "Expected a list"
