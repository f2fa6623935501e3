"""Unit tests for configuration management."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from linkvault.config import Environment, PrivacyFilter, Settings, SortMode


class TestEnumClasses:
    def test_privacy_filter_values(self):
        assert [f.value for f in PrivacyFilter] == ["all", "public", "private", "favorites"]

    def test_sort_mode_values(self):
        assert SortMode.DATE_DESC == "date-desc"
        assert SortMode.ACCESS_DESC == "access-desc"
        assert SortMode("alphabetical") is SortMode.ALPHABETICAL


class TestSettings:
    """Tests for Settings class."""

    def test_testing_profile(self):
        settings = Settings()

        assert settings.environment == Environment.TESTING
        assert settings.is_testing
        assert settings.log_level == "ERROR"
        assert settings.log_file is None
        assert settings.retry_attempts == 1

    def test_rate_limit_defaults(self):
        settings = Settings()

        assert settings.api_rate_limit_max == 10
        assert settings.api_rate_limit_window_ms == 60_000
        assert settings.login_rate_limit_max == 5
        assert settings.request_timeout == 10.0

    def test_base_url_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LINKVAULT_API_BASE_URL", "https://links.example.com/ ")

        assert Settings().api_base_url == "https://links.example.com"

    def test_base_url_requires_http(self, monkeypatch):
        monkeypatch.setenv("LINKVAULT_API_BASE_URL", "links.example.com")

        with pytest.raises(ValidationError):
            Settings()

    def test_session_file_defaults_into_data_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LINKVAULT_DATA_DIR", str(tmp_path / "vault"))

        settings = Settings()

        assert settings.data_dir.is_dir()
        assert settings.session_file == tmp_path.resolve() / "vault" / "session.json"

    def test_absolute_session_file_is_kept(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LINKVAULT_SESSION_FILE", str(tmp_path / "elsewhere.json"))

        assert Settings().session_file == tmp_path / "elsewhere.json"

    def test_production_profile(self, monkeypatch):
        monkeypatch.setenv("LINKVAULT_ENVIRONMENT", "production")
        monkeypatch.setenv("LINKVAULT_LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.is_production
        assert settings.log_level == "INFO"
        assert settings.log_json
        assert isinstance(settings.log_file, Path)

    def test_invalid_timeout(self, monkeypatch):
        monkeypatch.setenv("LINKVAULT_REQUEST_TIMEOUT", "0")

        with pytest.raises(ValidationError):
            Settings()
