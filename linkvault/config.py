"""Configuration management for linkvault.

This module provides centralized configuration using Pydantic Settings.
Every field can be overridden with a ``LINKVAULT_`` prefixed environment
variable or a ``.env`` file in the working directory.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, human-readable output
    - PRODUCTION: Structured JSON logs, conservative retries
    - TESTING: Minimal logging, no file output, no retries
    - STAGING: Production-like with more logging

Example:
    >>> from linkvault.config import settings, SortMode
    >>> print(settings.api_base_url)
    http://localhost:8080
    >>> SortMode.ACCESS_DESC.value
    'access-desc'
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PrivacyFilter(StrEnum):
    """Privacy/favorite filter applied by the query engine."""

    ALL = "all"
    PUBLIC = "public"
    PRIVATE = "private"
    FAVORITES = "favorites"


class SortMode(StrEnum):
    """Ordering applied to links before they are re-grouped by date."""

    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    ALPHABETICAL = "alphabetical"
    ACCESS_DESC = "access-desc"
    CATEGORY = "category"


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, human-readable output
        PRODUCTION: Conservative settings, JSON logs
        TESTING: Minimal logging, fast execution
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        api_base_url: Base URL of the links server (no trailing slash)
        request_timeout: Overall HTTP timeout in seconds
        retry_attempts: Attempts for idempotent GET requests
        api_rate_limit_max: Requests allowed per endpoint per window
        api_rate_limit_window_ms: Endpoint rate limit window in milliseconds
        login_rate_limit_max: Login/registration attempts per window
        login_rate_limit_window_ms: Login rate limit window in milliseconds
        data_dir: Directory holding the session file and logs
        session_file: Where the current session is persisted
    """

    model_config = SettingsConfigDict(
        env_prefix="LINKVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # API Configuration
    api_base_url: str = Field(
        "http://localhost:8080",
        description="Base URL of the links server",
    )
    request_timeout: float = Field(
        10.0,
        gt=0,
        le=120,
        description="Overall request timeout in seconds",
    )
    retry_attempts: int = Field(
        3,
        ge=1,
        le=10,
        description="Maximum attempts for idempotent GET requests",
    )
    http2: bool = Field(
        default=True,
        description="Negotiate HTTP/2 when the server supports it",
    )

    # Client-side rate limiting
    api_rate_limit_max: int = Field(10, ge=1, description="Requests per endpoint per window")
    api_rate_limit_window_ms: int = Field(60_000, ge=1, description="Endpoint window (ms)")
    login_rate_limit_max: int = Field(5, ge=1, description="Login attempts per window")
    login_rate_limit_window_ms: int = Field(60_000, ge=1, description="Login window (ms)")

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("~/.linkvault"),
        validate_default=True,
        description="Base directory for the session file and logs",
    )
    session_file: Path = Field(
        Path("session.json"),  # Resolved against data_dir by validator
        description="Session persistence file (defaults to data_dir/session.json)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        path = Path(v).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def resolve_session_file(self) -> "Settings":
        """Place a relative session file inside data_dir."""
        if not self.session_file.is_absolute():
            self.session_file = self.data_dir / self.session_file
        return self

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: JSON logs, DEBUG downgraded to INFO
            - DEVELOPMENT: DEBUG logging, human-readable output
            - TESTING: ERROR logging, no file logging, single attempt
            - STAGING: INFO logging, JSON output

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False

        elif self.environment == Environment.TESTING:
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.retry_attempts = 1

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True

        return self

    @property
    def log_file(self) -> Optional[Path]:
        """Log file path when file logging is enabled."""
        return self.data_dir / "linkvault.log" if self.log_to_file else None

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING


def get_settings() -> Settings:
    """Get a fresh settings instance from the environment.

    Returns:
        Configured Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
