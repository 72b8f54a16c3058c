"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Every credential is optional at load time; components ask for what they
  need through the require_* helpers, which raise ConfigurationError
- Settings are injected through FastAPI dependencies so tests can swap them
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from aireviewmate.errors import ConfigurationError

# Value shipped in the sample .env file
PLACEHOLDER_API_KEY = "your_gemini_api_key_here"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # Gemini Configuration
    # =========================================================================
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )

    gemini_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for code review"
    )

    # =========================================================================
    # GitHub OAuth Configuration
    # =========================================================================
    github_client_id: Optional[str] = Field(
        default=None,
        description="OAuth App client ID"
    )

    github_client_secret: Optional[str] = Field(
        default=None,
        description="OAuth App client secret"
    )

    github_redirect_uri: Optional[str] = Field(
        default=None,
        description="OAuth callback URL registered with the OAuth App"
    )

    github_api_base: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL"
    )

    github_oauth_base: str = Field(
        default="https://github.com/login/oauth",
        description="GitHub OAuth base URL"
    )

    default_base_branch: str = Field(
        default="main",
        description="Branch pull requests are opened against when none is given"
    )

    # =========================================================================
    # Front-end Configuration
    # =========================================================================
    client_url: str = Field(
        default="http://localhost:5173",
        description="Front-end origin for CORS and OAuth redirects"
    )

    # =========================================================================
    # Request Limits
    # =========================================================================
    max_code_length: int = Field(
        default=10000,
        ge=1,
        description="Maximum number of characters accepted for review"
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="Timeout applied to every outbound HTTP call"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    environment: str = Field(
        default="production",
        description="Runtime mode; 'development' adds stack traces to error bodies"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("client_url", "github_api_base", "github_oauth_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def has_gemini_api_key(self) -> bool:
        """True when a real (non-placeholder) API key is configured."""
        key = (self.gemini_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY

    @property
    def cors_origins(self) -> List[str]:
        return [self.client_url]

    def require_gemini_api_key(self) -> str:
        """
        Get the Gemini API key.

        Returns:
            API key content

        Raises:
            ConfigurationError: If the key is unset or still the placeholder
        """
        if not self.has_gemini_api_key:
            raise ConfigurationError(
                "API key not configured. Please set GEMINI_API_KEY in your .env "
                "file with a valid API key from https://aistudio.google.com/app/apikey"
            )
        return self.gemini_api_key.strip()

    def require_oauth_login(self) -> None:
        """Ensure the values needed to start the OAuth flow are present."""
        missing = [
            name for name, value in (
                ("GITHUB_CLIENT_ID", self.github_client_id),
                ("GITHUB_REDIRECT_URI", self.github_redirect_uri),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing {' or '.join(missing)} environment variables",
                title="GitHub OAuth not configured"
            )

    def require_oauth_exchange(self) -> None:
        """Ensure the values needed to exchange an authorization code are present."""
        if not self.github_client_id or not self.github_client_secret:
            raise ConfigurationError(
                "GitHub OAuth not configured. Please set GITHUB_CLIENT_ID and "
                "GITHUB_CLIENT_SECRET in your .env file.",
                title="GitHub OAuth not configured"
            )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once,
    which is important for performance and consistency.

    Returns:
        Settings instance
    """
    return Settings()
