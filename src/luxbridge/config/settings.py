"""Configuration settings for the LuxBridge MCP server using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. TTL defaults mirror the lifetimes the OAuth and session layers
    are designed around; override them per deployment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        alias="MCP_DEBUG",
        description="Enable debug mode with verbose logging",
    )

    # ========================================
    # Server Settings
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=8051,
        ge=1024,
        le=65535,
        description="Server port number",
    )

    transport: str = Field(
        default="http",
        description="Transport mode (http, sse or stdio)",
    )

    # ========================================
    # Credential Store Settings
    # ========================================
    store_backend: str = Field(
        default="redis",
        description="Credential store backend (redis or memory)",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the credential store",
    )

    # ========================================
    # Platform API Settings
    # ========================================
    platform_api_base_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the platform APIs; requests go to {base}/{platform}{endpoint}",
    )

    platform_request_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout in seconds for outbound platform API calls",
    )

    # ========================================
    # OAuth2 Settings
    # ========================================
    oauth2_issuer: str | None = Field(
        default=None,
        description="OAuth2 issuer URL",
    )

    auth_code_ttl: int = Field(
        default=600,
        ge=1,
        description="Authorization code lifetime in seconds",
    )

    bridge_token_ttl: int = Field(
        default=2_592_000,
        ge=1,
        description="Bridge access token lifetime in seconds (30 days)",
    )

    # ========================================
    # Session Settings
    # ========================================
    session_ttl: int = Field(
        default=86_400,
        ge=60,
        description="Sliding session lifetime in seconds",
    )

    platform_link_ttl: int = Field(
        default=86_400,
        ge=60,
        description="Maximum lifetime in seconds of a user-indexed platform link",
    )

    auth_link_ttl: int = Field(
        default=600,
        ge=60,
        description="Lifetime in seconds advertised for generated platform auth links",
    )

    session_cleanup_interval: int = Field(
        default=3600,
        ge=0,
        description="Seconds between expired-session sweeps (0 disables the sweep)",
    )

    # ========================================
    # Privy Identity Settings
    # ========================================
    privy_app_id: str | None = Field(
        default=None,
        description="Privy application id (JWT audience)",
    )

    privy_app_secret: str | None = Field(
        default=None,
        description="Privy application secret for the REST API",
    )

    privy_verification_key: str | None = Field(
        default=None,
        description="PEM-encoded ES256 public key used to verify Privy identity tokens",
    )

    privy_api_url: str = Field(
        default="https://auth.privy.io/api/v1",
        description="Privy REST API base URL",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("oauth2_issuer", mode="before")
    @classmethod
    def set_oauth2_issuer(cls, v: str | None, info: Any) -> str:
        """Set OAuth2 issuer default from host and port if not provided."""
        if v:
            return v.rstrip("/")
        # Access other field values during validation
        host = info.data.get("host", "0.0.0.0")
        port = info.data.get("port", 8051)
        return f"http://{host}:{port}"

    @field_validator("store_backend", "transport")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        """Lower-case enumerated string settings."""
        return v.strip().lower()

    @field_validator("platform_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Platform endpoints are appended with a leading slash."""
        return v.rstrip("/")

    # ========================================
    # Helper Methods
    # ========================================
    def has_privy_config(self) -> bool:
        """Check if Privy identity verification is configured."""
        return all([self.privy_app_id, self.privy_verification_key])

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "host": self.host,
            "port": self.port,
            "transport": self.transport,
            "store_backend": self.store_backend,
            "platform_api_base_url": self.platform_api_base_url,
            "platform_request_timeout": self.platform_request_timeout,
            "oauth2_issuer": self.oauth2_issuer,
            "auth_code_ttl": self.auth_code_ttl,
            "bridge_token_ttl": self.bridge_token_ttl,
            "session_ttl": self.session_ttl,
            "platform_link_ttl": self.platform_link_ttl,
            "session_cleanup_interval": self.session_cleanup_interval,
            "has_privy": self.has_privy_config(),
        }


# Singleton pattern with proper typing
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        logger.debug("Credential store backend: %s", _settings_instance.store_backend)
        if not _settings_instance.has_privy_config():
            logger.warning(
                "PRIVY_APP_ID or PRIVY_VERIFICATION_KEY is missing. "
                "Identity token verification will be unavailable.",
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
