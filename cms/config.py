"""
Centralized configuration management for SiteTree CMS.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Provides type coercion (strings to ints, bools, etc.)
- Groups related settings for better organization
- Exposes methods to check if features are enabled
- Supports .env file loading

Usage:
    from cms.config import get_settings, Settings

    settings = get_settings()
    if settings.is_akismet_configured:
        # Enable Akismet spam filtering
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Database Settings (Postgres)
# =============================================================================


class DatabaseSettings(BaseSettings):
    """Configuration for the Postgres page and comment store."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: Optional[str] = Field(
        default=None,
        description="Postgres connection URL",
    )
    database_url_direct: Optional[str] = Field(
        default=None,
        description="Direct (non-pooler) Postgres URL, preferred when set",
    )
    database_pool_min_size: int = Field(
        default=1,
        ge=1,
        description="Minimum connections kept in the pool",
    )
    database_pool_max_size: int = Field(
        default=5,
        ge=1,
        description="Maximum connections in the pool",
    )

    @property
    def effective_url(self) -> Optional[str]:
        """Get the URL that should be used for connections."""
        return self.database_url_direct or self.database_url

    @property
    def is_configured(self) -> bool:
        """Check if Postgres is configured."""
        return bool(self.effective_url)


# =============================================================================
# Site Settings
# =============================================================================


class SiteSettings(BaseSettings):
    """Public site identity used in links, feeds and messages."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    site_title: str = Field(
        default="SiteTree CMS",
        description="Site title used in feeds and page chrome",
    )
    site_base_url: str = Field(
        default="http://localhost:8000/",
        description="Absolute base URL of the public site",
    )
    admin_email: str = Field(
        default="admin@example.com",
        description="Administrator contact address shown to flagged commenters",
    )

    @property
    def absolute_base_url(self) -> str:
        """Base URL, always with a trailing slash."""
        base = self.site_base_url.strip()
        return base if base.endswith("/") else base + "/"


# =============================================================================
# Comment Settings
# =============================================================================


class CommentSettings(BaseSettings):
    """Configuration for page comments and the math spam question."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    comments_per_page: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Number of comments shown per page",
    )
    comments_moderation_enabled: bool = Field(
        default=False,
        description="Flag new comments as needing moderation",
    )
    math_spam_protection_enabled: bool = Field(
        default=True,
        description="Ask commenters a simple math question",
    )
    math_spam_secret: SecretStr = Field(
        default=SecretStr("change-me-math-secret"),
        description="Secret used to sign math question tokens",
    )
    math_spam_token_ttl: int = Field(
        default=1800,
        ge=30,
        description="Seconds a math question stays answerable",
    )


# =============================================================================
# Akismet Settings
# =============================================================================


class AkismetSettings(BaseSettings):
    """Configuration for the Akismet spam classification service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    akismet_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Akismet API key",
    )
    akismet_save_spam: bool = Field(
        default=True,
        description="Keep comments classified as spam (flagged) instead of dropping them",
    )
    akismet_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for Akismet requests",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Akismet is configured."""
        return bool(self.akismet_api_key)


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Configuration for security features."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    dev_mode: bool = Field(
        default=False,
        description="Enable development mode (any request acts as an administrator)",
    )

    # CORS
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Get parsed list of allowed origins."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="sitetree-cms@1.0.0",
        description="Sentry release version",
    )
    server_name: str = Field(
        default="sitetree-cms",
        description="Server name for Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Storage Settings
# =============================================================================


class StorageSettings(BaseSettings):
    """Configuration for local storage."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    member_storage_path: str = Field(
        default="./data/members.json",
        description="Path of the member and API key store",
    )


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.

    This class provides a single entry point for all application configuration
    with validation, type coercion, and feature detection.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested settings groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    site: SiteSettings = Field(default_factory=SiteSettings)
    comments: CommentSettings = Field(default_factory=CommentSettings)
    akismet: AkismetSettings = Field(default_factory=AkismetSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    # ==========================================================================
    # Feature Detection Properties
    # ==========================================================================

    @property
    def is_database_configured(self) -> bool:
        """Check if the Postgres store is available."""
        return self.database.is_configured

    @property
    def is_akismet_configured(self) -> bool:
        """Check if Akismet spam filtering is available."""
        return self.akismet.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.security.is_production

    @property
    def is_dev_mode(self) -> bool:
        """Check if development mode is enabled."""
        return self.security.dev_mode

    # ==========================================================================
    # Configuration Summary
    # ==========================================================================

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        This method returns a dictionary with configuration status
        WITHOUT exposing any secrets.
        """
        return {
            "environment": self.security.environment,
            "dev_mode": self.is_dev_mode,
            "database_configured": self.is_database_configured,
            "akismet_configured": self.is_akismet_configured,
            "math_spam_protection": self.comments.math_spam_protection_enabled,
            "comment_moderation": self.comments.comments_moderation_enabled,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If required configuration is missing or invalid
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
