"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, storage backend, limits)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Storage
    STORAGE_BACKEND: Literal["mongo", "memory"] = Field(
        default="mongo",
        description="Tracking storage backend (mongo for deployments, memory for local runs/tests)"
    )

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="qrtrack",
        description="MongoDB database name"
    )
    MONGODB_TIMEOUT_MS: int = Field(
        default=5000,
        description="Server selection / socket timeout for MongoDB requests"
    )

    # Public URLs
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Base URL of the public site that serves documents and cards"
    )

    # Tracking metadata bounds (request headers are untrusted)
    USER_AGENT_MAX_LENGTH: int = Field(
        default=512,
        description="Maximum stored length of a user-agent string"
    )
    ORIGIN_MAX_LENGTH: int = Field(
        default=64,
        description="Maximum stored length of the network origin"
    )
    LOCATION_MAX_LENGTH: int = Field(
        default=128,
        description="Maximum stored length of the optional location"
    )

    # Reconciliation
    RECONCILE_PAGE_SIZE: int = Field(
        default=1000,
        description="Number of tracking events read per page during reconciliation"
    )

    # Statistics
    STATS_CACHE_TTL_SECONDS: int = Field(
        default=60,
        description="How long the global statistics response is cached"
    )
    RECENT_EVENTS_LIMIT: int = Field(
        default=50,
        description="Number of recent scans/downloads returned with resource stats"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Security
    ADMIN_API_KEY: Optional[str] = Field(
        default=None,
        description="Shared key required in X-Admin-Key for admin endpoints",
        validate_default=True,
    )

    @field_validator(
        "USER_AGENT_MAX_LENGTH",
        "ORIGIN_MAX_LENGTH",
        "LOCATION_MAX_LENGTH",
        "RECONCILE_PAGE_SIZE",
        "RECENT_EVENTS_LIMIT",
        "MONGODB_TIMEOUT_MS",
    )
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        """Limits and page sizes must be positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be greater than zero")
        return v

    @field_validator("STATS_CACHE_TTL_SECONDS")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        """A TTL of zero disables caching; negative values are rejected."""
        if v < 0:
            raise ValueError("STATS_CACHE_TTL_SECONDS cannot be negative")
        return v

    @field_validator("ADMIN_API_KEY")
    @classmethod
    def validate_admin_key(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Ensure the admin key is set in production."""
        if info.data.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("ADMIN_API_KEY is required in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if settings.STORAGE_BACKEND == "mongo":
        if not settings.MONGODB_URL:
            errors.append("MONGODB_URL is required")
        if not settings.MONGODB_DB_NAME:
            errors.append("MONGODB_DB_NAME is required")

    if not settings.PUBLIC_BASE_URL:
        errors.append("PUBLIC_BASE_URL is required")

    # Production-specific validations
    if settings.is_production:
        if settings.STORAGE_BACKEND == "memory":
            errors.append("STORAGE_BACKEND=memory is not allowed in production")
        if not settings.ADMIN_API_KEY:
            errors.append("ADMIN_API_KEY is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
