"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase Configuration
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # Composio Configuration
    COMPOSIO_API_KEY: SecretStr | None = None
    COMPOSIO_FAILURE_THRESHOLD: int = 5
    COMPOSIO_RECOVERY_TIMEOUT_SECONDS: float = 30.0

    # Application Settings
    APP_ENV: Literal["development", "staging", "production"] = "development"

    # Logging
    LOG_FORMAT: Literal["text", "json"] = "text"
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    CORS_ORIGINS: str = "http://localhost:3000"

    # Contact sync
    DEFAULT_COUNTRY: str = "US"  # Region hint when a cell's own number is unusable
    CRM_FETCH_TIMEOUT_SECONDS: float = 60.0
    ZENDESK_PAGE_SIZE: int = 100
    ZENDESK_MAX_PAGES: int = 100

    @field_validator("SUPABASE_URL")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate that SUPABASE_URL is a valid URL."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("SUPABASE_URL must start with http:// or https://")
        return v.rstrip("/") if v else v

    @field_validator("DEFAULT_COUNTRY")
    @classmethod
    def validate_default_country(cls, v: str) -> str:
        """Region codes are two-letter ISO 3166 codes, upper case."""
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("DEFAULT_COUNTRY must be a two-letter ISO country code")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"

    @property
    def composio_configured(self) -> bool:
        """Check if a Composio API key is present."""
        return bool(self.COMPOSIO_API_KEY and self.COMPOSIO_API_KEY.get_secret_value())

    def validate_startup(self) -> None:
        """Validate that all required secrets are configured.

        Raises:
            ValueError: If any required secret is missing or empty.
        """
        required_secrets = {
            "SUPABASE_URL": self.SUPABASE_URL,
            "SUPABASE_SERVICE_ROLE_KEY": self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
        }
        missing = [name for name, value in required_secrets.items() if not value]
        if missing:
            raise ValueError(f"Required secrets are missing or empty: {', '.join(missing)}")
        if not self.composio_configured:
            logger.warning("COMPOSIO_API_KEY is not set - CRM sync will not work")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance with validated configuration.

    Raises:
        ValueError: If required secrets are missing.
    """
    settings = Settings()
    settings.validate_startup()
    return settings


# Global settings instance - import this for easy access
settings = get_settings()
