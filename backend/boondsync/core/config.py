"""
Application configuration using Pydantic Settings.
Loads environment variables from .env file.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from boondsync.core.environment import Environment

# Public BoondManager API endpoint - production and sandbox share it,
# the credentials decide which environment answers.
BOOND_DEFAULT_BASE_URL = "https://ui.boondmanager.com/api"


@dataclass(frozen=True)
class BoondCredentials:
    """Credentials for one BoondManager environment."""
    user_token: str
    client_token: str
    client_key: str

    @property
    def is_complete(self) -> bool:
        return bool(self.user_token and self.client_token and self.client_key)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_env: str = Field(default="development", alias="APP_ENV")
    app_debug: bool = Field(default=True, alias="APP_DEBUG")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        alias="CORS_ORIGINS",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # -------------------------------------------------------------------------
    # BoondManager API
    # -------------------------------------------------------------------------
    boond_api_base_url: str = Field(
        default=BOOND_DEFAULT_BASE_URL,
        alias="BOOND_API_BASE_URL",
    )
    boond_default_environment: Environment = Field(
        default=Environment.SANDBOX,
        alias="BOOND_DEFAULT_ENVIRONMENT",
        description="Environment used when a caller does not name one",
    )
    boond_timeout_seconds: float = Field(default=30.0, alias="BOOND_TIMEOUT_SECONDS")
    boond_token_ttl_seconds: int = Field(
        default=3600,
        alias="BOOND_TOKEN_TTL_SECONDS",
        description="Lifetime of a minted client JWT before it is re-signed",
    )
    boond_allow_production_writes: bool = Field(
        default=False,
        alias="BOOND_ALLOW_PRODUCTION_WRITES",
        description="Production is read-only unless this is explicitly enabled",
    )

    # Production credentials
    boond_production_user_token: str | None = Field(default=None, alias="BOOND_PRODUCTION_USER_TOKEN")
    boond_production_client_token: str | None = Field(default=None, alias="BOOND_PRODUCTION_CLIENT_TOKEN")
    boond_production_client_key: str | None = Field(default=None, alias="BOOND_PRODUCTION_CLIENT_KEY")

    # Sandbox credentials
    boond_sandbox_user_token: str | None = Field(default=None, alias="BOOND_SANDBOX_USER_TOKEN")
    boond_sandbox_client_token: str | None = Field(default=None, alias="BOOND_SANDBOX_CLIENT_TOKEN")
    boond_sandbox_client_key: str | None = Field(default=None, alias="BOOND_SANDBOX_CLIENT_KEY")

    # -------------------------------------------------------------------------
    # Retry policy (transient network errors, 5xx, 429)
    # -------------------------------------------------------------------------
    boond_retry_attempts: int = Field(default=3, ge=1, alias="BOOND_RETRY_ATTEMPTS")
    boond_retry_base_delay: float = Field(default=1.0, ge=0, alias="BOOND_RETRY_BASE_DELAY")
    boond_retry_max_delay: float = Field(default=8.0, ge=0, alias="BOOND_RETRY_MAX_DELAY")

    # -------------------------------------------------------------------------
    # Sync & snapshot behaviour
    # -------------------------------------------------------------------------
    boond_page_size: int = Field(default=100, ge=1, le=500, alias="BOOND_PAGE_SIZE")
    boond_max_pages: int = Field(
        default=100,
        ge=1,
        alias="BOOND_MAX_PAGES",
        description="Safety limit on pages fetched per resource type",
    )
    boond_sync_batch_size: int = Field(
        default=1,
        ge=1,
        alias="BOOND_SYNC_BATCH_SIZE",
        description="Records reconciled concurrently within one resource type",
    )
    boond_sync_documents: bool = Field(default=True, alias="BOOND_SYNC_DOCUMENTS")
    boond_xref_field: str | None = Field(
        default=None,
        alias="BOOND_XREF_FIELD",
        description="Sandbox attribute that stores the production id of a replicated record",
    )
    boond_phone_country_code: str = Field(
        default="33",
        alias="BOOND_PHONE_COUNTRY_CODE",
        description="Country code assumed for national phone numbers",
    )

    def get_boond_credentials(self, environment: Environment) -> BoondCredentials:
        """Get the credentials of exactly one environment."""
        if environment == Environment.PRODUCTION:
            return BoondCredentials(
                user_token=self.boond_production_user_token or "",
                client_token=self.boond_production_client_token or "",
                client_key=self.boond_production_client_key or "",
            )
        return BoondCredentials(
            user_token=self.boond_sandbox_user_token or "",
            client_token=self.boond_sandbox_client_token or "",
            client_key=self.boond_sandbox_client_key or "",
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Note: Settings are cached! If you change .env, restart the server.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Call this if you need to reload settings."""
    get_settings.cache_clear()
