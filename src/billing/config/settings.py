"""Application configuration schema and validation."""

from typing import Literal, Optional

from pydantic import Field, PostgresDsn, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: Literal["dev", "staging", "prod"] = Field(
        ...,
        description="Application environment",
    )
    stripe_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret API key",
    )
    stripe_api_version: Optional[str] = Field(
        default=None,
        description="Pinned Stripe API version (account default when unset)",
    )
    stripe_max_network_retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Network retries performed by the Stripe SDK itself",
    )
    subscription_list_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Default page size when listing subscriptions",
    )
    customer_charges_limit: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Default page size when listing a customer's charges",
    )
    reconcile_lock: Literal["none", "local", "advisory"] = Field(
        default="local",
        description="Lock guarding concurrent reconciliations of one subscription",
    )
    db_dsn: Optional[PostgresDsn] = Field(
        default=None,
        description="PostgreSQL connection string (advisory reconcile lock only)",
    )
    db_pool_min: int = Field(
        default=1,
        ge=1,
        description="Minimum database connection pool size",
    )
    db_pool_max: int = Field(
        default=5,
        ge=1,
        description="Maximum database connection pool size",
    )
    api_server_host: str = Field(
        default="0.0.0.0",
        description="Interface the HTTP API binds to",
    )
    api_server_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the HTTP API listens on",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("db_pool_max")
    @classmethod
    def validate_pool_max(cls, v: int, info) -> int:
        """Ensure pool_max >= pool_min."""
        if "db_pool_min" in info.data and v < info.data["db_pool_min"]:
            raise ValueError("db_pool_max must be >= db_pool_min")
        return v

    @model_validator(mode="after")
    def validate_advisory_lock_dsn(self) -> "AppConfig":
        """Advisory locks live in Postgres, so they need a DSN."""
        if self.reconcile_lock == "advisory" and self.db_dsn is None:
            raise ValueError("db_dsn is required when reconcile_lock is 'advisory'")
        return self


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create the singleton AppConfig instance."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config
