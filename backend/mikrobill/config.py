"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (RouterApiConfig, BillingConfig) are env-overridable via
the double-underscore delimiter, e.g.:
    ROUTER_API__BASE_URL=http://10.0.0.2:3001/mt-api
    ROUTER_API__REQUEST_TIMEOUT_SECONDS=15
    BILLING__DEFAULT_CURRENCY=USD
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RouterApiConfig(BaseModel):
    """Router control API (the /mt-api proxy) connection parameters."""

    base_url: str = "http://localhost:3001/mt-api"
    request_timeout_seconds: float = 30.0


class BillingConfig(BaseModel):
    """Billing defaults and data store table names.

    Env-overridable via BILLING__KEY format, e.g.:
        BILLING__DEFAULT_CURRENCY=PHP
        BILLING__SALES_TABLE=sales_records
    """

    # Applied to stored plans that were saved without a currency
    default_currency: str = "USD"
    # Time shown for a due date that has no time component
    end_of_day_time: str = "23:59"
    plans_table: str = "dhcp_billing_plans"
    sales_table: str = "sales_records"
    clients_table: str = "dhcp_clients"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Supabase
    supabase_url: str = ""
    supabase_publishable_key: str = ""
    supabase_secret_key: str = ""

    # App Settings
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Nested config groups (env-overridable via SECTION__KEY format)
    router_api: RouterApiConfig = Field(default_factory=RouterApiConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
