"""
Season Sell-Through Tracker
Centralized Configuration Management

Configuration is loaded with Pydantic settings from environment variables
and an optional ``.env`` file. Each subsystem owns a settings class; the
aggregate ``Settings`` is what callers pass around.
"""

import re
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Subsystem settings read the same .env file as the aggregate Settings
_ENV_FILE = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def normalize_shop_domain(raw: str) -> str:
    """
    Normalize a shop name into a bare ``*.myshopify.com`` host.

    Accepts ``my-shop``, ``my-shop.myshopify.com``,
    ``https://my-shop.myshopify.com`` and admin URLs such as
    ``https://my-shop.myshopify.com/admin/products``.
    """
    domain = (raw or "").strip()
    domain = re.sub(r"^https?://", "", domain, flags=re.IGNORECASE)
    domain = re.sub(r"/admin.*$", "", domain, flags=re.IGNORECASE)
    domain = domain.rstrip("/")

    if domain and "." not in domain:
        domain = f"{domain}.myshopify.com"
    return domain


class CatalogSettings(BaseSettings):
    """External catalog (Shopify Admin REST) API configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True, **_ENV_FILE)

    shop_name: str = Field(default="", alias="SHOP_NAME", description="Shop name or admin URL")
    access_token: SecretStr = Field(default=SecretStr(""), alias="ADMIN_API_TOKEN", description="Admin API access token")
    api_version: str = Field(default="2024-10", alias="API_VERSION", description="Admin API version")

    page_size: int = Field(default=250, alias="CATALOG_PAGE_SIZE", ge=1, le=250, description="Products per page")
    max_retries: int = Field(default=5, alias="CATALOG_MAX_RETRIES", ge=0, description="Retries on HTTP 429")
    min_retry_delay: float = Field(default=2.0, alias="CATALOG_MIN_RETRY_DELAY", description="Floor for Retry-After, seconds")
    retry_jitter: float = Field(default=0.3, alias="CATALOG_RETRY_JITTER", description="Added to every retry delay, seconds")
    timeout_seconds: float = Field(default=30.0, alias="CATALOG_TIMEOUT_SECONDS", description="HTTP request timeout")

    @property
    def shop_domain(self) -> str:
        """Normalized shop host"""
        return normalize_shop_domain(self.shop_name)

    @property
    def base_url(self) -> str:
        """Admin REST API base URL"""
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/"


class InventorySettings(BaseSettings):
    """Bulk inventory-level collection configuration"""

    model_config = SettingsConfigDict(env_prefix="INVENTORY_", **_ENV_FILE)

    batch_size: int = Field(default=40, ge=1, description="Stock items per inventory request")
    batch_pause_seconds: float = Field(default=0.6, ge=0, description="Pause between batches")
    levels_limit: int = Field(default=250, ge=1, le=250, description="Inventory levels per response")


class DatabaseSettings(BaseSettings):
    """Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", populate_by_name=True, **_ENV_FILE)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="sellthrough", alias="database", description="Database name")
    user: str = Field(default="sellthrough", description="Database user")
    password: SecretStr = Field(default=SecretStr("secure_password"), description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(
        default="sqlite+aiosqlite:///./sellthrough.db",
        alias="DATABASE_URL",
        description="Database URL (overrides host/port)",
    )

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True, **_ENV_FILE)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="sellthrough", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    inventory: InventorySettings = Field(default_factory=InventorySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
