"""
Unit Tests - Configuration
"""
import pytest
from pydantic import ValidationError

from sellthrough.config import CatalogSettings, DatabaseSettings, Settings, normalize_shop_domain


class TestNormalizeShopDomain:
    """Tests for shop name normalization"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("my-shop", "my-shop.myshopify.com"),
            ("my-shop.myshopify.com", "my-shop.myshopify.com"),
            ("https://my-shop.myshopify.com", "my-shop.myshopify.com"),
            ("https://my-shop.myshopify.com/", "my-shop.myshopify.com"),
            ("http://my-shop.myshopify.com/admin/products?x=1", "my-shop.myshopify.com"),
            ("  my-shop  ", "my-shop.myshopify.com"),
            ("shop.example.com", "shop.example.com"),
            ("", ""),
        ],
    )
    def test_normalize(self, raw, expected):
        """Shop names, hosts and admin URLs reduce to a bare host"""
        assert normalize_shop_domain(raw) == expected


class TestCatalogSettings:
    """Tests for catalog settings"""

    def test_defaults(self, monkeypatch):
        """Retry and paging defaults"""
        for name in ("CATALOG_MAX_RETRIES", "CATALOG_MIN_RETRY_DELAY", "CATALOG_RETRY_JITTER", "CATALOG_PAGE_SIZE"):
            monkeypatch.delenv(name, raising=False)

        settings = CatalogSettings(shop_name="my-shop")

        assert settings.max_retries == 5
        assert settings.min_retry_delay == 2.0
        assert settings.retry_jitter == 0.3
        assert settings.page_size == 250
        assert settings.base_url == "https://my-shop.myshopify.com/admin/api/2024-10/"

    def test_reads_environment(self, monkeypatch):
        """Environment variables configure the client"""
        monkeypatch.setenv("SHOP_NAME", "env-shop")
        monkeypatch.setenv("ADMIN_API_TOKEN", "shpat_123")
        monkeypatch.setenv("CATALOG_MAX_RETRIES", "2")

        settings = CatalogSettings()

        assert settings.shop_domain == "env-shop.myshopify.com"
        assert settings.access_token.get_secret_value() == "shpat_123"
        assert settings.max_retries == 2

    def test_token_is_masked(self):
        """The access token is not printed"""
        settings = CatalogSettings(shop_name="my-shop", access_token="shpat_secret")

        assert "shpat_secret" not in repr(settings)


class TestSettings:
    """Tests for aggregate settings"""

    def test_rejects_unknown_environment(self):
        """APP_ENV must be a known environment"""
        with pytest.raises(ValidationError):
            Settings(app_env="moon")

    def test_environment_is_lowercased(self):
        """Environment names are case-insensitive"""
        assert Settings(app_env="Production").is_production

    def test_database_url_override(self):
        """DATABASE_URL wins over host settings"""
        database = DatabaseSettings(url="sqlite+aiosqlite:///:memory:")

        assert database.async_url == "sqlite+aiosqlite:///:memory:"

    def test_postgres_fallback(self):
        """Without a URL the asyncpg DSN is assembled"""
        database = DatabaseSettings(url=None, host="db", port=5433, user="u", password="p", db="d")

        assert database.async_url == "postgresql+asyncpg://u:p@db:5433/d"
