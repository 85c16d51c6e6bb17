"""
Season Sell-Through Tracker
Configuration Module
"""
from .settings import (
    CatalogSettings,
    DatabaseSettings,
    InventorySettings,
    Settings,
    get_settings,
    normalize_shop_domain,
)

__all__ = [
    "CatalogSettings",
    "DatabaseSettings",
    "InventorySettings",
    "Settings",
    "get_settings",
    "normalize_shop_domain",
]
