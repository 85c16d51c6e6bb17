"""
Catalog Module
"""
from .client import CatalogClient, create_catalog_client
from .discovery import discover_tagged_products, normalize_tags, parse_season_key
from .inventory import InventoryCollector
from .models import CatalogImage, CatalogProduct, CatalogVariant

__all__ = [
    "CatalogClient",
    "create_catalog_client",
    "discover_tagged_products",
    "normalize_tags",
    "parse_season_key",
    "InventoryCollector",
    "CatalogImage",
    "CatalogProduct",
    "CatalogVariant",
]
