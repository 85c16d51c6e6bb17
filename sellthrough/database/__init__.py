"""
Database Module
"""
from .connection import (
    check_database_health,
    close_database,
    create_engine_for,
    get_db,
    get_engine,
    init_database,
)
from .migrations import MIGRATIONS, Migration, apply_migrations
from .models import (
    Base,
    InventoryObservation,
    SaleRecord,
    SchemaMigration,
    SeasonSnapshot,
)

__all__ = [
    "init_database",
    "close_database",
    "create_engine_for",
    "get_db",
    "get_engine",
    "check_database_health",
    "MIGRATIONS",
    "Migration",
    "apply_migrations",
    "Base",
    "InventoryObservation",
    "SaleRecord",
    "SchemaMigration",
    "SeasonSnapshot",
]
