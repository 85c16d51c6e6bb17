"""
Versioned Schema Migrations

Migrations are an ordered list applied once each, at initialization.
Applied versions are recorded in ``schema_migrations``; re-running
``apply_migrations`` only executes versions that are not recorded yet.

New schema changes are appended as a new ``Migration`` with the next
version number. Existing entries are never edited.
"""

from dataclasses import dataclass
from typing import Callable, List

import structlog
from sqlalchemy import Connection, insert, select, text
from sqlalchemy.ext.asyncio import AsyncEngine

from .models import InventoryObservation, SaleRecord, SchemaMigration, SeasonSnapshot, utcnow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Migration:
    """One schema revision"""
    version: int
    name: str
    upgrade: Callable[[Connection], None]


def _create_core_tables(conn: Connection) -> None:
    for table in (SeasonSnapshot.__table__, SaleRecord.__table__, InventoryObservation.__table__):
        table.create(conn, checkfirst=True)


def _create_ledger_indexes(conn: Connection) -> None:
    # Prior-reading lookup for delta computation
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_inventory_observations_item_location_recorded "
        "ON inventory_observations (stock_item_id, location_id, recorded_at)"
    ))
    # Cumulative sold per variant
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_sales_variant_id ON sales (variant_id)"
    ))
    conn.execute(text(
        "CREATE INDEX IF NOT EXISTS ix_season_snapshots_season_key ON season_snapshots (season_key)"
    ))


MIGRATIONS: List[Migration] = [
    Migration(1, "create core tables", _create_core_tables),
    Migration(2, "add ledger lookup indexes", _create_ledger_indexes),
]


def _apply_pending(conn: Connection, migrations: List[Migration]) -> List[int]:
    SchemaMigration.__table__.create(conn, checkfirst=True)

    applied = set(conn.execute(select(SchemaMigration.version)).scalars().all())
    newly_applied = []

    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in applied:
            continue

        logger.info("Applying schema migration", version=migration.version, name=migration.name)
        migration.upgrade(conn)
        conn.execute(
            insert(SchemaMigration).values(
                version=migration.version,
                name=migration.name,
                applied_at=utcnow(),
            )
        )
        newly_applied.append(migration.version)

    return newly_applied


async def apply_migrations(
    engine: AsyncEngine,
    migrations: List[Migration] = MIGRATIONS,
) -> List[int]:
    """
    Apply every pending migration in version order.

    All pending migrations run in a single transaction.

    Returns:
        Versions applied by this call (empty when already up to date)
    """
    async with engine.begin() as conn:
        newly_applied = await conn.run_sync(_apply_pending, migrations)

    if newly_applied:
        logger.info("Schema migrations applied", versions=newly_applied)
    else:
        logger.debug("Schema up to date")
    return newly_applied
