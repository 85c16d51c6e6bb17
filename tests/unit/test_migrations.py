"""
Unit Tests - Schema Migrations
"""
import pytest
from sqlalchemy import inspect, select, text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from sellthrough.database import MIGRATIONS, Migration, SchemaMigration, apply_migrations


@pytest.fixture
async def blank_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


async def table_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))


async def index_names(engine, table):
    async with engine.connect() as conn:
        return await conn.run_sync(
            lambda sync_conn: {index["name"] for index in inspect(sync_conn).get_indexes(table)}
        )


class TestApplyMigrations:
    """Tests for versioned migrations"""

    async def test_fresh_database_gets_every_version(self, blank_engine):
        """All migrations run in order on an empty database"""
        applied = await apply_migrations(blank_engine)

        assert applied == [m.version for m in MIGRATIONS]
        assert {"season_snapshots", "sales", "inventory_observations", "schema_migrations"} <= await table_names(blank_engine)
        assert "ix_inventory_observations_item_location_recorded" in await index_names(
            blank_engine, "inventory_observations"
        )

    async def test_rerun_is_noop(self, blank_engine):
        """A second run applies nothing"""
        await apply_migrations(blank_engine)

        assert await apply_migrations(blank_engine) == []

        async with blank_engine.connect() as conn:
            versions = (await conn.execute(select(SchemaMigration.version))).scalars().all()
        assert sorted(versions) == [m.version for m in MIGRATIONS]

    async def test_only_pending_versions_run(self, blank_engine):
        """New versions apply on top of recorded ones"""
        await apply_migrations(blank_engine, MIGRATIONS[:1])

        def add_notes(conn):
            conn.execute(text("CREATE TABLE season_notes (season_key VARCHAR(255) PRIMARY KEY, note TEXT)"))

        extended = list(MIGRATIONS) + [Migration(99, "add season notes", add_notes)]

        applied = await apply_migrations(blank_engine, extended)

        assert applied == [2, 99]
        assert "season_notes" in await table_names(blank_engine)

    async def test_failed_migration_rolls_back(self, blank_engine):
        """A failing version leaves nothing recorded"""
        def broken(conn):
            conn.execute(text("CREATE TABLE broken ("))

        with pytest.raises(Exception):
            await apply_migrations(blank_engine, list(MIGRATIONS) + [Migration(3, "broken", broken)])

        async with blank_engine.connect() as conn:
            has_ledger = await conn.run_sync(lambda c: inspect(c).has_table("schema_migrations"))
            versions = []
            if has_ledger:
                versions = (await conn.execute(select(SchemaMigration.version))).scalars().all()
        assert 3 not in versions
