"""
Database Models

Three ledgers back the sell-through computation:

- SeasonSnapshot: one baseline row per (variant, season); the baseline
  quantity and its timestamp are written once.
- SaleRecord: append-only order line items.
- InventoryObservation: append-only stock readings with the signed delta
  from the previous reading of the same stock item at the same location.

SchemaMigration records which versioned migrations have been applied.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC"""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class SeasonSnapshot(Base):
    """
    Season baseline per variant.

    ``baseline_qty`` and ``snapshot_at`` never change after insert;
    descriptive columns are refreshed by every later snapshot.
    """
    __tablename__ = "season_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    season_key: Mapped[str] = mapped_column(String(255), nullable=False)
    stock_item_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_id: Mapped[Optional[str]] = mapped_column(String(64))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    product_title: Mapped[Optional[str]] = mapped_column(String(500))
    variant_title: Mapped[Optional[str]] = mapped_column(String(500))
    image_url: Mapped[Optional[str]] = mapped_column(String(2048))

    baseline_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    snapshot_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("variant_id", "season_key", name="uq_season_snapshots_variant_season"),
    )

    def __repr__(self) -> str:
        return f"<SeasonSnapshot {self.season_key!r} variant={self.variant_id} baseline={self.baseline_qty}>"


class SaleRecord(Base):
    """One order line item; never updated"""
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    variant_id: Mapped[Optional[str]] = mapped_column(String(64))
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_id: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class InventoryObservation(Base):
    """One received stock-level reading; ``delta`` is fixed at write time"""
    __tablename__ = "inventory_observations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stock_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    available_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class SchemaMigration(Base):
    """Applied schema migration"""
    __tablename__ = "schema_migrations"

    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
