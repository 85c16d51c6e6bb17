"""
Sell-Through Aggregation

Joins season baselines with the sales and inventory-change ledgers:

    initial_total    = baseline_qty + extra_received
    sell_through_pct = sold / initial_total * 100   (0 when initial_total is 0)

``extra_received`` only counts positive inventory changes recorded at or
after the variant's snapshot, so stock that was already on hand when the
baseline was taken is never counted twice.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import polars as pl
import structlog
from pydantic import BaseModel, Field
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sellthrough.database.models import InventoryObservation, SaleRecord, SeasonSnapshot, utcnow
from sellthrough.ingestion.snapshot import require_season_key

logger = structlog.get_logger(__name__)

RANKING_SIZE = 10

VARIANT_SCHEMA = {
    "variant_id": pl.Utf8,
    "stock_item_id": pl.Utf8,
    "product_id": pl.Utf8,
    "sku": pl.Utf8,
    "product_title": pl.Utf8,
    "variant_title": pl.Utf8,
    "image_url": pl.Utf8,
    "baseline_qty": pl.Int64,
    "extra_received": pl.Int64,
    "restock_count": pl.Int64,
    "sold": pl.Int64,
}

TOTAL_COLUMNS = ["baseline_qty", "extra_received", "restock_count", "initial_total", "sold"]


def sell_through_pct(sold: int, initial_total: int) -> float:
    """Percentage of available units sold, to one decimal place"""
    if initial_total <= 0:
        return 0.0
    # Exact .x5 ties round up
    pct = Decimal(sold / initial_total * 100).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return float(pct)


class VariantSellThrough(BaseModel):
    """Sell-through of one variant"""
    variant_id: str
    product_id: Optional[str] = None
    stock_item_id: Optional[str] = None
    sku: Optional[str] = None
    product_title: Optional[str] = None
    variant_title: Optional[str] = None
    image_url: Optional[str] = None
    baseline_qty: int = 0
    extra_received: int = 0
    restock_count: int = 0
    initial_total: int = 0
    sold: int = 0
    sell_through_pct: float = 0.0


class ProductSellThrough(BaseModel):
    """Sell-through of one product, computed from its variants' sums"""
    product_id: Optional[str] = None
    product_title: Optional[str] = None
    image_url: Optional[str] = None
    variant_count: int = 0
    baseline_qty: int = 0
    extra_received: int = 0
    restock_count: int = 0
    initial_total: int = 0
    sold: int = 0
    sell_through_pct: float = 0.0


class SellThroughReport(BaseModel):
    """Ranked sell-through report for a season"""
    season_key: str
    generated_at: datetime = Field(default_factory=utcnow)
    variants: List[VariantSellThrough] = Field(default_factory=list)
    products: List[ProductSellThrough] = Field(default_factory=list)
    best: List[ProductSellThrough] = Field(default_factory=list)
    worst: List[ProductSellThrough] = Field(default_factory=list)
    total_baseline: int = 0
    total_received: int = 0
    total_initial: int = 0
    total_sold: int = 0
    sell_through_pct: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.variants


class SellThroughAggregator:
    """
    Computes season sell-through.

    Ledger sums are done in SQL; the per-product rollup is done in polars.
    """

    def __init__(self, ranking_size: int = RANKING_SIZE):
        self.ranking_size = ranking_size

    async def load_variant_rows(self, session: AsyncSession, season_key: str) -> List[Dict[str, Any]]:
        """Snapshot rows of a season joined with their sold and restocked quantities"""
        sold = (
            select(
                SaleRecord.variant_id.label("variant_id"),
                func.sum(SaleRecord.qty).label("sold"),
            )
            .group_by(SaleRecord.variant_id)
            .subquery()
        )

        restocks = (
            select(
                SeasonSnapshot.id.label("snapshot_id"),
                func.coalesce(func.sum(InventoryObservation.delta), 0).label("extra_received"),
                func.count(InventoryObservation.id).label("restock_count"),
            )
            .select_from(SeasonSnapshot)
            .outerjoin(
                InventoryObservation,
                and_(
                    InventoryObservation.stock_item_id == SeasonSnapshot.stock_item_id,
                    InventoryObservation.recorded_at >= SeasonSnapshot.snapshot_at,
                    InventoryObservation.delta > 0,
                ),
            )
            .where(SeasonSnapshot.season_key == season_key)
            .group_by(SeasonSnapshot.id)
            .subquery()
        )

        result = await session.execute(
            select(
                SeasonSnapshot,
                restocks.c.extra_received,
                restocks.c.restock_count,
                func.coalesce(sold.c.sold, 0).label("sold"),
            )
            .join(restocks, restocks.c.snapshot_id == SeasonSnapshot.id)
            .outerjoin(sold, sold.c.variant_id == SeasonSnapshot.variant_id)
            .where(SeasonSnapshot.season_key == season_key)
            .order_by(SeasonSnapshot.id)
        )

        rows = []
        for snapshot, extra_received, restock_count, sold_qty in result.all():
            rows.append({
                "variant_id": snapshot.variant_id,
                "stock_item_id": snapshot.stock_item_id,
                "product_id": snapshot.product_id,
                "sku": snapshot.sku,
                "product_title": snapshot.product_title,
                "variant_title": snapshot.variant_title,
                "image_url": snapshot.image_url,
                "baseline_qty": snapshot.baseline_qty,
                "extra_received": int(extra_received or 0),
                "restock_count": int(restock_count or 0),
                "sold": int(sold_qty or 0),
            })
        return rows

    async def compute(self, session: AsyncSession, season_key: str) -> SellThroughReport:
        """
        Sell-through for every snapshotted variant of ``season_key``.

        Returns:
            SellThroughReport; empty (not an error) when the season has no snapshot
        """
        season_key = require_season_key(season_key)
        rows = await self.load_variant_rows(session, season_key)

        if not rows:
            logger.info("No snapshot for season", season_key=season_key)
            return SellThroughReport(season_key=season_key)

        variants_df = (
            pl.from_dicts(rows, schema=VARIANT_SCHEMA)
            .with_columns(
                (pl.col("baseline_qty") + pl.col("extra_received")).alias("initial_total")
            )
            .sort(["product_title", "variant_title"], nulls_last=True, maintain_order=True)
        )

        products_df = (
            variants_df.group_by(["product_id", "product_title"], maintain_order=True)
            .agg([
                pl.col("image_url").drop_nulls().first().alias("image_url"),
                pl.len().alias("variant_count"),
                *[pl.col(column).sum() for column in TOTAL_COLUMNS],
            ])
            .sort(["product_title", "product_id"], nulls_last=True, maintain_order=True)
        )

        variants = [
            VariantSellThrough(**row, sell_through_pct=sell_through_pct(row["sold"], row["initial_total"]))
            for row in variants_df.to_dicts()
        ]
        products = [
            ProductSellThrough(**row, sell_through_pct=sell_through_pct(row["sold"], row["initial_total"]))
            for row in products_df.to_dicts()
        ]

        # Zero-stock products would sit at 0% and crowd out real laggards
        ranked = [product for product in products if product.initial_total > 0]
        best = sorted(ranked, key=lambda p: p.sell_through_pct, reverse=True)[: self.ranking_size]
        worst = sorted(ranked, key=lambda p: p.sell_through_pct)[: self.ranking_size]

        totals = variants_df.select(TOTAL_COLUMNS).sum().row(0, named=True)

        report = SellThroughReport(
            season_key=season_key,
            variants=variants,
            products=products,
            best=best,
            worst=worst,
            total_baseline=totals["baseline_qty"],
            total_received=totals["extra_received"],
            total_initial=totals["initial_total"],
            total_sold=totals["sold"],
            sell_through_pct=sell_through_pct(totals["sold"], totals["initial_total"]),
        )

        logger.info(
            "Sell-through computed",
            season_key=season_key,
            variants=len(variants),
            products=len(products),
            sell_through_pct=report.sell_through_pct,
        )
        return report
