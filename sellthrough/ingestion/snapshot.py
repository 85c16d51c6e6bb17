"""
Season Snapshot Merging

Establishes a season's baseline stock exactly once per variant. A variant
seen for the first time in a season gets its observed quantity as the
baseline; later snapshots only refresh descriptive metadata, so re-running
a snapshot after stock has moved never resets the baseline.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellthrough.catalog.client import CatalogClient
from sellthrough.catalog.discovery import discover_tagged_products, parse_season_key
from sellthrough.catalog.inventory import InventoryCollector
from sellthrough.catalog.models import CatalogProduct, ExternalId
from sellthrough.database.models import SeasonSnapshot, utcnow
from sellthrough.exceptions import InvalidInputError
from sellthrough.metrics import SNAPSHOT_ROWS

logger = structlog.get_logger(__name__)

# Columns a re-snapshot may overwrite; baseline_qty and snapshot_at are not among them
DESCRIPTIVE_FIELDS = (
    "stock_item_id",
    "product_id",
    "sku",
    "product_title",
    "variant_title",
    "image_url",
)


def require_season_key(season_key: Optional[str]) -> str:
    """Strip a season key, rejecting missing or blank keys"""
    if season_key is None or not str(season_key).strip():
        raise InvalidInputError("season key is required")
    return str(season_key).strip()


class VariantObservation(BaseModel):
    """A variant and the stock quantity observed for it"""
    variant_id: ExternalId
    stock_item_id: Optional[ExternalId] = None
    product_id: Optional[ExternalId] = None
    sku: Optional[str] = None
    product_title: Optional[str] = None
    variant_title: Optional[str] = None
    image_url: Optional[str] = None
    observed_qty: int = 0


class SnapshotResult(BaseModel):
    """Outcome of a snapshot or baseline import"""
    season_key: str
    inserted: int = 0
    updated: int = 0
    products: Optional[int] = None

    @property
    def affected(self) -> int:
        """Variant rows inserted or refreshed"""
        return self.inserted + self.updated


class SnapshotMerger:
    """
    Non-destructive merge of observed variants into season baselines.

    Rows are written through the caller's session, one after another; the
    caller's transaction decides what happens to earlier rows if a later
    write fails.
    """

    async def apply_snapshot(
        self,
        session: AsyncSession,
        season_key: str,
        rows: Sequence[VariantObservation],
    ) -> SnapshotResult:
        """
        Merge ``rows`` into the baselines of ``season_key``.

        New (variant, season) pairs are inserted with ``baseline_qty`` set to
        the observed quantity. Existing pairs only get the descriptive fields
        that the row explicitly carries.
        """
        season_key = require_season_key(season_key)
        result = SnapshotResult(season_key=season_key)

        existing_rows = await session.execute(
            select(SeasonSnapshot).where(SeasonSnapshot.season_key == season_key)
        )
        existing: Dict[str, SeasonSnapshot] = {
            snapshot.variant_id: snapshot for snapshot in existing_rows.scalars().all()
        }

        now = utcnow()
        for row in rows:
            current = existing.get(row.variant_id)

            if current is None:
                snapshot = SeasonSnapshot(
                    variant_id=row.variant_id,
                    season_key=season_key,
                    stock_item_id=row.stock_item_id,
                    product_id=row.product_id,
                    sku=row.sku,
                    product_title=row.product_title,
                    variant_title=row.variant_title,
                    image_url=row.image_url,
                    baseline_qty=max(row.observed_qty, 0),
                    snapshot_at=now,
                    updated_at=now,
                )
                session.add(snapshot)
                existing[row.variant_id] = snapshot
                result.inserted += 1
                continue

            for field in DESCRIPTIVE_FIELDS:
                if field in row.model_fields_set:
                    setattr(current, field, getattr(row, field))
            current.updated_at = now
            result.updated += 1

        await session.flush()

        SNAPSHOT_ROWS.labels(outcome="inserted").inc(result.inserted)
        SNAPSHOT_ROWS.labels(outcome="updated").inc(result.updated)
        logger.info(
            "Snapshot merged",
            season_key=season_key,
            inserted=result.inserted,
            updated=result.updated,
        )
        return result


def observations_from_products(
    products: Iterable[CatalogProduct],
    quantities: Mapping[str, int],
) -> List[VariantObservation]:
    """Flatten products into one observation per variant"""
    observations = []
    for product in products:
        for variant in product.variants:
            qty = quantities.get(variant.inventory_item_id, 0) if variant.inventory_item_id else 0
            observations.append(
                VariantObservation(
                    variant_id=variant.id,
                    stock_item_id=variant.inventory_item_id,
                    product_id=product.id,
                    sku=variant.sku,
                    product_title=product.title,
                    variant_title=variant.title,
                    image_url=product.image_for(variant),
                    observed_qty=qty,
                )
            )
    return observations


class SeasonSnapshotService:
    """
    Snapshot trigger: discover a season's products, read their stock and
    merge it into the season baselines.

    Example:
        async with CatalogClient(settings.catalog) as client:
            service = SeasonSnapshotService(client)
            async with get_db() as db:
                result = await service.run(db, "FW25, MEN")
    """

    def __init__(
        self,
        client: CatalogClient,
        collector: Optional[InventoryCollector] = None,
        merger: Optional[SnapshotMerger] = None,
    ):
        self.client = client
        self.collector = collector or InventoryCollector(client)
        self.merger = merger or SnapshotMerger()

    async def run(self, session: AsyncSession, season_key: str) -> SnapshotResult:
        """
        Snapshot every variant of the products tagged for ``season_key``.

        Returns:
            SnapshotResult whose ``affected`` is the number of variant rows touched
        """
        season_key = require_season_key(season_key)
        required_tags = parse_season_key(season_key)

        logger.info("Starting season snapshot", season_key=season_key, required_tags=sorted(required_tags))

        products = await discover_tagged_products(self.client, required_tags)
        if not products:
            logger.warning("No products matched season tags", season_key=season_key)
            return SnapshotResult(season_key=season_key, products=0)

        stock_item_ids = [
            variant.inventory_item_id
            for product in products
            for variant in product.variants
            if variant.inventory_item_id
        ]
        quantities = await self.collector.collect_availability(stock_item_ids)

        observations = observations_from_products(products, quantities)
        result = await self.merger.apply_snapshot(session, season_key, observations)
        result.products = len(products)

        logger.info(
            "Season snapshot completed",
            season_key=season_key,
            products=len(products),
            variants=len(observations),
            affected=result.affected,
        )
        return result

    async def import_baselines(
        self,
        session: AsyncSession,
        season_key: Optional[str],
        items: Optional[Sequence[Mapping[str, Any]]],
    ) -> SnapshotResult:
        """Merge manually supplied baselines through this service's merger"""
        return await import_baselines(session, season_key, items, merger=self.merger)


class BaselineImportItem(BaseModel):
    """One manually supplied baseline"""
    variant_id: ExternalId
    sku: Optional[str] = None
    initial_qty: int = Field(default=0, ge=0)
    stock_item_id: Optional[ExternalId] = None
    product_id: Optional[ExternalId] = None
    product_title: Optional[str] = None
    variant_title: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("initial_qty", mode="before")
    @classmethod
    def null_qty_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


async def import_baselines(
    session: AsyncSession,
    season_key: Optional[str],
    items: Optional[Sequence[Mapping[str, Any]]],
    merger: Optional[SnapshotMerger] = None,
) -> SnapshotResult:
    """
    Merge externally supplied baselines (CSV/JSON exports) into a season.

    All items are validated before anything is written. Imports follow the
    same write-once rule as catalog snapshots.
    """
    season_key = require_season_key(season_key)
    if items is None:
        raise InvalidInputError("items are required")

    parsed: List[BaselineImportItem] = []
    for index, item in enumerate(items):
        try:
            parsed.append(BaselineImportItem.model_validate(item))
        except ValidationError as e:
            raise InvalidInputError(f"item {index}: {e.errors()[0]['msg']}") from e

    observations = []
    for item in parsed:
        values = item.model_dump(exclude_unset=True)
        values["observed_qty"] = values.pop("initial_qty", 0)
        observations.append(VariantObservation(**values))

    merger = merger or SnapshotMerger()
    return await merger.apply_snapshot(session, season_key, observations)
