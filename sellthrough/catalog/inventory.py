"""
Bulk inventory-level collection.

Stock items are queried in fixed-size batches, one bulk request per batch,
with a pause between batches to stay under the API rate limit.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

import structlog

from sellthrough.config import InventorySettings
from .client import CatalogClient, SleepFunc

logger = structlog.get_logger(__name__)


def chunked(items: List[str], size: int) -> List[List[str]]:
    """Split ``items`` into consecutive chunks of at most ``size``"""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


class InventoryCollector:
    """
    Collects available quantities for stock items across all locations.

    Example:
        collector = InventoryCollector(client)
        quantities = await collector.collect_availability({"111", "222"})
    """

    def __init__(
        self,
        client: CatalogClient,
        batch_size: int = 40,
        batch_pause_seconds: float = 0.6,
        levels_limit: int = 250,
        sleep: Optional[SleepFunc] = None,
    ):
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        self.client = client
        self.batch_size = batch_size
        self.batch_pause_seconds = batch_pause_seconds
        self.levels_limit = levels_limit
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(
        cls,
        client: CatalogClient,
        settings: InventorySettings,
        sleep: Optional[SleepFunc] = None,
    ) -> "InventoryCollector":
        return cls(
            client,
            batch_size=settings.batch_size,
            batch_pause_seconds=settings.batch_pause_seconds,
            levels_limit=settings.levels_limit,
            sleep=sleep,
        )

    async def collect_availability(self, stock_item_ids: Iterable[str]) -> Dict[str, int]:
        """
        Total available quantity per stock item, summed over locations.

        Every requested id is present in the result; ids the API did not
        report map to 0.
        """
        unique_ids = list(dict.fromkeys(str(i) for i in stock_item_ids if i is not None and str(i) != ""))
        totals: Dict[str, int] = {stock_item_id: 0 for stock_item_id in unique_ids}

        batches = chunked(unique_ids, self.batch_size)
        logger.info(
            "Collecting inventory levels",
            stock_items=len(unique_ids),
            batches=len(batches),
            batch_size=self.batch_size,
        )

        for index, batch in enumerate(batches):
            if index > 0 and self.batch_pause_seconds > 0:
                await self._sleep(self.batch_pause_seconds)

            levels = await self.client.list_inventory_levels(batch, limit=self.levels_limit)
            for level in levels:
                stock_item_id = level.get("inventory_item_id")
                if stock_item_id is None:
                    continue
                stock_item_id = str(stock_item_id)
                totals[stock_item_id] = totals.get(stock_item_id, 0) + int(level.get("available") or 0)

            logger.debug(
                "Inventory batch collected",
                batch=index + 1,
                stock_items=len(batch),
                levels=len(levels),
            )

        return totals
