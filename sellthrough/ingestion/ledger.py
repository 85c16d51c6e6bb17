"""
Append-only ledgers.

ChangeLedger stores inventory readings together with the signed change
from the previous reading of the same stock item at the same location.
SalesLedger stores one row per order line item.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sellthrough.database.models import InventoryObservation, SaleRecord, to_naive_utc, utcnow

if TYPE_CHECKING:
    from .events import OrderCreatedEvent

logger = structlog.get_logger(__name__)


class ChangeLedger:
    """Inventory-change ledger"""

    async def latest_observation(
        self,
        session: AsyncSession,
        stock_item_id: str,
        location_id: str,
    ) -> Optional[InventoryObservation]:
        """Most recent reading for the (stock item, location) pair"""
        result = await session.execute(
            select(InventoryObservation)
            .where(
                InventoryObservation.stock_item_id == stock_item_id,
                InventoryObservation.location_id == location_id,
            )
            .order_by(InventoryObservation.recorded_at.desc(), InventoryObservation.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def record_observation(
        self,
        session: AsyncSession,
        stock_item_id: str,
        location_id: str,
        available_qty: int,
        recorded_at: Optional[datetime] = None,
    ) -> InventoryObservation:
        """
        Append a reading and its delta against the previous reading.

        The first reading of a pair has delta 0: there is nothing to diff
        against, so a restock arriving before the first reading is not counted.
        """
        stock_item_id = str(stock_item_id)
        location_id = str(location_id)

        prior = await self.latest_observation(session, stock_item_id, location_id)
        delta = available_qty - prior.available_qty if prior is not None else 0

        observation = InventoryObservation(
            stock_item_id=stock_item_id,
            location_id=location_id,
            available_qty=available_qty,
            delta=delta,
            recorded_at=to_naive_utc(recorded_at) if recorded_at else utcnow(),
        )
        session.add(observation)
        await session.flush()

        logger.debug(
            "Inventory observation recorded",
            stock_item_id=stock_item_id,
            location_id=location_id,
            available=available_qty,
            delta=delta,
        )
        return observation


class SalesLedger:
    """Sales ledger fed by order-created events"""

    async def record_order(self, session: AsyncSession, event: "OrderCreatedEvent") -> List[SaleRecord]:
        """Append one sale row per line item of the order"""
        created_at = to_naive_utc(event.created_at) if event.created_at else utcnow()

        records = [
            SaleRecord(
                variant_id=line.variant_id,
                sku=line.sku,
                qty=line.quantity,
                order_id=event.id,
                created_at=created_at,
            )
            for line in event.line_items
        ]
        session.add_all(records)
        await session.flush()

        logger.info(
            "Order recorded",
            order_id=event.id,
            line_items=len(records),
            units=sum(record.qty for record in records),
        )
        return records
