"""
Inbound event handling.

Order-created and inventory-level-updated notifications are validated in
full before anything is written. Delivery is at-least-once and events carry
no idempotency key, so a replayed event is recorded again.
"""

from datetime import datetime
from typing import Any, List, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from sellthrough.catalog.models import ExternalId
from sellthrough.exceptions import InvalidEventError
from sellthrough.database.models import InventoryObservation, SaleRecord
from sellthrough.metrics import EVENTS_INGESTED
from .ledger import ChangeLedger, SalesLedger

logger = structlog.get_logger(__name__)

ORDER_CREATED = "orders/create"
INVENTORY_LEVEL_UPDATED = "inventory_levels/update"


class OrderLineItem(BaseModel):
    """Order line item"""
    model_config = ConfigDict(extra="ignore")

    variant_id: Optional[ExternalId] = None
    sku: Optional[str] = None
    quantity: int = Field(default=0, ge=0)

    @field_validator("quantity", mode="before")
    @classmethod
    def null_quantity_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("sku", mode="before")
    @classmethod
    def empty_sku_is_none(cls, v: Any) -> Any:
        return v or None


class OrderCreatedEvent(BaseModel):
    """Order-created notification"""
    model_config = ConfigDict(extra="ignore")

    id: ExternalId
    created_at: Optional[datetime] = None
    line_items: List[OrderLineItem]


class InventoryLevelEvent(BaseModel):
    """Inventory-level-updated notification"""
    model_config = ConfigDict(extra="ignore")

    inventory_item_id: ExternalId
    location_id: ExternalId
    available: int = 0

    @field_validator("available", mode="before")
    @classmethod
    def null_available_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


def _parse(model: type, event_type: str, payload: Any) -> Any:
    if not isinstance(payload, Mapping):
        EVENTS_INGESTED.labels(event_type=event_type, status="rejected").inc()
        raise InvalidEventError(event_type, "payload must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        EVENTS_INGESTED.labels(event_type=event_type, status="rejected").inc()
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        logger.warning("Rejected inbound event", event_type=event_type, field=location, error=first["msg"])
        raise InvalidEventError(event_type, f"{location}: {first['msg']}") from e


async def handle_order_created(
    session: AsyncSession,
    payload: Any,
    ledger: Optional[SalesLedger] = None,
) -> List[SaleRecord]:
    """Validate an order-created payload and append its line items to the sales ledger"""
    event = _parse(OrderCreatedEvent, ORDER_CREATED, payload)
    records = await (ledger or SalesLedger()).record_order(session, event)
    EVENTS_INGESTED.labels(event_type=ORDER_CREATED, status="accepted").inc()
    return records


async def handle_inventory_level_update(
    session: AsyncSession,
    payload: Any,
    ledger: Optional[ChangeLedger] = None,
) -> InventoryObservation:
    """Validate an inventory-level payload and append it to the change ledger"""
    event = _parse(InventoryLevelEvent, INVENTORY_LEVEL_UPDATED, payload)
    observation = await (ledger or ChangeLedger()).record_observation(
        session,
        stock_item_id=event.inventory_item_id,
        location_id=event.location_id,
        available_qty=event.available,
    )
    EVENTS_INGESTED.labels(event_type=INVENTORY_LEVEL_UPDATED, status="accepted").inc()
    return observation
