"""
Ingestion Module
"""
from .events import (
    InventoryLevelEvent,
    OrderCreatedEvent,
    OrderLineItem,
    handle_inventory_level_update,
    handle_order_created,
)
from .ledger import ChangeLedger, SalesLedger
from .snapshot import (
    SeasonSnapshotService,
    SnapshotMerger,
    SnapshotResult,
    VariantObservation,
    import_baselines,
)

__all__ = [
    "InventoryLevelEvent",
    "OrderCreatedEvent",
    "OrderLineItem",
    "handle_inventory_level_update",
    "handle_order_created",
    "ChangeLedger",
    "SalesLedger",
    "SeasonSnapshotService",
    "SnapshotMerger",
    "SnapshotResult",
    "VariantObservation",
    "import_baselines",
]
