"""
Unit Tests - Season Snapshot to Report
"""
import pytest

from sellthrough.catalog import InventoryCollector
from sellthrough.exceptions import InvalidInputError
from sellthrough.ingestion import (
    SeasonSnapshotService,
    handle_inventory_level_update,
    handle_order_created,
)
from sellthrough.reporting import SellThroughAggregator


@pytest.fixture
def season_catalog(make_catalog):
    return make_catalog(
        products=[
            {
                "id": 1,
                "title": "Wool Coat",
                "tags": "FW25, MEN, outerwear",
                "variants": [
                    {"id": 101, "title": "S", "sku": "COAT-S", "inventory_item_id": 1001, "image_id": 9001},
                    {"id": 102, "title": "M", "sku": "COAT-M", "inventory_item_id": 1002, "image_id": None},
                ],
                "images": [
                    {"id": 9000, "src": "https://cdn.example.com/coat-front.jpg", "variant_ids": []},
                    {"id": 9001, "src": "https://cdn.example.com/coat-s.jpg", "variant_ids": [101]},
                ],
            },
            {
                "id": 2,
                "title": "Linen Shirt",
                "tags": "SS25, MEN",
                "variants": [{"id": 201, "title": "M", "inventory_item_id": 2001}],
                "images": [],
            },
            {
                "id": 3,
                "title": "Cashmere Scarf",
                "tags": "FW25, WOMEN",
                "variants": [{"id": 301, "title": "One Size", "inventory_item_id": 3001}],
                "images": [],
            },
            {
                "id": 4,
                "title": "Denim Jacket",
                "tags": "fw25,men,sale",
                "variants": [
                    {"id": 401, "title": "Blue", "inventory_item_id": 4001},
                    {"id": 402, "title": "Black", "inventory_item_id": None},
                ],
                "images": [],
            },
        ],
        levels=[
            {"inventory_item_id": 1001, "location_id": 1, "available": 6},
            {"inventory_item_id": 1001, "location_id": 2, "available": 4},
            {"inventory_item_id": 1002, "location_id": 1, "available": 20},
            {"inventory_item_id": 2001, "location_id": 1, "available": 99},
            {"inventory_item_id": 3001, "location_id": 1, "available": 7},
            {"inventory_item_id": 4001, "location_id": 1, "available": 0},
        ],
    )


@pytest.fixture
def snapshot_service(catalog_factory, season_catalog, sleep_recorder):
    client = catalog_factory(season_catalog.handler)
    collector = InventoryCollector(client, batch_size=2, batch_pause_seconds=0.6, sleep=sleep_recorder)
    return SeasonSnapshotService(client, collector=collector)


class TestSeasonScenario:
    """End-to-end season tracking"""

    async def test_snapshot_only_takes_tagged_products(self, test_db, snapshot_service, season_catalog, sleep_recorder):
        """Only products tagged with every season tag are snapshotted"""
        result = await snapshot_service.run(test_db, "FW25,MEN")

        assert result.season_key == "FW25,MEN"
        assert result.products == 2
        assert result.affected == 4
        assert result.inserted == 4

        report = await SellThroughAggregator().compute(test_db, "FW25,MEN")
        baselines = {v.variant_id: v.baseline_qty for v in report.variants}
        assert baselines == {"101": 10, "102": 20, "401": 0, "402": 0}

        images = {v.variant_id: v.image_url for v in report.variants}
        assert images["101"] == "https://cdn.example.com/coat-s.jpg"
        assert images["102"] == "https://cdn.example.com/coat-front.jpg"
        assert images["401"] is None

        # Three stock items in batches of two
        assert len(season_catalog.requests_to("inventory_levels.json")) == 2
        assert sleep_recorder.delays == [0.6]

    async def test_full_season(self, test_db, snapshot_service, season_catalog):
        """Snapshot, re-snapshot, restock and sales roll up into the report"""
        await snapshot_service.run(test_db, "FW25,MEN")

        # Stock moves and the snapshot is re-run: baselines stay put
        season_catalog.levels[0]["available"] = 1
        rerun = await snapshot_service.run(test_db, "FW25,MEN")
        assert rerun.inserted == 0
        assert rerun.updated == 4

        await handle_inventory_level_update(test_db, {"inventory_item_id": 1002, "location_id": 1, "available": 20})
        await handle_inventory_level_update(test_db, {"inventory_item_id": 1002, "location_id": 1, "available": 30})
        await handle_order_created(test_db, {
            "id": 9001,
            "line_items": [
                {"variant_id": 101, "sku": "COAT-S", "quantity": 5},
                {"variant_id": 102, "sku": "COAT-M", "quantity": 6},
                {"variant_id": 201, "sku": "SHIRT-M", "quantity": 50},
            ],
        })

        report = await SellThroughAggregator().compute(test_db, "FW25,MEN")

        assert [(v.product_title, v.variant_title) for v in report.variants] == [
            ("Denim Jacket", "Black"),
            ("Denim Jacket", "Blue"),
            ("Wool Coat", "M"),
            ("Wool Coat", "S"),
        ]
        coat = next(p for p in report.products if p.product_title == "Wool Coat")
        assert coat.baseline_qty == 30
        assert coat.extra_received == 10
        assert coat.initial_total == 40
        assert coat.sold == 11
        assert coat.sell_through_pct == 27.5

        jacket = next(p for p in report.products if p.product_title == "Denim Jacket")
        assert jacket.initial_total == 0
        assert jacket.sell_through_pct == 0.0

        assert [p.product_title for p in report.best] == ["Wool Coat"]
        assert [p.product_title for p in report.worst] == ["Wool Coat"]
        assert report.total_sold == 11
        assert report.sell_through_pct == 27.5

    async def test_other_season_untouched(self, test_db, snapshot_service):
        """Seasons are reported independently"""
        await snapshot_service.run(test_db, "FW25,MEN")
        await snapshot_service.run(test_db, "FW25;WOMEN")

        men = await SellThroughAggregator().compute(test_db, "FW25,MEN")
        women = await SellThroughAggregator().compute(test_db, "FW25;WOMEN")

        assert len(men.variants) == 4
        assert [v.variant_id for v in women.variants] == ["301"]
        assert women.total_baseline == 7

    async def test_no_matching_products(self, test_db, snapshot_service, season_catalog):
        """A season whose tags match nothing snapshots nothing"""
        result = await snapshot_service.run(test_db, "SS99")

        assert result.affected == 0
        assert season_catalog.requests_to("inventory_levels.json") == []

    async def test_blank_season_rejected(self, test_db, snapshot_service, season_catalog):
        """The snapshot trigger needs a season key"""
        with pytest.raises(InvalidInputError):
            await snapshot_service.run(test_db, "  ")

        assert season_catalog.requests == []
