#!/usr/bin/env python
"""
Command Line Entry Point

Usage:
    sellthrough migrate
    sellthrough snapshot --season "FW25,MEN"
    sellthrough report --season "FW25,MEN" [--json]
    sellthrough import-baselines --season "FW25,MEN" baselines.json
    sellthrough ingest-order order.json
    sellthrough ingest-inventory level.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import structlog

from sellthrough.catalog import InventoryCollector, create_catalog_client
from sellthrough.config import get_settings
from sellthrough.config.logging import configure_logging
from sellthrough.database import (
    apply_migrations,
    close_database,
    create_engine_for,
    get_db,
    init_database,
)
from sellthrough.exceptions import InvalidInputError, SellThroughError
from sellthrough.ingestion import (
    SeasonSnapshotService,
    handle_inventory_level_update,
    handle_order_created,
    import_baselines,
)
from sellthrough.reporting import ProductSellThrough, SellThroughAggregator, SellThroughReport

logger = structlog.get_logger(__name__)


def load_json_file(path: str) -> Any:
    """Read a JSON document, reporting unreadable or malformed files as bad input"""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise InvalidInputError(f"cannot read {path}: {e.strerror}") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e.msg}") from e


def _format_products(title: str, products: List[ProductSellThrough]) -> List[str]:
    lines = [title]
    if not products:
        lines.append("  (none)")
    for product in products:
        lines.append(
            f"  {product.sell_through_pct:5.1f}%  {product.sold:>6} / {product.initial_total:<6} "
            f"{product.product_title or product.product_id or '-'}"
        )
    return lines


def format_report(report: SellThroughReport) -> str:
    """Plain-text rendering of a sell-through report"""
    if report.is_empty:
        return f"No snapshot found for season '{report.season_key}'"

    lines = [
        f"Season {report.season_key}: {report.sell_through_pct:.1f}% sold "
        f"({report.total_sold} of {report.total_initial}; baseline {report.total_baseline}, "
        f"received {report.total_received})",
        "",
    ]
    lines.extend(_format_products("Best sellers", report.best))
    lines.append("")
    lines.extend(_format_products("Slowest sellers", report.worst))
    lines.append("")
    lines.append("Variants")
    for variant in report.variants:
        name = " / ".join(part for part in (variant.product_title, variant.variant_title) if part)
        lines.append(
            f"  {variant.sell_through_pct:5.1f}%  {variant.sold:>6} / {variant.initial_total:<6} "
            f"{name or variant.variant_id}"
        )
    return "\n".join(lines)


async def migrate_command(args: argparse.Namespace) -> int:
    engine = create_engine_for(get_settings().database)
    try:
        applied = await apply_migrations(engine)
    finally:
        await engine.dispose()

    if applied:
        print(f"Applied migrations: {', '.join(str(version) for version in applied)}")
    else:
        print("Database schema is up to date")
    return 0


async def snapshot_command(args: argparse.Namespace) -> int:
    async with create_catalog_client() as client:
        collector = InventoryCollector.from_settings(client, get_settings().inventory)
        service = SeasonSnapshotService(client, collector=collector)
        async with get_db() as db:
            result = await service.run(db, args.season)

    print(f"Snapshot for '{result.season_key}': {result.affected} variants "
          f"({result.inserted} new, {result.updated} refreshed)")
    return 0


async def import_baselines_command(args: argparse.Namespace) -> int:
    payload = load_json_file(args.file)
    items = payload.get("items") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise InvalidInputError("baseline file must hold a list of items")

    async with get_db() as db:
        result = await import_baselines(db, args.season, items)

    print(f"Imported baselines for '{result.season_key}': {result.affected} variants "
          f"({result.inserted} new, {result.updated} refreshed)")
    return 0


async def report_command(args: argparse.Namespace) -> int:
    async with get_db() as db:
        report = await SellThroughAggregator().compute(db, args.season)

    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(format_report(report))
    return 0


async def ingest_order_command(args: argparse.Namespace) -> int:
    payload = load_json_file(args.file)
    async with get_db() as db:
        records = await handle_order_created(db, payload)

    print(f"Recorded {len(records)} line items")
    return 0


async def ingest_inventory_command(args: argparse.Namespace) -> int:
    payload = load_json_file(args.file)
    async with get_db() as db:
        observation = await handle_inventory_level_update(db, payload)

    print(f"Recorded inventory level {observation.available_qty} (delta {observation.delta:+d})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sellthrough", description="Season sell-through tracker")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Apply pending schema migrations")
    migrate.set_defaults(handler=migrate_command, needs_database=False)

    snapshot = subparsers.add_parser("snapshot", help="Capture baselines for a season's tagged products")
    snapshot.add_argument("--season", required=True, help="Season key, e.g. 'FW25,MEN'")
    snapshot.set_defaults(handler=snapshot_command, needs_database=True)

    baselines = subparsers.add_parser("import-baselines", help="Merge baselines from a JSON file")
    baselines.add_argument("--season", required=True, help="Season key")
    baselines.add_argument("file", help="JSON list of {variant_id, sku, initial_qty, ...}")
    baselines.set_defaults(handler=import_baselines_command, needs_database=True)

    report = subparsers.add_parser("report", help="Print the sell-through report for a season")
    report.add_argument("--season", required=True, help="Season key")
    report.add_argument("--json", action="store_true", help="Print the report as JSON")
    report.set_defaults(handler=report_command, needs_database=True)

    order = subparsers.add_parser("ingest-order", help="Record an order-created event from a JSON file")
    order.add_argument("file")
    order.set_defaults(handler=ingest_order_command, needs_database=True)

    inventory = subparsers.add_parser("ingest-inventory", help="Record an inventory-level event from a JSON file")
    inventory.add_argument("file")
    inventory.set_defaults(handler=ingest_inventory_command, needs_database=True)

    return parser


async def dispatch(args: argparse.Namespace) -> int:
    if not args.needs_database:
        return await args.handler(args)

    await init_database()
    try:
        return await args.handler(args)
    finally:
        await close_database()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return asyncio.run(dispatch(args))
    except SellThroughError as e:
        logger.error("Command failed", command=args.command, error=str(e), error_type=type(e).__name__)
        print(f"sellthrough {args.command} failed; see log output for details", file=sys.stderr)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
