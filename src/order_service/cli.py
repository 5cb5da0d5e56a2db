#!/usr/bin/env python3
"""Order management CLI.

Usage:
    order-cli download --all
    order-cli list --status new --limit 10
    order-cli status
    order-cli scheduler:run-now
    order-cli scheduler:monitor-now
"""

import argparse
import asyncio
import sys

import structlog

from order_service.config import get_settings
from order_service.container import ServiceContainer, build_container
from order_service.errors import OrderSyncError
from order_service.infrastructure.logging import configure_logging
from order_service.schemas import OrderFilters
from shared.constants import DEFAULT_ORDER_LIST_LIMIT

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="order-cli", description="Order management CLI"
    )
    commands = parser.add_subparsers(dest="command")

    download = commands.add_parser(
        "download", help="Download ALL orders from IdoSell (with pagination)"
    )
    download.add_argument("--all", action="store_true", help="Download every order")

    list_cmd = commands.add_parser("list", help="List orders in the database")
    list_cmd.add_argument("--status", help="Only orders with this status")
    list_cmd.add_argument("--limit", type=int, default=DEFAULT_ORDER_LIST_LIMIT)

    commands.add_parser("status", help="Show service and database status")
    commands.add_parser("scheduler:run-now", help="Run the scheduled download now")
    commands.add_parser("scheduler:monitor-now", help="Run status monitoring now")
    commands.add_parser("help", help="Show this help message")
    return parser


def log_progress(current: int, total: int) -> None:
    logger.info("Progress", current=current, total=total)


async def download_all(container: ServiceContainer) -> int:
    print("Downloading ALL orders from IdoSell...")
    summary = await container.sync_service.sync_all(on_progress=log_progress)
    print(
        f"Downloaded {summary.downloaded} orders: {summary.created} created, "
        f"{summary.updated} updated, {summary.skipped} skipped, "
        f"{len(summary.errors)} errors"
    )
    for error in summary.errors:
        print(f"  - {error}")
    return 0


async def list_orders(container: ServiceContainer, status: str | None, limit: int) -> int:
    filters = OrderFilters(status=status, limit=limit)
    orders = await container.repository.get_all(filters)
    count = await container.repository.get_count(filters)

    print(f"\nFound {count} orders:")
    if not orders:
        print("   No orders found")
        return 0

    for order in orders:
        created = order.external_created_at or order.created_at
        print(f"   {order.external_serial_number or order.external_id}")
        print(
            f"      Status: {order.status or 'N/A'} | "
            f"Total: {order.order_products_cost} {order.currency or ''}".rstrip()
        )
        print(f"      Date: {created.date().isoformat() if created else 'N/A'}")
        print("")
    return 0


async def show_status(container: ServiceContainer) -> int:
    settings = container.settings
    ready = container.fetcher.is_ready()

    print("\nExternal API Service Status:")
    print(f"   Ready: {'Yes' if ready else 'No'}")
    print(f"   Shop URL: {settings.idosell_shop_url or 'not configured'}")
    print(f"   API Key: {'***configured***' if settings.idosell_api_key else 'not configured'}")
    print(f"   API Version: {settings.idosell_api_version}")

    if not ready:
        print("\nTo configure the external API service:")
        print("   1. Set IDOSELL_SHOP_URL environment variable")
        print("   2. Set IDOSELL_API_KEY environment variable")
        print("   3. Optionally set IDOSELL_API_VERSION (default: v6)")

    count = await container.repository.get_count()
    print("\nDatabase Status:")
    print(f"   Total orders in database: {count}")
    return 0


async def run_command(args: argparse.Namespace, container: ServiceContainer) -> int:
    """Dispatch one parsed command against a built container."""
    try:
        if args.command == "download":
            if not args.all:
                print("Invalid download command. Use --all to download all orders")
                return 2
            return await download_all(container)
        if args.command == "list":
            return await list_orders(container, args.status, args.limit)
        if args.command == "status":
            return await show_status(container)
        if args.command == "scheduler:run-now":
            print("Running scheduler download task...")
            await container.scheduler.run_now()
            return 0
        if args.command == "scheduler:monitor-now":
            print("Running status monitoring task...")
            await container.scheduler.run_status_monitoring_now()
            return 0
    except OrderSyncError as e:
        logger.error("Command failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 2


async def _main(args: argparse.Namespace) -> int:
    container = build_container(get_settings())
    try:
        return await run_command(args, container)
    finally:
        await container.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    configure_logging(get_settings())
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
