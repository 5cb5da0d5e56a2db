"""Order sync orchestrator.

Runs the fetch → transform → upsert pipeline and aggregates per-item outcomes
into batch results. Per-item failures are collected, never raised; fetch
failures propagate to the caller.
"""

from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from order_service.errors import PersistenceError, TransformError
from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_persistence import OrderUpsertGate, utc_now
from order_service.services.order_transformer import transform_order
from order_service.services.time_window import compute_window
from order_service.schemas import (
    DateType,
    ProgressCallback,
    RawExternalOrder,
    SyncBatchResult,
    SyncSummary,
    UpsertOutcome,
)
from shared.constants import SCHEDULER_DEFAULT_TIMEZONE

logger = structlog.get_logger()


class OrderSyncService:
    """Service for synchronizing IdoSell orders into the order store."""

    def __init__(
        self,
        fetcher: ExternalOrderFetcher,
        gate: OrderUpsertGate,
        source_timezone: str = SCHEDULER_DEFAULT_TIMEZONE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = fetcher
        self.gate = gate
        self.source_timezone = source_timezone
        self.clock = clock

    async def run_batch(
        self,
        raw_orders: Sequence[RawExternalOrder],
        update_existing: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> SyncBatchResult:
        """
        Transform and upsert each order in fetch order.

        Args:
            raw_orders: Raw orders as returned by the fetcher
            update_existing: Whether already stored orders get overwritten
            on_progress: Called with ``(current, total)`` after every item

        Returns:
            Aggregated counts plus one message per failed item
        """
        result = SyncBatchResult(total=len(raw_orders))
        if not raw_orders:
            return result

        for index, raw in enumerate(raw_orders, start=1):
            try:
                order = transform_order(raw, self.source_timezone)
                outcome = await self.gate.upsert(order, update_existing)
            except TransformError as e:
                result.skipped += 1
                result.errors.append(str(e))
                logger.warning("Skipping order", error=str(e))
            except PersistenceError as e:
                result.errors.append(f"Failed to save order: {e}")
                logger.error("Failed to save order", error=str(e))
            else:
                if outcome is UpsertOutcome.CREATED:
                    result.created += 1
                elif outcome is UpsertOutcome.UPDATED:
                    result.updated += 1
                else:
                    result.skipped += 1

            if on_progress is not None:
                on_progress(index, result.total)

        logger.info(
            "Order batch saved",
            total=result.total,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result

    async def _save(
        self,
        raw_orders: list[RawExternalOrder],
        update_existing: bool,
        on_progress: ProgressCallback | None = None,
    ) -> SyncSummary:
        batch = await self.run_batch(raw_orders, update_existing, on_progress)
        return SyncSummary(
            success=True, downloaded=len(raw_orders), **batch.model_dump()
        )

    async def sync_by_serial_numbers(
        self,
        serial_numbers: Sequence[str | int],
        update_existing: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> SyncSummary:
        """Download specific orders and save them."""
        raw_orders = await self.fetcher.fetch_by_serial_numbers(serial_numbers)
        summary = await self._save(raw_orders, update_existing, on_progress)
        logger.info("Serial number sync completed", **summary.model_dump(exclude={"errors"}))
        return summary

    async def sync_by_date_range(
        self,
        date_from: datetime | None,
        date_to: datetime | None,
        date_type: DateType = DateType.ADDED,
        update_existing: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> SyncSummary:
        """Download orders in a time window and save them."""
        raw_orders = await self.fetcher.fetch_by_time_window(date_from, date_to, date_type)
        summary = await self._save(raw_orders, update_existing, on_progress)
        logger.info("Date range sync completed", **summary.model_dump(exclude={"errors"}))
        return summary

    async def sync_recent(
        self,
        lookback_minutes: int,
        date_type: DateType = DateType.ADDED,
        update_existing: bool = True,
        now: datetime | None = None,
    ) -> SyncSummary:
        """Download orders from the last ``lookback_minutes`` and save them."""
        window = compute_window(now or self.clock(), lookback_minutes)
        return await self.sync_by_date_range(
            window.date_from, window.date_to, date_type, update_existing
        )

    async def sync_all(
        self, on_progress: ProgressCallback | None = None
    ) -> SyncSummary:
        """Download every order in the shop and save them."""
        raw_orders = await self.fetcher.fetch_all(on_progress=on_progress)
        summary = await self._save(raw_orders, update_existing=True, on_progress=on_progress)
        logger.info("Full order sync completed", **summary.model_dump(exclude={"errors"}))
        return summary
