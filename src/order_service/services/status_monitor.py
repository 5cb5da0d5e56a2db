"""Status monitoring pass.

Refreshes already stored orders that IdoSell reports as recently modified, so
status changes after the initial download are picked up.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from order_service.errors import OrderSyncError
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_persistence import OrderUpsertGate, utc_now
from order_service.services.order_transformer import transform_order
from order_service.schemas import DateType, InternalOrder, StatusMonitoringResult
from shared.constants import (
    FINAL_ORDER_STATUSES,
    SCHEDULER_DEFAULT_TIMEZONE,
    STATUS_MONITOR_FRESH_MINUTES,
    STATUS_MONITOR_MODIFIED_LOOKBACK_HOURS,
)

logger = structlog.get_logger()


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def has_changed(stored: InternalOrder, fresh: InternalOrder) -> bool:
    """True when status, cost, products or external update time differ."""
    return (
        stored.status != fresh.status
        or stored.order_products_cost != fresh.order_products_cost
        or stored.order_products != fresh.order_products
        or _utc(stored.external_updated_at) != _utc(fresh.external_updated_at)
    )


class OrderStatusMonitor:
    """Updates stored orders that changed upstream.

    Reads through the repository; every write goes through the upsert gate.
    """

    def __init__(
        self,
        fetcher: ExternalOrderFetcher,
        repository: OrderRepository,
        gate: OrderUpsertGate,
        source_timezone: str = SCHEDULER_DEFAULT_TIMEZONE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = fetcher
        self.repository = repository
        self.gate = gate
        self.source_timezone = source_timezone
        self.clock = clock

    async def run(
        self,
        fresh_minutes: int = STATUS_MONITOR_FRESH_MINUTES,
        modified_lookback_hours: int = STATUS_MONITOR_MODIFIED_LOOKBACK_HOURS,
    ) -> StatusMonitoringResult:
        """
        Check orders modified in the last ``modified_lookback_hours``.

        Orders written within the last ``fresh_minutes`` and orders already in
        a final status are skipped. Orders that are not stored yet are left to
        the main sync.

        Raises:
            ExternalApiError: If the modified-orders fetch fails
        """
        now = _utc(self.clock())
        raw_orders = await self.fetcher.fetch_by_time_window(
            now - timedelta(hours=modified_lookback_hours), now, DateType.MODIFIED
        )
        fresh_cutoff = now - timedelta(minutes=fresh_minutes)
        result = StatusMonitoringResult()

        for raw in raw_orders:
            result.checked += 1
            try:
                fresh = transform_order(raw, self.source_timezone)
                stored = await self.repository.get_by_external_id(fresh.external_id)

                if stored is None:
                    result.skipped += 1
                    continue
                if stored.updated_at is not None and _utc(stored.updated_at) > fresh_cutoff:
                    result.skipped += 1
                    continue
                if stored.status in FINAL_ORDER_STATUSES or not has_changed(stored, fresh):
                    result.skipped += 1
                    continue

                await self.gate.update_stored(fresh)
                result.updated += 1
                logger.info(
                    "Order status updated",
                    external_id=fresh.external_id,
                    old_status=stored.status,
                    new_status=fresh.status,
                )
            except OrderSyncError as e:
                result.errors.append(str(e))
                logger.error("Status check failed", error=str(e))

        logger.info(
            "Status monitoring completed",
            checked=result.checked,
            updated=result.updated,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result
