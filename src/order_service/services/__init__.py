"""Business logic services."""

from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_persistence import OrderUpsertGate
from order_service.services.order_scheduler import OrderSchedulerService
from order_service.services.order_sync import OrderSyncService
from order_service.services.order_transformer import transform_order
from order_service.services.status_monitor import OrderStatusMonitor
from order_service.services.time_window import compute_window

__all__ = [
    "ExternalOrderFetcher",
    "OrderUpsertGate",
    "OrderSchedulerService",
    "OrderSyncService",
    "OrderStatusMonitor",
    "compute_window",
    "transform_order",
]
