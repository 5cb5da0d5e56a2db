"""Domain schemas shared by the sync pipeline, the API and the CLI."""

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from shared.constants import QUANTITY_NOT_AVAILABLE

RawExternalOrder = dict[str, Any]

# on_progress(current, total)
ProgressCallback = Callable[[int, int], None]


class DateType(str, Enum):
    """Date dimension used when searching external orders by time window."""

    ADDED = "added"
    MODIFIED = "modified"
    DISPATCHED = "dispatched"
    PAID = "paid"
    LAST_PAYMENT_OPERATION = "last-payment-operation"
    DECLARED_PAYMENTS = "declared-payments"


class UpsertOutcome(str, Enum):
    """Result of committing one order through the upsert gate."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class TimeWindow(BaseModel):
    """UTC interval bounding an external order query."""

    date_from: datetime
    date_to: datetime


class OrderProduct(BaseModel):
    """A single order line."""

    product_id: str | None = None
    product_quantity: float | Literal["N/A"] = QUANTITY_NOT_AVAILABLE


class InternalOrder(BaseModel):
    """Order in the internal schema.

    ``id``, ``created_at`` and ``updated_at`` are owned by the store and are
    ``None`` on freshly transformed orders.
    """

    id: int | None = None
    external_id: str = Field(..., min_length=1)
    external_serial_number: str | None = None
    currency: str | None = None
    status: str | None = None
    order_products_cost: Decimal = Decimal("0")
    order_products: list[OrderProduct] = Field(default_factory=list)
    external_created_at: datetime | None = None
    external_updated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def sync_fields(self) -> dict[str, Any]:
        """Fields replaced wholesale on every sync of the same external_id."""
        return {
            "external_serial_number": self.external_serial_number,
            "currency": self.currency,
            "status": self.status,
            "order_products_cost": self.order_products_cost,
            "order_products": [p.model_dump() for p in self.order_products],
            "external_created_at": self.external_created_at,
            "external_updated_at": self.external_updated_at,
        }


class OrderFilters(BaseModel):
    """Listing filters supported by the order store."""

    status: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_worth: Decimal | None = None
    max_worth: Decimal | None = None
    limit: int | None = None


class SyncBatchResult(BaseModel):
    """Aggregated outcome of one orchestrator batch."""

    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class SyncSummary(SyncBatchResult):
    """Outcome of a fetch-and-save operation."""

    success: bool = True
    downloaded: int = 0


class StatusMonitoringResult(BaseModel):
    """Outcome of one status monitoring pass."""

    checked: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class PaginationInfo(BaseModel):
    """Paging metadata reported by the external API."""

    total_orders: int = 0
    total_pages: int = 0
    orders_per_page: int = 0


class SchedulerStatus(BaseModel):
    """Observable scheduler state."""

    is_scheduled: bool
    is_running: bool
    interval_minutes: int
    lookback_minutes: int
    api_ready: bool
