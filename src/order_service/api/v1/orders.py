"""Order API endpoints: stored order listing and on-demand downloads."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from order_service.api.deps import get_fetcher, get_repository, get_sync_service
from order_service.config import Settings, get_settings
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.schemas import DateType, InternalOrder, OrderFilters, SyncSummary
from order_service.services import ExternalOrderFetcher, OrderSyncService
from shared.constants import (
    DEFAULT_ORDER_LIST_LIMIT,
    MAX_ORDER_LIST_LIMIT,
    MAX_ORDER_WORTH,
)

router = APIRouter()


def mask_secret(value: str, visible: int = 4) -> str:
    """Show only the first characters of a credential."""
    if not value:
        return "not configured"
    return f"{value[:visible]}***"


def mask_url(url: str, visible: int = 4) -> str:
    """Keep the scheme and the first characters of the host."""
    if not url:
        return "not configured"
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return mask_secret(url, visible)
    return f"{parts.scheme}://{mask_secret(parts.netloc, visible)}"


# =============================================================================
# Request/Response Models
# =============================================================================


class OrderListResponse(BaseModel):
    """Stored orders matching the filters."""

    count: int
    orders: list[InternalOrder]


class SerialNumberDownloadRequest(BaseModel):
    """Request model for downloading specific orders."""

    serial_numbers: list[str | int] = Field(
        ..., description="IdoSell order serial numbers"
    )
    update_existing: bool = Field(True, description="Overwrite orders already stored")


class DateRangeDownloadRequest(BaseModel):
    """Request model for downloading orders in a time window."""

    date_from: datetime
    date_to: datetime
    date_type: DateType = DateType.ADDED
    update_existing: bool = True


class ExternalApiStatusResponse(BaseModel):
    """IdoSell client configuration, with credentials masked."""

    ready: bool
    shop_url: str
    api_key: str
    api_version: str


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=OrderListResponse)
async def list_orders(
    repository: OrderRepository = Depends(get_repository),
    status: str | None = Query(None, max_length=100, description="Order status"),
    date_from: datetime | None = Query(None, description="Created at or after"),
    date_to: datetime | None = Query(None, description="Created at or before"),
    min_worth: Annotated[Decimal | None, Query(ge=0, le=MAX_ORDER_WORTH)] = None,
    max_worth: Annotated[Decimal | None, Query(ge=0, le=MAX_ORDER_WORTH)] = None,
    limit: int = Query(DEFAULT_ORDER_LIST_LIMIT, ge=1, le=MAX_ORDER_LIST_LIMIT),
) -> OrderListResponse:
    """List stored orders, newest first."""
    if min_worth is not None and max_worth is not None and min_worth > max_worth:
        raise HTTPException(
            status_code=400,
            detail="Minimum worth cannot be greater than maximum worth",
        )

    filters = OrderFilters(
        status=status,
        date_from=date_from,
        date_to=date_to,
        min_worth=min_worth,
        max_worth=max_worth,
        limit=limit,
    )
    orders = await repository.get_all(filters)
    return OrderListResponse(count=len(orders), orders=orders)


@router.get("/external-api/status", response_model=ExternalApiStatusResponse)
async def external_api_status(
    fetcher: ExternalOrderFetcher = Depends(get_fetcher),
    settings: Settings = Depends(get_settings),
) -> ExternalApiStatusResponse:
    """Report whether the IdoSell client is configured."""
    return ExternalApiStatusResponse(
        ready=fetcher.is_ready(),
        shop_url=mask_url(settings.idosell_shop_url),
        api_key=mask_secret(settings.idosell_api_key),
        api_version=settings.idosell_api_version,
    )


@router.get("/{external_serial_number}", response_model=InternalOrder)
async def get_order(
    external_serial_number: Annotated[
        str, Path(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    ],
    repository: OrderRepository = Depends(get_repository),
) -> InternalOrder:
    """Get one stored order by its serial number."""
    order = await repository.get_by_external_serial_number(external_serial_number)
    if order is None:
        raise HTTPException(
            status_code=404,
            detail=f"Order with external serial number '{external_serial_number}' not found",
        )
    return order


@router.post("/download/serial-numbers", response_model=SyncSummary)
async def download_by_serial_numbers(
    request: SerialNumberDownloadRequest,
    sync_service: OrderSyncService = Depends(get_sync_service),
) -> SyncSummary:
    """Download the given orders from IdoSell and save them."""
    return await sync_service.sync_by_serial_numbers(
        request.serial_numbers, update_existing=request.update_existing
    )


@router.post("/download/date-range", response_model=SyncSummary)
async def download_by_date_range(
    request: DateRangeDownloadRequest,
    sync_service: OrderSyncService = Depends(get_sync_service),
) -> SyncSummary:
    """Download orders whose ``date_type`` date falls in the range and save them."""
    return await sync_service.sync_by_date_range(
        request.date_from,
        request.date_to,
        date_type=request.date_type,
        update_existing=request.update_existing,
    )
