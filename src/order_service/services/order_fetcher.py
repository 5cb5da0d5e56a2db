"""External order fetcher.

Translates the three supported request shapes (serial numbers, time window,
pagination sweep) into IdoSell order searches and returns raw order payloads.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from order_service.errors import ConfigurationError, ExternalApiError, ValidationError
from order_service.infrastructure.idosell.client import IdosellClient
from order_service.schemas import (
    DateType,
    PaginationInfo,
    ProgressCallback,
    RawExternalOrder,
)
from shared.constants import IDOSELL_MAX_PAGE_SIZE, SCHEDULER_DEFAULT_TIMEZONE

logger = structlog.get_logger()

# Known (fault_code, fault_string) pairs meaning "the search matched nothing".
# Only the Polish-locale signature has been observed so far; other shop
# locales may report a translated string and need adding here.
EMPTY_RESULT_FAULTS: frozenset[tuple[int, str]] = frozenset(
    {
        (2, "Wyszukiwarka zamówień: zwrócono pusty wynik"),
    }
)

IDOSELL_DATE_TYPES: dict[DateType, str] = {
    DateType.ADDED: "add",
    DateType.MODIFIED: "modified",
    DateType.DISPATCHED: "dispatch",
    DateType.PAID: "payment",
    DateType.LAST_PAYMENT_OPERATION: "last_payments_operation",
    DateType.DECLARED_PAYMENTS: "declared_payments",
}

IDOSELL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def is_empty_result_fault(error: BaseException) -> bool:
    """Classify an external error as a benign "nothing matched" outcome."""
    if not isinstance(error, ExternalApiError) or error.fault_code is None:
        return False
    signature = (error.fault_string or "").strip().casefold()
    return any(
        error.fault_code == code and signature == text.casefold()
        for code, text in EMPTY_RESULT_FAULTS
    )


class ExternalOrderFetcher:
    """Fetches raw orders from the IdoSell API."""

    def __init__(
        self,
        client: IdosellClient | None,
        source_timezone: str = SCHEDULER_DEFAULT_TIMEZONE,
        page_size: int = IDOSELL_MAX_PAGE_SIZE,
        page_delay_seconds: float = 0.5,
    ):
        self.client = client
        self.source_timezone = ZoneInfo(source_timezone)
        self.page_size = page_size
        self.page_delay_seconds = page_delay_seconds

    def is_ready(self) -> bool:
        """Check whether the API client is configured."""
        return self.client is not None

    def _require_client(self) -> IdosellClient:
        if self.client is None:
            raise ConfigurationError(
                "IdoSell API client not initialized. Check your credentials."
            )
        return self.client

    async def _search(
        self, params: dict[str, Any], empty_message: str
    ) -> list[RawExternalOrder]:
        client = self._require_client()
        try:
            response = await client.search_orders(params)
        except ExternalApiError as e:
            if is_empty_result_fault(e):
                logger.info(empty_message)
                return []
            raise
        return list(response.get("Results") or [])

    async def fetch_by_serial_numbers(
        self, serial_numbers: Sequence[str | int]
    ) -> list[RawExternalOrder]:
        """
        Download specific orders by their serial numbers.

        Raises:
            ConfigurationError: If the API client is not configured
            ValidationError: If no serial numbers are given or one is not numeric
        """
        self._require_client()
        if not serial_numbers:
            raise ValidationError("serial_numbers must be a non-empty list")

        parsed: list[int] = []
        for value in serial_numbers:
            try:
                parsed.append(int(str(value).strip()))
            except ValueError as e:
                raise ValidationError(
                    f"Order serial number must be numeric, got {value!r}"
                ) from e

        logger.info("Downloading orders by serial number", count=len(parsed))
        orders = await self._search(
            {"ordersSerialNumbers": parsed},
            "No orders found for the given serial numbers",
        )
        logger.info("Downloaded orders by serial number", downloaded=len(orders))
        return orders

    async def fetch_by_time_window(
        self,
        date_from: datetime | None,
        date_to: datetime | None,
        date_type: DateType = DateType.ADDED,
    ) -> list[RawExternalOrder]:
        """
        Download orders whose ``date_type`` date falls inside the window.

        Raises:
            ConfigurationError: If the API client is not configured
            ValidationError: If a bound is missing or the window is inverted
        """
        self._require_client()
        if date_from is None or date_to is None:
            raise ValidationError("date_from and date_to are required")
        if self._to_utc(date_from) > self._to_utc(date_to):
            raise ValidationError("date_from must not be later than date_to")

        date_type = DateType(date_type)
        params = {
            "ordersRange": {
                "ordersDateRange": {
                    "ordersDateType": IDOSELL_DATE_TYPES[date_type],
                    "ordersDateBegin": self._format_date(date_from),
                    "ordersDateEnd": self._format_date(date_to),
                }
            }
        }
        logger.info(
            "Downloading orders by time window",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat(),
            date_type=date_type.value,
        )
        orders = await self._search(params, "No orders found in time window")
        logger.info("Downloaded orders by time window", downloaded=len(orders))
        return orders

    async def fetch_page(
        self,
        page_index: int,
        page_size: int | None = None,
        status_filter: str | None = None,
    ) -> list[RawExternalOrder]:
        """Download a single page of orders, optionally filtered by status."""
        if page_index < 0:
            raise ValidationError("page_index must not be negative")
        params: dict[str, Any] = {
            "resultsPage": page_index,
            "resultsLimit": page_size or self.page_size,
        }
        if status_filter:
            params["ordersStatuses"] = [status_filter]
        return await self._search(params, f"No orders found on page {page_index}")

    async def get_pagination_info(self) -> PaginationInfo:
        """Get total order and page counts for a full sweep."""
        client = self._require_client()
        try:
            response = await client.search_orders(
                {"resultsPage": 0, "resultsLimit": self.page_size}
            )
        except ExternalApiError as e:
            if is_empty_result_fault(e):
                return PaginationInfo(orders_per_page=self.page_size)
            raise

        return PaginationInfo(
            total_orders=int(response.get("resultsNumberAll") or 0),
            total_pages=int(response.get("resultsNumberPage") or 0),
            orders_per_page=int(response.get("resultsLimit") or self.page_size),
        )

    async def fetch_all(
        self,
        on_progress: ProgressCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> list[RawExternalOrder]:
        """
        Download every order, page by page.

        Pages are requested sequentially with a short pause in between so the
        remote service is not overwhelmed. ``on_progress`` receives one tick
        per downloaded page.
        """
        self._require_client()
        info = await self.get_pagination_info()
        logger.info(
            "Starting full order download",
            total_orders=info.total_orders,
            total_pages=info.total_pages,
            orders_per_page=info.orders_per_page,
        )
        if info.total_orders == 0 or info.total_pages == 0:
            logger.info("No orders found")
            return []

        all_orders: list[RawExternalOrder] = []
        for page_index in range(info.total_pages):
            page = await self.fetch_page(page_index, info.orders_per_page)
            all_orders.extend(page)
            if on_progress is not None:
                on_progress(page_index + 1, info.total_pages)

            if page_index < info.total_pages - 1 and self.page_delay_seconds > 0:
                await sleep(self.page_delay_seconds)

        logger.info("Full order download completed", downloaded=len(all_orders))
        return all_orders

    @staticmethod
    def _to_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def _format_date(self, value: datetime) -> str:
        """Render a bound in the shop's local time, as the API expects."""
        return self._to_utc(value).astimezone(self.source_timezone).strftime(
            IDOSELL_DATE_FORMAT
        )
