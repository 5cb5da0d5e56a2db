"""Mapping of raw IdoSell order payloads to the internal order schema."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

import orjson

from order_service.errors import TransformError
from order_service.schemas import InternalOrder, OrderProduct, RawExternalOrder
from shared.constants import QUANTITY_NOT_AVAILABLE, SCHEDULER_DEFAULT_TIMEZONE

IDOSELL_DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")

# Matches the scale of orders.order_products_cost
COST_QUANTUM = Decimal("0.01")


def _dig(data: Any, *path: str) -> Any:
    """Null-safe nested lookup; non-dict intermediates resolve to None."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)


def _as_quantity(value: Any) -> float | str:
    if value is None or isinstance(value, bool):
        return QUANTITY_NOT_AVAILABLE
    try:
        return float(value)
    except (TypeError, ValueError):
        return QUANTITY_NOT_AVAILABLE


def _as_datetime(value: Any, source_tz: ZoneInfo) -> datetime | None:
    """Parse a shop-local IdoSell timestamp into UTC; unknown stays None."""
    text = _as_text(value)
    if text is None:
        return None

    parsed: datetime | None = None
    for fmt in IDOSELL_DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=source_tz)
    return parsed.astimezone(timezone.utc)


def _transform_products(raw_products: Any) -> list[OrderProduct]:
    if not isinstance(raw_products, list):
        return []
    return [
        OrderProduct(
            product_id=_as_text(_dig(item, "productId")),
            product_quantity=_as_quantity(_dig(item, "productQuantity")),
        )
        for item in raw_products
        if isinstance(item, dict)
    ]


def transform_order(
    raw: RawExternalOrder,
    source_timezone: str | ZoneInfo = SCHEDULER_DEFAULT_TIMEZONE,
) -> InternalOrder:
    """
    Transform a raw IdoSell order into an InternalOrder.

    Every lookup is null-safe: a missing quantity becomes ``"N/A"``, a missing
    cost becomes 0, a missing product list becomes empty and missing
    timestamps stay None.

    Raises:
        TransformError: If the order carries no usable external identifier
    """
    tz = source_timezone if isinstance(source_timezone, ZoneInfo) else ZoneInfo(source_timezone)

    external_id = _as_text(_dig(raw, "orderId"))
    if external_id is None:
        try:
            payload = orjson.dumps(raw, default=str).decode()
        except TypeError:
            payload = repr(raw)
        raise TransformError(f"Order missing external ID: {payload}")

    details = _dig(raw, "orderDetails")
    currency = _dig(details, "payments", "orderCurrency")

    return InternalOrder(
        external_id=external_id,
        external_serial_number=_as_text(_dig(raw, "orderSerialNumber")),
        currency=_as_text(_dig(currency, "currencyId")),
        status=_as_text(_dig(details, "orderStatus")),
        order_products_cost=_as_decimal(_dig(currency, "orderProductsCost")),
        order_products=_transform_products(_dig(details, "productsResults")),
        external_created_at=_as_datetime(_dig(details, "orderAddDate"), tz),
        external_updated_at=_as_datetime(_dig(details, "orderChangeDate"), tz),
    )
