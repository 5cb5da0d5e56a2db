"""Order store backed by SQLAlchemy.

Each call runs in its own short transaction so a failure on one order never
poisons the session used for the next one.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_service.errors import PersistenceError
from order_service.infrastructure.database.connection import session_scope
from order_service.infrastructure.database.models import OrderRecord
from order_service.schemas import InternalOrder, OrderFilters

logger = structlog.get_logger()


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _apply_filters(query: Select, filters: OrderFilters) -> Select:
    if filters.status:
        query = query.where(OrderRecord.status == filters.status)
    if filters.date_from is not None:
        query = query.where(OrderRecord.external_created_at >= _utc(filters.date_from))
    if filters.date_to is not None:
        query = query.where(OrderRecord.external_created_at <= _utc(filters.date_to))
    if filters.min_worth is not None:
        query = query.where(OrderRecord.order_products_cost >= filters.min_worth)
    if filters.max_worth is not None:
        query = query.where(OrderRecord.order_products_cost <= filters.max_worth)
    return query


class OrderRepository:
    """Key-indexed order collection with create/update by external ID."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _to_order(record: OrderRecord) -> InternalOrder:
        return InternalOrder.model_validate(record, from_attributes=True)

    async def get_by_external_id(self, external_id: str) -> InternalOrder | None:
        """Get order by IdoSell order ID, or None if not stored."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(OrderRecord).where(OrderRecord.external_id == external_id)
                )
                record = result.scalar_one_or_none()
                return self._to_order(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to fetch order {external_id}: {e}"
            ) from e

    async def get_by_external_serial_number(
        self, external_serial_number: str
    ) -> InternalOrder | None:
        """Get order by its human-facing serial number."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(OrderRecord)
                    .where(OrderRecord.external_serial_number == external_serial_number)
                    .order_by(OrderRecord.id)
                    .limit(1)
                )
                record = result.scalar_one_or_none()
                return self._to_order(record) if record else None
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to fetch order with serial number {external_serial_number}: {e}"
            ) from e

    async def create(self, order: InternalOrder, now: datetime) -> InternalOrder:
        """
        Insert a new order with ``created_at = updated_at = now``.

        Raises:
            PersistenceError: If the insert fails, including when another
                writer already stored the same external ID
        """
        now = _utc(now)
        try:
            async with session_scope(self.session_factory) as session:
                record = OrderRecord(
                    external_id=order.external_id,
                    created_at=now,
                    updated_at=now,
                    **order.sync_fields(),
                )
                session.add(record)
                await session.flush()
                created = self._to_order(record)
        except IntegrityError as e:
            raise PersistenceError(
                f"Order with external ID {order.external_id} already exists"
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create order {order.external_id}: {e}"
            ) from e

        logger.debug("Inserted order", external_id=order.external_id, id=created.id)
        return created

    async def update_by_external_id(
        self, external_id: str, fields: dict[str, Any], now: datetime
    ) -> InternalOrder | None:
        """
        Replace the given fields and refresh ``updated_at``.

        ``id``, ``external_id`` and ``created_at`` are never overwritten.

        Returns:
            The updated order, or None if no order has this external ID
        """
        protected = {"id", "external_id", "created_at", "updated_at"}
        try:
            async with session_scope(self.session_factory) as session:
                result = await session.execute(
                    select(OrderRecord)
                    .where(OrderRecord.external_id == external_id)
                    .with_for_update()
                )
                record = result.scalar_one_or_none()
                if record is None:
                    return None

                for key, value in fields.items():
                    if key not in protected:
                        setattr(record, key, value)
                record.updated_at = _utc(now)
                await session.flush()
                updated = self._to_order(record)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to update order {external_id}: {e}"
            ) from e

        logger.debug("Updated order", external_id=external_id, id=updated.id)
        return updated

    async def get_all(self, filters: OrderFilters | None = None) -> list[InternalOrder]:
        """List orders matching the filters, newest first."""
        filters = filters or OrderFilters()
        query = _apply_filters(select(OrderRecord), filters).order_by(
            func.coalesce(OrderRecord.external_created_at, OrderRecord.created_at).desc(),
            OrderRecord.id.desc(),
        )
        if filters.limit:
            query = query.limit(filters.limit)

        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [self._to_order(record) for record in result.scalars().all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list orders: {e}") from e

    async def get_count(self, filters: OrderFilters | None = None) -> int:
        """Count orders matching the filters (``limit`` is ignored)."""
        filters = filters or OrderFilters()
        query = _apply_filters(select(func.count(OrderRecord.id)), filters)
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to count orders: {e}") from e
