"""Upsert gate: the only writer of orders in the sync pipeline."""

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from order_service.errors import PersistenceError
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.schemas import InternalOrder, UpsertOutcome

logger = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderUpsertGate:
    """Create-or-update keyed by ``external_id``."""

    def __init__(
        self,
        repository: OrderRepository,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.clock = clock

    async def upsert(
        self, order: InternalOrder, update_existing: bool = True
    ) -> UpsertOutcome:
        """
        Commit one order.

        - not stored: create it (``created_at = updated_at = now``)
        - stored and ``update_existing``: replace all sync fields, keep
          ``created_at``
        - stored and not ``update_existing``: leave it untouched

        Raises:
            PersistenceError: If the store fails, or the order disappeared
                between lookup and update
        """
        existing = await self.repository.get_by_external_id(order.external_id)

        if existing is None:
            await self.repository.create(order, self.clock())
            return UpsertOutcome.CREATED

        if not update_existing:
            logger.debug("Order exists, update disabled", external_id=order.external_id)
            return UpsertOutcome.SKIPPED

        return await self.update_stored(order)

    async def update_stored(self, order: InternalOrder) -> UpsertOutcome:
        """
        Replace the sync fields of an order already known to be stored.

        Raises:
            PersistenceError: If the store fails, or the order disappeared
                since it was looked up
        """
        updated = await self.repository.update_by_external_id(
            order.external_id, order.sync_fields(), self.clock()
        )
        if updated is None:
            raise PersistenceError(
                f"Order {order.external_id} vanished before it could be updated"
            )
        return UpsertOutcome.UPDATED
