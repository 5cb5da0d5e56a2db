"""Unit tests for the status monitoring pass."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from order_service.errors import ExternalApiError
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.schemas import DateType, InternalOrder
from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_persistence import OrderUpsertGate
from order_service.services.order_transformer import transform_order
from order_service.services.status_monitor import OrderStatusMonitor

RawFactory = Callable[..., dict[str, Any]]
STORED_AT = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
LATER = STORED_AT + timedelta(hours=1)


@pytest.fixture
def fetcher() -> AsyncMock:
    return AsyncMock(spec=ExternalOrderFetcher)


@pytest.fixture
def gate(repository: OrderRepository) -> OrderUpsertGate:
    return OrderUpsertGate(repository, clock=lambda: LATER)


@pytest.fixture
def monitor(
    fetcher: AsyncMock, repository: OrderRepository, gate: OrderUpsertGate
) -> OrderStatusMonitor:
    return OrderStatusMonitor(fetcher, repository, gate, clock=lambda: LATER)


async def store(repository: OrderRepository, raw: dict[str, Any]) -> None:
    gate = OrderUpsertGate(repository, clock=lambda: STORED_AT)
    await gate.upsert(transform_order(raw))


class TestStatusMonitor:
    @pytest.mark.asyncio
    async def test_queries_recently_modified_orders(
        self, monitor: OrderStatusMonitor, fetcher: AsyncMock
    ) -> None:
        fetcher.fetch_by_time_window.return_value = []

        result = await monitor.run(fresh_minutes=15, modified_lookback_hours=1)

        fetcher.fetch_by_time_window.assert_awaited_once_with(
            LATER - timedelta(hours=1), LATER, DateType.MODIFIED
        )
        assert result.checked == 0

    @pytest.mark.asyncio
    async def test_updates_changed_status(
        self,
        monitor: OrderStatusMonitor,
        fetcher: AsyncMock,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        await store(repository, make_raw_order(order_id="A", status="new"))
        fetcher.fetch_by_time_window.return_value = [
            make_raw_order(order_id="A", status="packed", change_date="2024-01-15 13:30:00")
        ]

        result = await monitor.run()

        assert (result.checked, result.updated, result.skipped) == (1, 1, 0)
        stored = await repository.get_by_external_id("A")
        assert stored.status == "packed"
        assert stored.updated_at.replace(tzinfo=timezone.utc) == LATER

    @pytest.mark.asyncio
    async def test_unknown_orders_are_left_to_main_sync(
        self,
        monitor: OrderStatusMonitor,
        fetcher: AsyncMock,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        fetcher.fetch_by_time_window.return_value = [make_raw_order(order_id="new-one")]

        result = await monitor.run()

        assert (result.checked, result.updated, result.skipped) == (1, 0, 1)
        assert await repository.get_by_external_id("new-one") is None

    @pytest.mark.asyncio
    async def test_skips_final_and_fresh_orders(
        self,
        fetcher: AsyncMock,
        repository: OrderRepository,
        gate: OrderUpsertGate,
        make_raw_order: RawFactory,
    ) -> None:
        await store(repository, make_raw_order(order_id="done", status="finished"))
        await store(repository, make_raw_order(order_id="fresh", status="new"))
        fetcher.fetch_by_time_window.return_value = [
            make_raw_order(order_id="done", status="returned"),
            make_raw_order(order_id="fresh", status="packed"),
        ]
        # only 10 minutes after the orders were written
        monitor = OrderStatusMonitor(
            fetcher, repository, gate, clock=lambda: STORED_AT + timedelta(minutes=10)
        )

        result = await monitor.run(fresh_minutes=15)

        assert (result.checked, result.updated, result.skipped) == (2, 0, 2)
        assert (await repository.get_by_external_id("done")).status == "finished"
        assert (await repository.get_by_external_id("fresh")).status == "new"

    @pytest.mark.asyncio
    async def test_unchanged_orders_are_skipped(
        self,
        monitor: OrderStatusMonitor,
        fetcher: AsyncMock,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        raw = make_raw_order(order_id="A")
        await store(repository, raw)
        fetcher.fetch_by_time_window.return_value = [raw]

        result = await monitor.run()

        assert (result.updated, result.skipped) == (0, 1)

    @pytest.mark.asyncio
    async def test_per_item_errors_are_collected(
        self,
        monitor: OrderStatusMonitor,
        fetcher: AsyncMock,
        make_raw_order: RawFactory,
    ) -> None:
        fetcher.fetch_by_time_window.return_value = [
            make_raw_order(order_id=None),
            make_raw_order(order_id="B"),
        ]

        result = await monitor.run()

        assert result.checked == 2
        assert len(result.errors) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(
        self, monitor: OrderStatusMonitor, fetcher: AsyncMock
    ) -> None:
        fetcher.fetch_by_time_window.side_effect = ExternalApiError("down")
        with pytest.raises(ExternalApiError):
            await monitor.run()

    @pytest.mark.asyncio
    async def test_sub_cent_cost_does_not_trigger_rewrite(
        self,
        monitor: OrderStatusMonitor,
        fetcher: AsyncMock,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        raw = make_raw_order(order_id="A", cost="10.555")
        await store(repository, raw)
        fetcher.fetch_by_time_window.return_value = [raw]

        result = await monitor.run()

        assert (result.checked, result.updated, result.skipped) == (1, 0, 1)
        stored = await repository.get_by_external_id("A")
        assert stored.updated_at.replace(tzinfo=timezone.utc) == STORED_AT

    @pytest.mark.asyncio
    async def test_order_vanishing_before_update_is_an_error(
        self, fetcher: AsyncMock, make_raw_order: RawFactory
    ) -> None:
        repository = AsyncMock(spec=OrderRepository)
        repository.get_by_external_id.return_value = InternalOrder(
            id=1, external_id="A", status="new", updated_at=STORED_AT
        )
        repository.update_by_external_id.return_value = None
        gate = OrderUpsertGate(repository, clock=lambda: LATER)
        monitor = OrderStatusMonitor(fetcher, repository, gate, clock=lambda: LATER)
        fetcher.fetch_by_time_window.return_value = [make_raw_order(order_id="A", status="packed")]

        result = await monitor.run()

        assert (result.checked, result.updated) == (1, 0)
        assert len(result.errors) == 1
        assert "vanished" in result.errors[0]
        repository.update_by_external_id.assert_awaited_once()
