"""Unit tests for the sync orchestrator."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from order_service.errors import ExternalApiError, PersistenceError
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.schemas import DateType, SyncBatchResult, UpsertOutcome
from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_persistence import OrderUpsertGate
from order_service.services.order_sync import OrderSyncService

RawFactory = Callable[..., dict[str, Any]]
NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fetcher() -> AsyncMock:
    return AsyncMock(spec=ExternalOrderFetcher)


@pytest.fixture
def sync_service(fetcher: AsyncMock, repository: OrderRepository) -> OrderSyncService:
    gate = OrderUpsertGate(repository, clock=lambda: NOW)
    return OrderSyncService(fetcher, gate, clock=lambda: NOW)


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_mixed_batch(
        self,
        sync_service: OrderSyncService,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        await sync_service.run_batch([make_raw_order(order_id="B")])

        result = await sync_service.run_batch(
            [
                make_raw_order(order_id="A"),
                make_raw_order(order_id="B", status="packed"),
                make_raw_order(order_id="C"),
            ]
        )

        assert result == SyncBatchResult(total=3, created=2, updated=1, skipped=0, errors=[])
        assert await repository.get_count() == 3

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(
        self,
        sync_service: OrderSyncService,
        repository: OrderRepository,
        make_raw_order: RawFactory,
    ) -> None:
        batch = [make_raw_order(order_id="A"), make_raw_order(order_id="B")]

        first = await sync_service.run_batch(batch)
        snapshot = await repository.get_all()
        second = await sync_service.run_batch(batch)

        assert (first.created, first.updated) == (2, 0)
        assert (second.created, second.updated) == (0, 2)
        after = await repository.get_all()
        assert [o.model_dump(exclude={"updated_at"}) for o in after] == [
            o.model_dump(exclude={"updated_at"}) for o in snapshot
        ]

    @pytest.mark.asyncio
    async def test_update_disabled_counts_skips(
        self, sync_service: OrderSyncService, make_raw_order: RawFactory
    ) -> None:
        await sync_service.run_batch([make_raw_order(order_id="A")])
        result = await sync_service.run_batch(
            [make_raw_order(order_id="A")], update_existing=False
        )
        assert (result.updated, result.skipped) == (0, 1)
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_empty_batch_touches_nothing(self) -> None:
        gate = AsyncMock(spec=OrderUpsertGate)
        service = OrderSyncService(AsyncMock(), gate)
        progress = []

        result = await service.run_batch([], on_progress=lambda c, t: progress.append((c, t)))

        assert result == SyncBatchResult()
        gate.upsert.assert_not_called()
        assert progress == []

    @pytest.mark.asyncio
    async def test_order_without_id_is_skipped(
        self, sync_service: OrderSyncService, make_raw_order: RawFactory
    ) -> None:
        result = await sync_service.run_batch(
            [make_raw_order(order_id=None, serial_number=9), make_raw_order(order_id="A")]
        )

        assert result.total == 2
        assert result.created == 1
        assert result.skipped == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Order missing external ID")

    @pytest.mark.asyncio
    async def test_persistence_failure_is_collected(self, make_raw_order: RawFactory) -> None:
        gate = AsyncMock(spec=OrderUpsertGate)
        gate.upsert.side_effect = [
            UpsertOutcome.CREATED,
            PersistenceError("disk full"),
            UpsertOutcome.CREATED,
        ]
        service = OrderSyncService(AsyncMock(), gate)

        result = await service.run_batch(
            [make_raw_order(order_id=x) for x in ("A", "B", "C")]
        )

        assert result.created == 2
        assert result.skipped == 0
        assert result.errors == ["Failed to save order: disk full"]

    @pytest.mark.asyncio
    async def test_progress_ticks_per_item(
        self, sync_service: OrderSyncService, make_raw_order: RawFactory
    ) -> None:
        progress: list[tuple[int, int]] = []
        await sync_service.run_batch(
            [make_raw_order(order_id="A"), make_raw_order(order_id=None)],
            on_progress=lambda current, total: progress.append((current, total)),
        )
        assert progress == [(1, 2), (2, 2)]


class TestFetchAndSave:
    @pytest.mark.asyncio
    async def test_sync_by_serial_numbers(
        self,
        sync_service: OrderSyncService,
        fetcher: AsyncMock,
        make_raw_order: RawFactory,
    ) -> None:
        fetcher.fetch_by_serial_numbers.return_value = [make_raw_order(order_id="A")]

        summary = await sync_service.sync_by_serial_numbers([1001])

        fetcher.fetch_by_serial_numbers.assert_awaited_once_with([1001])
        assert summary.success is True
        assert summary.downloaded == 1
        assert summary.created == 1

    @pytest.mark.asyncio
    async def test_sync_recent_uses_lookback_window(
        self, sync_service: OrderSyncService, fetcher: AsyncMock
    ) -> None:
        fetcher.fetch_by_time_window.return_value = []

        summary = await sync_service.sync_recent(30)

        fetcher.fetch_by_time_window.assert_awaited_once_with(
            NOW - timedelta(minutes=30), NOW, DateType.ADDED
        )
        assert summary.downloaded == 0
        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_sync_all(
        self,
        sync_service: OrderSyncService,
        fetcher: AsyncMock,
        make_raw_order: RawFactory,
    ) -> None:
        fetcher.fetch_all.return_value = [make_raw_order(order_id="A"), make_raw_order(order_id="B")]

        summary = await sync_service.sync_all()

        assert summary.downloaded == 2
        assert summary.created == 2

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(
        self, sync_service: OrderSyncService, fetcher: AsyncMock
    ) -> None:
        fetcher.fetch_by_time_window.side_effect = ExternalApiError("IdoSell down")
        with pytest.raises(ExternalApiError):
            await sync_service.sync_by_date_range(NOW - timedelta(hours=1), NOW)
