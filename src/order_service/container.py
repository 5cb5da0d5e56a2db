"""Service wiring.

The FastAPI lifespan, the CLI and the Celery tasks each build one container
from settings and close it when they are done.
"""

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from order_service.config import Settings
from order_service.infrastructure.database.connection import (
    get_async_engine,
    get_async_session_factory,
)
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.infrastructure.idosell import IdosellClient
from order_service.services import (
    ExternalOrderFetcher,
    OrderSchedulerService,
    OrderStatusMonitor,
    OrderSyncService,
    OrderUpsertGate,
)

logger = structlog.get_logger()


@dataclass
class ServiceContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    client: IdosellClient | None
    fetcher: ExternalOrderFetcher
    repository: OrderRepository
    gate: OrderUpsertGate
    sync_service: OrderSyncService
    status_monitor: OrderStatusMonitor
    scheduler: OrderSchedulerService

    async def aclose(self) -> None:
        """Stop the scheduler and release HTTP and database resources."""
        self.scheduler.stop()
        if self.client is not None:
            await self.client.aclose()
        await self.engine.dispose()
        logger.debug("Service container closed")


def build_container(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> ServiceContainer:
    """Wire every service from settings."""
    engine = get_async_engine(settings)
    session_factory = get_async_session_factory(engine)
    client = IdosellClient.from_settings(settings, transport=transport)

    fetcher = ExternalOrderFetcher(
        client,
        source_timezone=settings.scheduler_timezone,
        page_size=settings.idosell_page_size,
        page_delay_seconds=settings.idosell_page_delay_ms / 1000,
    )
    repository = OrderRepository(session_factory)
    gate = OrderUpsertGate(repository)
    sync_service = OrderSyncService(
        fetcher, gate, source_timezone=settings.scheduler_timezone
    )
    status_monitor = OrderStatusMonitor(
        fetcher, repository, gate, source_timezone=settings.scheduler_timezone
    )
    scheduler = OrderSchedulerService(sync_service, status_monitor, fetcher, settings)

    return ServiceContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        client=client,
        fetcher=fetcher,
        repository=repository,
        gate=gate,
        sync_service=sync_service,
        status_monitor=status_monitor,
        scheduler=scheduler,
    )
