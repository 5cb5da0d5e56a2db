"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from order_service.api import deps
from order_service.config import Settings, get_settings
from order_service.infrastructure.database.connection import get_async_session_factory
from order_service.infrastructure.database.models import Base
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.infrastructure.idosell import IdosellClient
from order_service.main import create_app
from order_service.schemas import SchedulerStatus

TEST_SHOP_URL = "https://shop.example.com"
TEST_API_KEY = "test-api-key-123"


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        idosell_shop_url=TEST_SHOP_URL,
        idosell_api_key=TEST_API_KEY,
        idosell_page_delay_ms=0,
        database_url_override="sqlite+aiosqlite://",
        scheduler_enabled=False,
        scheduler_interval_minutes=10,
        scheduler_lookback_minutes=30,
    )


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the order schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_async_session_factory(engine)


@pytest.fixture
def repository(session_factory: async_sessionmaker[AsyncSession]) -> OrderRepository:
    return OrderRepository(session_factory)


# =============================================================================
# IdoSell payloads
# =============================================================================


@pytest.fixture
def make_raw_order() -> Callable[..., dict[str, Any]]:
    """Factory for raw IdoSell order payloads."""

    def factory(
        order_id: str | None = "ord-1001",
        serial_number: int | None = 1001,
        status: str | None = "new",
        cost: float | None = 149.99,
        currency: str | None = "PLN",
        products: list[dict[str, Any]] | None = None,
        add_date: str | None = "2024-01-15 10:30:00",
        change_date: str | None = "2024-01-15 11:00:00",
    ) -> dict[str, Any]:
        if products is None:
            products = [
                {"productId": 501, "productQuantity": 2},
                {"productId": 502, "productQuantity": 1},
            ]
        return {
            "orderId": order_id,
            "orderSerialNumber": serial_number,
            "orderDetails": {
                "orderStatus": status,
                "orderAddDate": add_date,
                "orderChangeDate": change_date,
                "payments": {
                    "orderCurrency": {
                        "currencyId": currency,
                        "orderProductsCost": cost,
                    }
                },
                "productsResults": products,
            },
        }

    return factory


@pytest.fixture
def make_idosell_client() -> Callable[..., IdosellClient]:
    """Build an IdosellClient whose requests are answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> IdosellClient:
        return IdosellClient(
            shop_url=TEST_SHOP_URL,
            api_key=TEST_API_KEY,
            transport=httpx.MockTransport(handler),
        )

    return factory


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def mock_repository() -> AsyncMock:
    repository = AsyncMock(spec=OrderRepository)
    repository.get_all.return_value = []
    repository.get_count.return_value = 0
    repository.get_by_external_serial_number.return_value = None
    return repository


@pytest.fixture
def mock_fetcher() -> MagicMock:
    fetcher = MagicMock()
    fetcher.is_ready.return_value = True
    return fetcher


@pytest.fixture
def mock_sync_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_scheduler() -> MagicMock:
    scheduler = MagicMock()
    scheduler.run_now = AsyncMock()
    scheduler.run_status_monitoring_now = AsyncMock()
    scheduler.get_status.return_value = SchedulerStatus(
        is_scheduled=True,
        is_running=False,
        interval_minutes=10,
        lookback_minutes=30,
        api_ready=True,
    )
    return scheduler


@pytest.fixture
def app(
    test_settings: Settings,
    mock_repository: AsyncMock,
    mock_fetcher: MagicMock,
    mock_sync_service: AsyncMock,
    mock_scheduler: MagicMock,
) -> Any:
    """Create test application with services replaced by fakes."""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[deps.get_engine] = lambda: MagicMock(spec=AsyncEngine)
    app.dependency_overrides[deps.get_repository] = lambda: mock_repository
    app.dependency_overrides[deps.get_fetcher] = lambda: mock_fetcher
    app.dependency_overrides[deps.get_sync_service] = lambda: mock_sync_service
    app.dependency_overrides[deps.get_scheduler] = lambda: mock_scheduler
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)
