"""FastAPI dependencies resolving services from the application container."""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from order_service.container import ServiceContainer
from order_service.infrastructure.database.order_repository import OrderRepository
from order_service.services import (
    ExternalOrderFetcher,
    OrderSchedulerService,
    OrderSyncService,
)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_repository(request: Request) -> OrderRepository:
    return get_container(request).repository


def get_fetcher(request: Request) -> ExternalOrderFetcher:
    return get_container(request).fetcher


def get_sync_service(request: Request) -> OrderSyncService:
    return get_container(request).sync_service


def get_scheduler(request: Request) -> OrderSchedulerService:
    return get_container(request).scheduler


def get_engine(request: Request) -> AsyncEngine:
    return get_container(request).engine
