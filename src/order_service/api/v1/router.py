"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from order_service.api.v1 import health, orders, scheduler

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"],
)

api_router.include_router(
    scheduler.router,
    prefix="/scheduler",
    tags=["Scheduler"],
)
