"""Scheduler control endpoints."""

from fastapi import APIRouter, Depends

from order_service.api.deps import get_scheduler
from order_service.schemas import SchedulerStatus
from order_service.services import OrderSchedulerService

router = APIRouter()


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status(
    scheduler: OrderSchedulerService = Depends(get_scheduler),
) -> SchedulerStatus:
    return scheduler.get_status()


@router.post("/run-now", response_model=SchedulerStatus)
async def run_now(
    scheduler: OrderSchedulerService = Depends(get_scheduler),
) -> SchedulerStatus:
    """
    Run the download and status monitoring cycle immediately.

    Skipped if a cycle is already in flight. Failures are logged, not
    returned; the response carries the scheduler state after the run.
    """
    await scheduler.run_now()
    return scheduler.get_status()


@router.post("/monitor-now", response_model=SchedulerStatus)
async def monitor_now(
    scheduler: OrderSchedulerService = Depends(get_scheduler),
) -> SchedulerStatus:
    """Run status monitoring immediately, unless a cycle is in flight."""
    await scheduler.run_status_monitoring_now()
    return scheduler.get_status()
