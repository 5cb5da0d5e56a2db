"""Order synchronization tasks.

Both tasks share one Redis lock, so a sync cycle and a status monitoring pass
never overlap across worker processes.
"""

import asyncio
from collections.abc import Awaitable, Callable

import redis
import structlog
from celery import shared_task
from redis.lock import Lock

from order_service.config import Settings, get_settings
from order_service.container import ServiceContainer, build_container

logger = structlog.get_logger()

RUN_LOCK_NAME = "order-sync:run-lock"
# Longer than the Celery hard time limit (task_time_limit=600)
RUN_LOCK_TIMEOUT_SECONDS = 660


def get_run_lock(settings: Settings) -> Lock:
    client = redis.Redis.from_url(settings.redis_url)
    return client.lock(RUN_LOCK_NAME, timeout=RUN_LOCK_TIMEOUT_SECONDS)


async def _run_with_container(
    action: Callable[[ServiceContainer], Awaitable[None]],
) -> dict:
    container = build_container(get_settings())
    try:
        await action(container)
        return container.scheduler.get_status().model_dump()
    finally:
        await container.aclose()


def _run_exclusive(
    action: Callable[[ServiceContainer], Awaitable[None]], task_id: str | None
) -> dict | None:
    lock = get_run_lock(get_settings())
    if not lock.acquire(blocking=False):
        logger.info("Skipping run, another sync task holds the lock", task_id=task_id)
        return None

    try:
        return asyncio.run(_run_with_container(action))
    finally:
        lock.release()


@shared_task(bind=True)
def sync_orders_from_idosell(self) -> dict | None:
    """
    Download newly added orders from IdoSell, then run status monitoring.

    Failures are logged rather than retried: the next beat tick is the retry.

    Returns:
        dict: Scheduler state after the run, or None when skipped because
            another sync task was in flight
    """
    logger.info("Starting order sync from IdoSell", task_id=self.request.id)
    return _run_exclusive(lambda c: c.scheduler.run_now(), self.request.id)


@shared_task(bind=True)
def monitor_order_statuses(self) -> dict | None:
    """Refresh statuses of stored orders modified upstream (manual trigger)."""
    logger.info("Starting order status monitoring", task_id=self.request.id)
    return _run_exclusive(
        lambda c: c.scheduler.run_status_monitoring_now(), self.request.id
    )
