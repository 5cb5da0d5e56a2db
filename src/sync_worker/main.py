"""Celery application for sync worker."""

from celery import Celery
from celery.schedules import crontab

from order_service.config import get_settings

settings = get_settings()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_orders",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.scheduler_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,  # 9 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Download newly added orders, then monitor statuses; monitoring has no
    # entry of its own
    "sync-orders": {
        "task": "sync_worker.tasks.sync_orders.sync_orders_from_idosell",
        "schedule": crontab(minute=f"*/{settings.scheduler_interval_minutes}"),
    },
}


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
