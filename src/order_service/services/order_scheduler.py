"""In-process order sync scheduler.

Runs the "download new orders, then monitor statuses" cycle every N minutes on
an APScheduler cron trigger. A single ``is_running`` flag guards the cycle and
the manual triggers, so a tick that arrives while a run is in flight is
skipped rather than stacked.
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from order_service.config import Settings
from order_service.schemas import (
    DateType,
    SchedulerStatus,
    StatusMonitoringResult,
    SyncSummary,
)
from order_service.services.order_fetcher import ExternalOrderFetcher
from order_service.services.order_sync import OrderSyncService
from order_service.services.status_monitor import OrderStatusMonitor

logger = structlog.get_logger()

SCHEDULED_JOB_ID = "order-sync"


class OrderSchedulerService:
    """Periodic driver of the order sync pipeline."""

    def __init__(
        self,
        sync_service: OrderSyncService,
        status_monitor: OrderStatusMonitor,
        fetcher: ExternalOrderFetcher,
        settings: Settings,
    ):
        self.sync_service = sync_service
        self.status_monitor = status_monitor
        self.fetcher = fetcher
        self.settings = settings
        self.interval_minutes = settings.scheduler_interval_minutes
        self.lookback_minutes = settings.scheduler_lookback_minutes
        self.is_running = False
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_scheduled(self) -> bool:
        return self._scheduler is not None

    def start(
        self, interval_minutes: int | None = None, timezone: str | None = None
    ) -> None:
        """
        Schedule the sync cycle every ``interval_minutes`` minutes.

        Does nothing when already scheduled, when the API client is not
        configured, or when no event loop is running; the scheduler then
        stays idle.
        """
        interval = interval_minutes or self.settings.scheduler_interval_minutes
        tz = timezone or self.settings.scheduler_timezone

        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return

        if not self.fetcher.is_ready():
            logger.warning("IdoSell API not configured, scheduler will not start")
            return

        scheduler = AsyncIOScheduler(timezone=tz)
        scheduler.add_job(
            self.run_scheduled_task,
            CronTrigger(minute=f"*/{interval}", timezone=tz),
            id=SCHEDULED_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        try:
            scheduler.start()
        except RuntimeError as e:
            logger.warning("Scheduler not started, no running event loop", error=str(e))
            return

        self._scheduler = scheduler
        self.interval_minutes = interval
        logger.info("Scheduler started", interval_minutes=interval, timezone=tz)

    def stop(self) -> None:
        """Cancel future ticks. A run already in flight finishes normally."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    async def run_scheduled_task(self) -> None:
        """Run one guarded cycle: download new orders, then monitor statuses."""
        if self.is_running:
            logger.info("Skipping run, previous task still running")
            return

        self.is_running = True
        try:
            await self.download_new_orders()
            await self.run_status_monitoring_task()
        except Exception as e:
            logger.error("Scheduled tasks failed", error=str(e))
        finally:
            self.is_running = False

    async def download_new_orders(self) -> SyncSummary | None:
        """Sync orders added within the lookback window; failures are logged."""
        logger.info("Downloading new orders", lookback_minutes=self.lookback_minutes)
        try:
            summary = await self.sync_service.sync_recent(
                self.lookback_minutes,
                date_type=DateType.ADDED,
                update_existing=True,
            )
        except Exception as e:
            logger.error("Scheduler run failed", error=str(e))
            return None

        logger.info(
            "Downloading new orders completed",
            downloaded=summary.downloaded,
            created=summary.created,
            updated=summary.updated,
            errors=len(summary.errors),
        )
        return summary

    async def run_status_monitoring_task(self) -> StatusMonitoringResult:
        """Run one status monitoring pass; failures are logged and re-raised."""
        try:
            return await self.status_monitor.run(
                fresh_minutes=self.settings.status_monitor_fresh_minutes,
                modified_lookback_hours=self.settings.status_monitor_modified_lookback_hours,
            )
        except Exception as e:
            logger.error("Status monitoring failed", error=str(e))
            raise

    async def run_now(self) -> None:
        """Run the full cycle immediately, honouring the run guard."""
        logger.info("Running download now")
        await self.run_scheduled_task()

    async def run_status_monitoring_now(self) -> None:
        """Run status monitoring immediately, honouring the run guard."""
        if self.is_running:
            logger.info("Skipping status monitoring, scheduler is currently running")
            return

        self.is_running = True
        try:
            logger.info("Running status monitoring now")
            await self.run_status_monitoring_task()
        except Exception as e:
            logger.error("Status monitoring run failed", error=str(e))
        finally:
            self.is_running = False

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_scheduled=self.is_scheduled,
            is_running=self.is_running,
            interval_minutes=self.interval_minutes,
            lookback_minutes=self.lookback_minutes,
            api_ready=self.fetcher.is_ready(),
        )
