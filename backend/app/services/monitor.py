"""Background scheduler that periodically reports connection pool occupancy."""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import Settings
from app.db.manager import get_manager, is_shutting_down

logger = logging.getLogger(__name__)

POOL_MONITOR_JOB_ID = "pool-monitor"

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def start_scheduler() -> None:
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler() -> None:
    global _scheduler
    scheduler, _scheduler = _scheduler, None
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


def pool_monitor_enabled(settings: Settings) -> bool:
    return not settings.is_production and settings.pool_monitor_interval_seconds > 0


def schedule_pool_monitor_job(settings: Settings) -> bool:
    """Schedule the pool report job unless running in production or disabled."""

    if not pool_monitor_enabled(settings):
        return False
    scheduler = get_scheduler()
    trigger = IntervalTrigger(seconds=settings.pool_monitor_interval_seconds)
    scheduler.add_job(log_pool_status, trigger=trigger, id=POOL_MONITOR_JOB_ID, replace_existing=True)
    logger.info("Scheduled pool monitor every %s seconds", settings.pool_monitor_interval_seconds)
    return True


async def log_pool_status() -> None:
    if is_shutting_down():
        logger.info("Pool status: shutting_down=True")
        return
    status = get_manager().pool_status()
    logger.info(
        "Pool status: total=%d idle=%d waiting=%d shutting_down=False",
        status.total,
        status.idle,
        status.waiting,
    )
