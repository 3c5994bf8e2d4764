"""
APScheduler setup: one-shot re-check jobs for held notifications.

Each held notification owns a DateTrigger job whose id is the notification id,
so rescheduling replaces the job and cancelling removes it.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from ..core.settings import settings

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None


# Used by: notification_scheduler.py (type hint protocol; tests provide an in-memory runner)
class DeferredRunner(Protocol):
    def schedule(
        self,
        job_id: str,
        run_at: datetime,
        callback: Callable[..., Awaitable[Any]],
        args: Sequence[Any] = ()
    ) -> None:
        ...

    def cancel(self, job_id: str) -> bool:
        ...


# Used by: get_runner
class APSchedulerRunner:
    def __init__(self, aps: AsyncIOScheduler):
        self.aps = aps

    def schedule(
        self,
        job_id: str,
        run_at: datetime,
        callback: Callable[..., Awaitable[Any]],
        args: Sequence[Any] = ()
    ) -> None:
        self.aps.add_job(
            callback,
            trigger=DateTrigger(run_date=run_at, timezone=settings.NOTIFICATION_TIMEZONE),
            args=list(args),
            id=job_id,
            name=f"Re-check held notification {job_id}",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug(f"Registered re-check for {job_id} at {run_at}")

    def cancel(self, job_id: str) -> bool:
        try:
            self.aps.remove_job(job_id)
            return True
        except JobLookupError:
            return False


# Used by: main (lifespan startup)
async def start_scheduler():
    """Initialize and start APScheduler."""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    logger.info("Initializing scheduler...")
    scheduler = AsyncIOScheduler(timezone=settings.NOTIFICATION_TIMEZONE)
    scheduler.start()
    logger.info(f"Scheduler started ({settings.NOTIFICATION_TIMEZONE})")


# Used by: main (lifespan shutdown)
async def stop_scheduler():
    global scheduler

    if scheduler is None:
        logger.warning("Scheduler is not running")
        return

    logger.info("Shutting down scheduler...")
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Scheduler stopped")


# Used by: notification_scheduler.get_notification_scheduler
def get_runner() -> APSchedulerRunner:
    if scheduler is None:
        raise RuntimeError("Scheduler not started")
    return APSchedulerRunner(scheduler)


# Used by: main.py (GET /health)
def get_scheduler_status() -> dict:
    if scheduler is None:
        return {
            "running": False,
            "jobs": []
        }

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
