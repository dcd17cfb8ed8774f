"""
Periodic reconciliation.

Runs ReconciliationService.sync_all on an interval inside the FastAPI
process. Disabled unless SYNC_SCHEDULE_ENABLED is set.
"""

import logging
from typing import Optional, Dict, Any
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from app.core.config import Settings, get_settings
from app.core.utils import utc_now
from app.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "reconcile_listings"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None
_reconciliation: Optional[ReconciliationService] = None


async def reconcile_listings_task() -> Optional[Dict[str, Any]]:
    """Task to reconcile every open listing against its platform"""
    if _reconciliation is None:
        logger.warning("Reconciliation requested before services were configured")
        return None

    logger.info("=== SCHEDULED RECONCILIATION STARTING ===")
    summary = await _reconciliation.sync_all()
    logger.info(
        f"Scheduled reconciliation finished: synced={summary.synced} errors={summary.errors} "
        f"sold={summary.sold} removed={summary.removed}"
    )
    return summary.model_dump()


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {utc_now()}")


def create_scheduler(
    reconciliation: ReconciliationService,
    settings: Optional[Settings] = None,
) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler, _reconciliation

    settings = settings or get_settings()
    _reconciliation = reconciliation

    if scheduler is not None:
        return scheduler

    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SYNC_SCHEDULE_ENABLED:
        scheduler.add_job(
            reconcile_listings_task,
            IntervalTrigger(minutes=settings.SYNC_INTERVAL_MINUTES),
            id=SYNC_JOB_ID,
            name="Reconcile Platform Listings",
            replace_existing=True,
            max_instances=1,  # Only one sync at a time
            coalesce=True,
            misfire_grace_time=600,
        )
        logger.info(f"Reconciliation job scheduled every {settings.SYNC_INTERVAL_MINUTES} minutes")
    else:
        logger.info("Scheduled sync is disabled. Set SYNC_SCHEDULE_ENABLED=true to enable")

    return scheduler


async def start_scheduler():
    """Start the scheduler"""
    if scheduler is None:
        raise RuntimeError("create_scheduler() must be called before start_scheduler()")

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        jobs = scheduler.get_jobs()
        if jobs:
            logger.info(f"Active scheduled jobs: {len(jobs)}")
            for job in jobs:
                logger.info(f"  - {job.name}: {job.trigger}")
        else:
            logger.info("No scheduled jobs configured")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def trigger_sync_manually() -> Optional[Dict[str, Any]]:
    """Run the reconciliation job now, outside the schedule"""
    logger.info("Manually triggering reconciliation...")
    return await reconcile_listings_task()


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        # Jobs added before start() have no next_run_time yet
        next_run = getattr(job, "next_run_time", None)
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
