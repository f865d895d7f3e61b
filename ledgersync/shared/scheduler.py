"""
Scheduler Module

Timer plumbing shared by the polling loop, the debounced dashboard
refresh and the periodic live-upgrade retry.

Dependencies:
- APScheduler for scheduling
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """
    Build the scheduler used for all sync timers.

    Notes:
        - Coalesces missed runs into one
        - One instance per job at a time
        - Late runs still execute
    """
    return AsyncIOScheduler(job_defaults={
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": None
    })


def ensure_scheduler_running(scheduler: AsyncIOScheduler) -> None:
    """Start the scheduler on the running event loop if it is not started yet."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Sync scheduler started")


def cancel_job(scheduler: AsyncIOScheduler, job_id: str) -> bool:
    """Remove a scheduled job. Returns False when nothing was scheduled."""
    if scheduler.get_job(job_id) is None:
        return False
    scheduler.remove_job(job_id)
    return True
