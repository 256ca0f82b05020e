"""
APScheduler instance for per-session interval jobs.

Progress saves are bound to live tracker objects, so the scheduler runs
with the in-memory job store only; nothing here survives a restart.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None

JOB_DEFAULTS = {
    "coalesce": True,  # Combine missed runs into one
    "max_instances": 1,
    "misfire_grace_time": 5,
}


def init_scheduler() -> AsyncIOScheduler:
    """
    Initialize and start the scheduler.

    Call this during app startup (in FastAPI lifespan), from inside the
    running event loop.
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(job_defaults=JOB_DEFAULTS)
    _scheduler.start()
    logger.info("Progress scheduler started")
    return _scheduler


def get_scheduler() -> AsyncIOScheduler:
    """Return the running scheduler, raising if startup never initialized it."""
    if _scheduler is None:
        raise RuntimeError("Scheduler not initialized; call init_scheduler() first")
    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler.

    Call this during app shutdown, after open viewing sessions were flushed.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Progress scheduler stopped")
