"""
AuthGate — Background Job Scheduler
====================================

What:  Periodic maintenance jobs running inside the API process.
Why:   Expired password-reset rows are useless and must not pile up; deleting
       them on a timer keeps the table small without a separate cron host.
How:   APScheduler's AsyncIOScheduler runs jobs on the application's event loop;
       started and stopped by the FastAPI lifespan.

Jobs:
    purge_expired_password_resets   every RESET_PURGE_INTERVAL_MINUTES
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from authgate.config import settings
from authgate.database import async_session_factory
from authgate.services.auth_service import auth_service

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired_password_resets"


async def purge_expired_password_resets() -> int:
    """Delete expired reset tokens in their own transaction."""
    async with async_session_factory() as session:
        try:
            removed = await auth_service.purge_expired_resets(session)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.error("Purging expired password resets failed", exc_info=True)
            raise

    if removed:
        logger.info("Purged %d expired password reset(s)", removed)
    return removed


def create_scheduler() -> AsyncIOScheduler:
    """
    Build (but do not start) the scheduler with all maintenance jobs.

    coalesce/max_instances: if the loop was busy and runs were missed, run once,
    and never let two purges overlap.
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        purge_expired_password_resets,
        trigger="interval",
        minutes=settings.reset_purge_interval_minutes,
        id=PURGE_JOB_ID,
        coalesce=True,
        max_instances=1,
        replace_existing=True,
    )
    return scheduler
