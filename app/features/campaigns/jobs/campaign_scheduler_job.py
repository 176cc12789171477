"""
Campaign scheduler job.

Two entry points:
- start_campaign_scheduler(): long-running worker polling every
  CAMPAIGN_SCHEDULER_INTERVAL_SECONDS
- run_campaign_scheduler_once(): single poll, for an external cron
  (``* * * * * python -m app.jobs.worker campaign_scheduler_once``)

Several drivers may run at the same time; the storage-level
compare-and-swap keeps each campaign from being sent twice.
"""

import asyncio

from app.config import settings
from app.db.pool import db_pool
from app.features.campaigns.services.scheduler import CampaignScheduler, campaign_scheduler
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def poll_once(scheduler: CampaignScheduler = campaign_scheduler) -> int:
    """One scheduler pass; errors are logged and reported as -1."""
    try:
        return await scheduler.process_due_campaigns()
    except Exception as e:
        logger.error("Campaign scheduler pass failed", error=str(e), error_type=type(e).__name__)
        return -1


async def run_campaign_scheduler_once() -> None:
    await db_pool.initialize()
    try:
        processed = await campaign_scheduler.process_due_campaigns()
        logger.info("Campaign scheduler run completed", processed=processed)
    finally:
        await campaign_scheduler.close()
        await db_pool.close()


async def start_campaign_scheduler() -> None:
    interval = settings.CAMPAIGN_SCHEDULER_INTERVAL_SECONDS
    logger.info(
        "Campaign scheduler STARTED",
        interval_seconds=interval,
        max_send_attempts=campaign_scheduler.max_send_attempts,
        send_timeout_seconds=campaign_scheduler.send_timeout,
    )

    await db_pool.initialize()
    try:
        while True:
            try:
                await poll_once()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                logger.info("Campaign scheduler cancelled")
                break
    finally:
        await campaign_scheduler.close()
        await db_pool.close()
