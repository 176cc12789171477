"""
Lead Rescore Background Job - periodic recomputation of lead scores.

Intent scores decay with time even when nothing new happens, so every
tenant's contacts are rescored on a fixed interval
(LEAD_RESCORE_INTERVAL_SECONDS).

Design:
- One tenant failing does not stop the others
- One contact failing does not stop its tenant (see LeadScoringService)
- The loop survives failed runs and tries again on the next interval

Usage:
    python -m app.jobs.worker lead_rescore
"""

import asyncio
from datetime import UTC, datetime

from app.config import settings
from app.db.pool import db_pool
from app.features.lead_scoring.pipeline.scoring.repository import LeadScoringRepository
from app.features.lead_scoring.pipeline.scoring.service import (
    LeadScoringService,
    lead_scoring_service,
)
from app.infrastructure.observability.logging import get_logger, log_job_run

logger = get_logger(__name__)


class LeadRescoreJob:
    def __init__(
        self, service: LeadScoringService = lead_scoring_service, repository=LeadScoringRepository
    ):
        self.service = service
        self.repository = repository
        self.is_running = False

    async def run_once(self, as_of: datetime | None = None) -> dict:
        """
        Rescore every tenant once.

        Returns:
            dict: {"success": bool, "tenants": int, "contacts_scored": int,
                   "failures": int, "errors": list}
        """
        if self.is_running:
            logger.warning("Lead rescore already running, skipping")
            return {"success": False, "error": "Already running"}

        self.is_running = True
        as_of = as_of or datetime.now(UTC)
        result = {"success": True, "tenants": 0, "contacts_scored": 0, "failures": 0, "errors": []}

        try:
            tenant_ids = await self.repository.list_tenant_ids()
            for tenant_id in tenant_ids:
                try:
                    metrics = await self.service.rescore_tenant(tenant_id, as_of=as_of)
                    result["tenants"] += 1
                    result["contacts_scored"] += metrics.contacts_scored
                    result["failures"] += metrics.failures
                except Exception as e:
                    error_msg = f"Tenant {tenant_id} rescore failed: {e}"
                    logger.error("Tenant rescore failed", tenant_id=tenant_id, error=str(e))
                    result["errors"].append(error_msg)
        except Exception as e:
            logger.error("Unexpected error in lead rescore job", error=str(e))
            result["success"] = False
            result["errors"].append(f"Unexpected error: {e}")
        finally:
            self.is_running = False

        log_job_run("lead_rescore", result, failed=not result["success"])
        return result


lead_rescore_job = LeadRescoreJob()


async def start_lead_rescore_scheduler() -> None:
    """Run the rescore job forever, once per LEAD_RESCORE_INTERVAL_SECONDS."""
    interval = settings.LEAD_RESCORE_INTERVAL_SECONDS
    logger.info("Lead rescore scheduler STARTED", interval_seconds=interval)

    await db_pool.initialize()
    try:
        while True:
            try:
                await lead_rescore_job.run_once()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                logger.info("Lead rescore scheduler cancelled")
                break
            except Exception as e:
                logger.error("Error in lead rescore scheduler, will retry", error=str(e))
                await asyncio.sleep(interval)
    finally:
        await db_pool.close()
