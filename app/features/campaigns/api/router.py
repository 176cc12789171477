"""
Campaign scheduling routes.

Usage:
    1. POST /campaigns/{campaign_id}/schedule   - Schedule (or re-arm) a campaign
    2. POST /campaigns/{campaign_id}/reschedule - Move a scheduled campaign
    3. POST /campaigns/{campaign_id}/cancel     - Back to draft
    4. GET  /campaigns/scheduled                - Scheduled campaigns with time left
    5. POST /campaigns/process-due              - Run one scheduler pass (all tenants)
"""

from fastapi import APIRouter, Depends

from app.features.campaigns.services.scheduler import CampaignScheduler, campaign_scheduler
from app.infrastructure.observability.logging import get_logger
from app.models.api.campaign_request import ScheduleCampaignRequest
from app.models.api.campaign_response import (
    CampaignResponse,
    CancelCampaignResponse,
    ProcessDueResponse,
    ScheduledCampaignResponse,
    ScheduledCampaignsResponse,
)
from app.routes.dependencies import tenant_dependency
from app.utils.time_helpers import utc_now

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
logger = get_logger(__name__)


def get_campaign_scheduler() -> CampaignScheduler:
    return campaign_scheduler


@router.get("/scheduled", response_model=ScheduledCampaignsResponse)
async def list_scheduled_campaigns(
    tenant_id: str = Depends(tenant_dependency),
    scheduler: CampaignScheduler = Depends(get_campaign_scheduler),
):
    views = await scheduler.get_scheduled_campaigns(tenant_id)
    campaigns = [ScheduledCampaignResponse.from_view(view) for view in views]
    return ScheduledCampaignsResponse(campaigns=campaigns, count=len(campaigns))


@router.post("/process-due", response_model=ProcessDueResponse)
async def process_due_campaigns(
    scheduler: CampaignScheduler = Depends(get_campaign_scheduler),
):
    now = utc_now()
    processed = await scheduler.process_due_campaigns(now)
    return ProcessDueResponse(processed=processed, timestamp=now)


@router.post("/{campaign_id}/schedule", response_model=CampaignResponse)
async def schedule_campaign(
    campaign_id: str,
    request: ScheduleCampaignRequest,
    tenant_id: str = Depends(tenant_dependency),
    scheduler: CampaignScheduler = Depends(get_campaign_scheduler),
):
    campaign = await scheduler.schedule(
        tenant_id, campaign_id, request.scheduled_at, timezone=request.timezone
    )
    return CampaignResponse.from_campaign(campaign)


@router.post("/{campaign_id}/reschedule", response_model=CampaignResponse)
async def reschedule_campaign(
    campaign_id: str,
    request: ScheduleCampaignRequest,
    tenant_id: str = Depends(tenant_dependency),
    scheduler: CampaignScheduler = Depends(get_campaign_scheduler),
):
    campaign = await scheduler.reschedule(
        tenant_id, campaign_id, request.scheduled_at, timezone=request.timezone
    )
    return CampaignResponse.from_campaign(campaign)


@router.post("/{campaign_id}/cancel", response_model=CancelCampaignResponse)
async def cancel_campaign(
    campaign_id: str,
    tenant_id: str = Depends(tenant_dependency),
    scheduler: CampaignScheduler = Depends(get_campaign_scheduler),
):
    await scheduler.cancel(tenant_id, campaign_id)
    return CancelCampaignResponse(campaign_id=campaign_id)
