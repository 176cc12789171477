# app/models/api/campaign_response.py
"""
Campaign scheduling API response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from app.features.campaigns.domain.models import Campaign, ScheduledCampaignView


class CampaignResponse(BaseModel):
    id: str
    name: str
    status: str = Field(..., description="draft, scheduled, sending, sent or failed")
    scheduled_at: datetime | None = None
    timezone: str = "UTC"
    send_attempts: int = 0
    last_error: str | None = None

    @classmethod
    def from_campaign(cls, campaign: Campaign) -> "CampaignResponse":
        return cls(
            id=campaign.id,
            name=campaign.name,
            status=campaign.status.value,
            scheduled_at=campaign.scheduled_at,
            timezone=campaign.timezone,
            send_attempts=campaign.send_attempts,
            last_error=campaign.last_error,
        )


class ScheduledCampaignResponse(CampaignResponse):
    time_until_send_seconds: float = Field(..., ge=0)

    @classmethod
    def from_view(cls, view: ScheduledCampaignView) -> "ScheduledCampaignResponse":
        base = CampaignResponse.from_campaign(view.campaign)
        return cls(**base.model_dump(), time_until_send_seconds=view.time_until_send_seconds)


class ScheduledCampaignsResponse(BaseModel):
    campaigns: list[ScheduledCampaignResponse]
    count: int


class CancelCampaignResponse(BaseModel):
    success: bool = True
    campaign_id: str


class ProcessDueResponse(BaseModel):
    processed: int
    timestamp: datetime
