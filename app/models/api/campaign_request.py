# app/models/api/campaign_request.py
from datetime import datetime

from pydantic import BaseModel, Field


class ScheduleCampaignRequest(BaseModel):
    """
    Request body for scheduling or rescheduling a campaign.

    A scheduled_at without offset is read as wall-clock time in ``timezone``.
    """

    scheduled_at: datetime
    timezone: str = Field(default="UTC", min_length=1, max_length=64)
