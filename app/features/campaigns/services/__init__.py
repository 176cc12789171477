"""
Services for the campaigns feature.
"""

from .scheduler import CampaignScheduler, SchedulerRunMetrics, campaign_scheduler
from .sender import CampaignSender, HttpCampaignSender, get_campaign_sender

__all__ = [
    "CampaignScheduler",
    "CampaignSender",
    "HttpCampaignSender",
    "SchedulerRunMetrics",
    "campaign_scheduler",
    "get_campaign_sender",
]
