"""
Domain subpackage for the campaigns feature.
"""

from .models import (
    ALLOWED_TRANSITIONS,
    SCHEDULABLE_STATUSES,
    Campaign,
    CampaignStatus,
    ScheduledCampaignView,
    can_transition,
    ensure_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "SCHEDULABLE_STATUSES",
    "Campaign",
    "CampaignStatus",
    "ScheduledCampaignView",
    "can_transition",
    "ensure_transition",
]
