"""
Domain models for marketing campaigns and their send lifecycle.

    draft --schedule--> scheduled --due--> sending --ok--> sent
                                                    \\--fail--> scheduled (requeued)
                                                    \\--stale--> scheduled (reclaimed)
    scheduled --cancel--> draft
    scheduled --reschedule--> scheduled

``failed`` is only reached when a send-attempt cap is configured; a
failed campaign can be scheduled again.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.errors import ValidationError


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.SCHEDULED}),
    CampaignStatus.SCHEDULED: frozenset(
        {CampaignStatus.SCHEDULED, CampaignStatus.DRAFT, CampaignStatus.SENDING}
    ),
    CampaignStatus.SENDING: frozenset(
        {CampaignStatus.SENT, CampaignStatus.SCHEDULED, CampaignStatus.FAILED}
    ),
    CampaignStatus.SENT: frozenset(),
    CampaignStatus.FAILED: frozenset({CampaignStatus.SCHEDULED}),
}

# Statuses from which schedule() may (re)arm a campaign; sending -> scheduled
# is reserved for the scheduler's requeue
SCHEDULABLE_STATUSES = frozenset(
    {CampaignStatus.DRAFT, CampaignStatus.SCHEDULED, CampaignStatus.FAILED}
)


def can_transition(current: CampaignStatus, target: CampaignStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: CampaignStatus, target: CampaignStatus) -> None:
    if not can_transition(current, target):
        raise ValidationError(
            f"Campaign cannot move from {current.value} to {target.value}",
            operation="transition",
        )


@dataclass(slots=True)
class Campaign:
    id: str
    tenant_id: str
    name: str
    status: CampaignStatus
    scheduled_at: datetime | None
    timezone: str = "UTC"
    recipients: list[str] = field(default_factory=list)
    send_attempts: int = 0
    last_error: str | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class ScheduledCampaignView:
    """A scheduled campaign plus the time left before it becomes due."""

    campaign: Campaign
    time_until_send_seconds: float
