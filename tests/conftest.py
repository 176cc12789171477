import asyncio
from dataclasses import replace
from datetime import UTC, datetime

import pytest

from app.errors import DelegateError, StorageError
from app.features.campaigns.domain.models import Campaign, CampaignStatus, ensure_transition
from app.features.campaigns.services.sender import CampaignSender
from app.features.lead_scoring.configuration import default_scoring_configuration
from app.features.lead_scoring.domain.models import ContactAttributes, EngagementEvent, ScoreRecord

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakeCampaignRepository:
    """In-memory stand-in for CampaignRepository with the same conditional-update semantics."""

    def __init__(self):
        self.campaigns: dict[str, Campaign] = {}
        self.failing_outcomes: set[str] = set()
        self.cas_calls = 0

    def add(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.id] = campaign
        return campaign

    def _owned(self, tenant_id: str, campaign_id: str) -> Campaign | None:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None or campaign.tenant_id != tenant_id:
            return None
        return campaign

    async def get_campaign(self, tenant_id: str, campaign_id: str) -> Campaign | None:
        campaign = self._owned(tenant_id, campaign_id)
        return replace(campaign) if campaign else None

    async def get_due_campaigns(self, now: datetime) -> list[Campaign]:
        await asyncio.sleep(0)
        due = [
            replace(c)
            for c in self.campaigns.values()
            if c.status is CampaignStatus.SCHEDULED
            and c.scheduled_at is not None
            and c.scheduled_at <= now
        ]
        return sorted(due, key=lambda c: c.scheduled_at)

    async def list_scheduled(self, tenant_id: str) -> list[Campaign]:
        scheduled = [
            replace(c)
            for c in self.campaigns.values()
            if c.tenant_id == tenant_id and c.status is CampaignStatus.SCHEDULED
        ]
        return sorted(scheduled, key=lambda c: c.scheduled_at)

    async def compare_and_swap_campaign_status(
        self, campaign_id: str, expected_status: CampaignStatus, new_status: CampaignStatus
    ) -> bool:
        ensure_transition(expected_status, new_status)
        self.cas_calls += 1
        # Yield first so concurrent callers interleave; check-and-set below is atomic
        await asyncio.sleep(0)
        campaign = self.campaigns.get(campaign_id)
        if campaign is None or campaign.status is not expected_status:
            return False
        campaign.status = new_status
        campaign.updated_at = datetime.now(UTC)
        if new_status is CampaignStatus.SENDING:
            campaign.send_attempts += 1
        return True

    async def requeue_stale_sending(self, stale_before: datetime) -> list[str]:
        reclaimed = []
        for campaign in self.campaigns.values():
            if (
                campaign.status is CampaignStatus.SENDING
                and campaign.updated_at is not None
                and campaign.updated_at < stale_before
            ):
                campaign.status = CampaignStatus.SCHEDULED
                campaign.last_error = "send outcome unknown, reclaimed"
                campaign.updated_at = datetime.now(UTC)
                reclaimed.append(campaign.id)
        return reclaimed

    async def record_campaign_outcome(
        self, campaign_id: str, status: CampaignStatus, error_message: str | None = None
    ) -> bool:
        ensure_transition(CampaignStatus.SENDING, status)
        if campaign_id in self.failing_outcomes:
            raise StorageError("write failed", operation="record_campaign_outcome")
        campaign = self.campaigns.get(campaign_id)
        if campaign is None or campaign.status is not CampaignStatus.SENDING:
            return False
        campaign.status = status
        campaign.last_error = error_message
        campaign.updated_at = datetime.now(UTC)
        return True

    async def set_schedule(self, tenant_id, campaign_id, scheduled_at, timezone, allowed_statuses):
        campaign = self._owned(tenant_id, campaign_id)
        if campaign is None or campaign.status not in set(allowed_statuses):
            return False
        campaign.status = CampaignStatus.SCHEDULED
        campaign.scheduled_at = scheduled_at
        campaign.timezone = timezone
        campaign.send_attempts = 0
        campaign.last_error = None
        return True

    async def update_scheduled_at(self, tenant_id, campaign_id, scheduled_at, timezone):
        campaign = self._owned(tenant_id, campaign_id)
        if campaign is None or campaign.status is not CampaignStatus.SCHEDULED:
            return False
        campaign.scheduled_at = scheduled_at
        campaign.timezone = timezone
        return True

    async def clear_schedule(self, tenant_id, campaign_id):
        campaign = self._owned(tenant_id, campaign_id)
        if campaign is None or campaign.status is not CampaignStatus.SCHEDULED:
            return False
        campaign.status = CampaignStatus.DRAFT
        campaign.scheduled_at = None
        return True


class FakeSender(CampaignSender):
    def __init__(self, fail_ids=(), delay: float = 0.0, error: Exception | None = None):
        self.fail_ids = set(fail_ids)
        self.delay = delay
        self.error = error
        self.sent: list[str] = []
        self.calls: list[str] = []
        self.closed = False

    async def send(self, campaign: Campaign) -> None:
        self.calls.append(campaign.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if campaign.id in self.fail_ids:
            raise DelegateError("provider rejected")
        self.sent.append(campaign.id)

    async def close(self) -> None:
        self.closed = True


class FakeLeadScoringRepository:
    def __init__(self):
        self.contacts: dict[tuple[str, str], ContactAttributes] = {}
        self.events: dict[tuple[str, str], list[EngagementEvent]] = {}
        self.scores: dict[tuple[str, str], ScoreRecord] = {}
        self.configs: dict[str, dict] = {}
        self.failing_contacts: set[str] = set()
        self.upserts = 0

    def add_contact(self, contact: ContactAttributes, events=()) -> ContactAttributes:
        key = (contact.tenant_id, contact.contact_id)
        self.contacts[key] = contact
        self.events[key] = list(events)
        return contact

    async def get_contact(self, tenant_id, contact_id):
        if contact_id in self.failing_contacts:
            raise StorageError("read failed", operation="get_contact")
        return self.contacts.get((tenant_id, contact_id))

    async def get_engagement_events(self, tenant_id, contact_id):
        return list(self.events.get((tenant_id, contact_id), []))

    async def list_contact_ids(self, tenant_id, after_id, limit):
        ids = sorted(cid for tid, cid in self.contacts if tid == tenant_id)
        if after_id is not None:
            ids = [cid for cid in ids if cid > after_id]
        return ids[:limit]

    async def list_tenant_ids(self):
        return sorted({tid for tid, _ in self.contacts})

    async def upsert_score_record(self, record):
        self.upserts += 1
        self.scores[(record.tenant_id, record.contact_id)] = record

    async def get_score_record(self, tenant_id, contact_id):
        return self.scores.get((tenant_id, contact_id))

    async def get_top_score_records(self, tenant_id, limit):
        records = [r for (tid, _), r in self.scores.items() if tid == tenant_id]
        records.sort(key=lambda r: (-r.combined_score, r.contact_id))
        return records[:limit]

    async def fetch_configuration(self, tenant_id):
        return self.configs.get(tenant_id)

    async def save_configuration(self, tenant_id, config):
        self.configs[tenant_id] = config


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def campaign_repository():
    return FakeCampaignRepository()


@pytest.fixture
def fake_sender():
    return FakeSender()


@pytest.fixture
def scoring_repository():
    return FakeLeadScoringRepository()


@pytest.fixture
def scoring_config():
    return default_scoring_configuration()


@pytest.fixture
def make_campaign():
    def _make(
        campaign_id: str = "camp-1",
        tenant_id: str = "tenant-1",
        status: CampaignStatus = CampaignStatus.SCHEDULED,
        scheduled_at: datetime | None = None,
        **kwargs,
    ) -> Campaign:
        return Campaign(
            id=campaign_id,
            tenant_id=tenant_id,
            name=kwargs.pop("name", f"Campaign {campaign_id}"),
            status=status,
            scheduled_at=scheduled_at,
            recipients=kwargs.pop("recipients", ["a@example.com"]),
            **kwargs,
        )

    return _make


@pytest.fixture
def tenant_headers():
    return {"X-Tenant-ID": "tenant-1"}
