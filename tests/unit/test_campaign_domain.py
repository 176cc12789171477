from datetime import UTC, datetime, timedelta, timezone

import pytest

from app.errors import ValidationError
from app.features.campaigns.domain.models import (
    ALLOWED_TRANSITIONS,
    CampaignStatus,
    can_transition,
    ensure_transition,
)
from app.utils.time_helpers import as_utc, localize_to_utc


def test_sent_is_terminal():
    assert ALLOWED_TRANSITIONS[CampaignStatus.SENT] == frozenset()
    with pytest.raises(ValidationError):
        ensure_transition(CampaignStatus.SENT, CampaignStatus.SCHEDULED)


def test_send_lifecycle_transitions():
    assert can_transition(CampaignStatus.DRAFT, CampaignStatus.SCHEDULED)
    assert can_transition(CampaignStatus.SCHEDULED, CampaignStatus.SENDING)
    assert can_transition(CampaignStatus.SENDING, CampaignStatus.SCHEDULED)
    assert can_transition(CampaignStatus.SENDING, CampaignStatus.SENT)
    assert not can_transition(CampaignStatus.DRAFT, CampaignStatus.SENDING)
    assert not can_transition(CampaignStatus.SENDING, CampaignStatus.DRAFT)


def test_as_utc_normalizes_offsets():
    plus_two = datetime(2024, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    assert as_utc(plus_two) == datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
    assert as_utc(datetime(2024, 6, 1, 12, 0)).tzinfo is UTC


def test_localize_keeps_aware_values():
    aware = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
    assert localize_to_utc(aware, "Asia/Tokyo") == aware
