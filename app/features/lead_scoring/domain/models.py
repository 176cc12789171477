"""
Domain models for the lead scoring feature.

Plain dataclasses shared by the scoring engine, the repository and the
API layer. Rows coming out of Postgres are converted into these at the
repository boundary.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class ContactAttributes:
    """Static attributes of a contact used for fit scoring."""

    contact_id: str
    tenant_id: str
    creator_type: str | None = None
    audience_size: int | None = None
    business_stage: str | None = None
    platform_commitment: str | None = None


@dataclass(frozen=True, slots=True)
class EngagementEvent:
    """A recorded engagement signal. Events are append-only."""

    contact_id: str
    type: str
    occurred_at: datetime


@dataclass(slots=True)
class ScoreRecord:
    """Persisted score for one contact; upserted on every recomputation."""

    tenant_id: str
    contact_id: str
    fit_score: float
    intent_score: float
    combined_score: float
    fit_tier: str
    intent_tier: str
    computed_at: datetime
