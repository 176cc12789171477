# app/models/api/scoring_response.py
"""
Lead scoring API response models.
Used by the /scoring routes for output formatting.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.features.lead_scoring.domain.models import ScoreRecord


class ScoreRecordResponse(BaseModel):
    """Response model for one contact's score."""

    contact_id: str = Field(..., description="Contact ID")
    fit_score: float = Field(..., ge=0, description="Attribute-based fit score")
    intent_score: float = Field(..., ge=0, description="Decayed engagement score")
    combined_score: float = Field(..., ge=0, description="Weighted fit + intent")
    fit_tier: str = Field(..., description="Fit tier label (e.g. A/B/C)")
    intent_tier: str = Field(..., description="Intent tier label (e.g. Hot/Warm/Cold)")
    computed_at: datetime = Field(..., description="Reference time of the computation")

    @classmethod
    def from_record(cls, record: ScoreRecord) -> "ScoreRecordResponse":
        return cls(
            contact_id=record.contact_id,
            fit_score=record.fit_score,
            intent_score=record.intent_score,
            combined_score=record.combined_score,
            fit_tier=record.fit_tier,
            intent_tier=record.intent_tier,
            computed_at=record.computed_at,
        )


class TopLeadsResponse(BaseModel):
    leads: list[ScoreRecordResponse]
    count: int


class ScoringConfigurationResponse(BaseModel):
    config: dict[str, Any] = Field(..., description="Validated scoring configuration")


class RescoreResponse(BaseModel):
    contacts_processed: int
    contacts_scored: int
    failures: int
    duration_seconds: float
