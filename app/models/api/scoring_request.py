# app/models/api/scoring_request.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ScoreContactRequest(BaseModel):
    """Optional reference time for a recomputation (defaults to now)."""

    as_of: datetime | None = None


class ScoringConfigurationRequest(BaseModel):
    """Full replacement scoring configuration; validated before it is stored."""

    config: dict[str, Any] = Field(..., description="Scoring configuration document")


class FitRuleRequest(BaseModel):
    """One fit rule to append to the tenant's configuration."""

    category: str = Field(..., description="Fit category, e.g. creator_type or audience_size")
    points: float
    label: str | None = None
    match: str | None = Field(None, description="Exact value for non-range categories")
    min_value: float | None = Field(None, description="Inclusive audience_size lower bound")
    max_value: float | None = Field(None, description="Exclusive audience_size upper bound")


class IntentEventRequest(BaseModel):
    points: float = Field(..., description="Points before decay")
