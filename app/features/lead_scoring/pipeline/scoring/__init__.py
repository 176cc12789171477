"""
Lead scoring package.

Pure scoring functions plus the service that persists score records.
"""

from .engine import (
    build_score_record,
    classify_tier,
    compute_combined_score,
    compute_fit_score,
    compute_intent_score,
    decayed_points,
)
from .service import LeadScoringService, lead_scoring_service

__all__ = [
    "LeadScoringService",
    "build_score_record",
    "classify_tier",
    "compute_combined_score",
    "compute_fit_score",
    "compute_intent_score",
    "decayed_points",
    "lead_scoring_service",
]
