"""
Pure scoring functions: fit, intent (with exponential decay), combined, tiers.

Nothing here touches storage or the wall clock beyond the ``as_of``
reference passed in, so the same inputs always produce the same scores.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from app.errors import ConfigurationError
from app.features.lead_scoring.configuration import (
    WEIGHT_TOLERANCE,
    CombinedWeights,
    FitCategory,
    FitRule,
    ScoringConfiguration,
    TierThreshold,
)
from app.features.lead_scoring.domain.models import (
    ContactAttributes,
    EngagementEvent,
    ScoreRecord,
)
from app.utils.time_helpers import as_utc

SECONDS_PER_DAY = 86400.0


def compute_fit_score(contact: ContactAttributes, config: ScoringConfiguration) -> float:
    total = 0.0
    for rule in config.fit_rules:
        if _rule_matches(rule, contact):
            total += rule.points
    # Misconfigured negative rules can never push a contact below zero
    return max(total, 0.0)


def _rule_matches(rule: FitRule, contact: ContactAttributes) -> bool:
    if rule.category is FitCategory.AUDIENCE_SIZE:
        size = contact.audience_size
        if size is None:
            return False
        return rule.min_value <= size and (rule.max_value is None or size < rule.max_value)

    value = {
        FitCategory.CREATOR_TYPE: contact.creator_type,
        FitCategory.BUSINESS_STAGE: contact.business_stage,
        FitCategory.PLATFORM_COMMITMENT: contact.platform_commitment,
    }[rule.category]
    return value is not None and value == rule.match


def decayed_points(
    points: float, occurred_at: datetime, as_of: datetime, half_life_days: float
) -> float:
    """
    ``points * 0.5 ** (elapsed_days / half_life_days)``.

    Events in the future count as elapsed 0, so decay never amplifies.
    """
    elapsed_days = (as_utc(as_of) - as_utc(occurred_at)).total_seconds() / SECONDS_PER_DAY
    elapsed_days = max(elapsed_days, 0.0)
    return points * 0.5 ** (elapsed_days / half_life_days)


def compute_intent_score(
    events: Iterable[EngagementEvent],
    config: ScoringConfiguration,
    as_of: datetime | None = None,
) -> float:
    as_of = as_utc(as_of) if as_of is not None else datetime.now(UTC)

    total = 0.0
    for event in events:
        points = config.intent_events.get(event.type)
        if points is None:
            continue
        total += decayed_points(points, event.occurred_at, as_of, config.decay_half_life_days)
    return total


def compute_combined_score(
    fit_score: float, intent_score: float, weights: CombinedWeights
) -> float:
    total = weights.fit_weight + weights.intent_weight
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationError(
            f"fit_weight + intent_weight must equal 1 (got {total})",
            operation="compute_combined_score",
        )
    return fit_score * weights.fit_weight + intent_score * weights.intent_weight


def classify_tier(score: float, thresholds: Sequence[TierThreshold]) -> str:
    """
    Label of the first tier with ``min <= score < max``.

    Thresholds are expected to have passed validate_tier_thresholds().
    """
    if math.isnan(score) or score < 0:
        raise ValueError(f"score must be a non-negative number, got {score}")

    for tier in thresholds:
        if tier.min <= score and (tier.max is None or score < tier.max):
            return tier.label

    raise ConfigurationError(
        f"No tier covers score {score}; thresholds were not validated",
        operation="classify_tier",
    )


def build_score_record(
    contact: ContactAttributes,
    events: Iterable[EngagementEvent],
    config: ScoringConfiguration,
    as_of: datetime,
) -> ScoreRecord:
    """Compute every score component for one contact at ``as_of``."""
    as_of = as_utc(as_of)
    fit_score = compute_fit_score(contact, config)
    intent_score = compute_intent_score(events, config, as_of)
    combined_score = compute_combined_score(fit_score, intent_score, config.combined_weights)

    return ScoreRecord(
        tenant_id=contact.tenant_id,
        contact_id=contact.contact_id,
        fit_score=fit_score,
        intent_score=intent_score,
        combined_score=combined_score,
        fit_tier=classify_tier(fit_score, config.fit_tiers),
        intent_tier=classify_tier(intent_score, config.intent_tiers),
        computed_at=as_of,
    )
