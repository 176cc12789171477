"""
Scoring configuration: models, defaults and the single validation entry point.

A ScoringConfiguration is an immutable value. It is only ever produced by
load_scoring_configuration() (or the helpers built on top of it), so any
configuration reaching the scoring engine has already passed every check.
Edits such as adding a creator type return a new, re-validated value.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.errors import ConfigurationError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

WEIGHT_TOLERANCE = 1e-6


class FitCategory(str, Enum):
    CREATOR_TYPE = "creator_type"
    AUDIENCE_SIZE = "audience_size"
    BUSINESS_STAGE = "business_stage"
    PLATFORM_COMMITMENT = "platform_commitment"


EXACT_MATCH_CATEGORIES = {
    FitCategory.CREATOR_TYPE,
    FitCategory.BUSINESS_STAGE,
    FitCategory.PLATFORM_COMMITMENT,
}


class FitRule(BaseModel):
    """
    One fit rule.

    Exact-match categories compare the contact attribute to ``match``.
    Audience size uses the half-open range ``[min_value, max_value)``;
    ``max_value=None`` makes the bracket open-ended.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: FitCategory
    points: float
    label: str | None = None
    match: str | None = None
    min_value: float | None = None
    max_value: float | None = None


class TierThreshold(BaseModel):
    """A named score band ``[min, max)``; ``max=None`` means no upper bound."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: str = Field(..., min_length=1)
    min: float
    max: float | None = None


class CombinedWeights(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    fit_weight: float = Field(..., ge=0.0, le=1.0)
    intent_weight: float = Field(..., ge=0.0, le=1.0)


class ScoringConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    fit_rules: tuple[FitRule, ...]
    intent_events: Mapping[str, float]
    decay_half_life_days: float
    fit_tiers: tuple[TierThreshold, ...]
    intent_tiers: tuple[TierThreshold, ...]
    combined_weights: CombinedWeights

    @field_validator("intent_events", mode="after")
    @classmethod
    def _freeze_intent_events(cls, value: Mapping[str, float]) -> Mapping[str, float]:
        # read-only view; the base configuration is cached and shared
        return MappingProxyType(dict(value))

    @field_serializer("intent_events")
    def _serialize_intent_events(self, value: Mapping[str, float]) -> dict[str, float]:
        return dict(value)

    def to_storage_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# =================================================================
# DEFAULTS
# =================================================================

DEFAULT_SCORING_CONFIGURATION: dict[str, Any] = {
    "fit_rules": [
        {"category": "creator_type", "match": "Life Coach", "points": 25},
        {"category": "creator_type", "match": "Business Coach", "points": 25},
        {"category": "creator_type", "match": "Fitness Coach", "points": 25},
        {"category": "creator_type", "match": "Educational Creator", "points": 25},
        {"category": "creator_type", "match": "Course Creator", "points": 25},
        {
            "category": "audience_size",
            "min_value": 1000,
            "max_value": 5000,
            "points": 15,
            "label": "Growing (1K-5K)",
        },
        {
            "category": "audience_size",
            "min_value": 5000,
            "max_value": 25000,
            "points": 20,
            "label": "Established (5K-25K)",
        },
        {
            "category": "audience_size",
            "min_value": 25000,
            "max_value": 100000,
            "points": 25,
            "label": "Influential (25K-100K)",
        },
        {
            "category": "audience_size",
            "min_value": 100000,
            "max_value": None,
            "points": 25,
            "label": "Major Creator (100K+)",
        },
        {"category": "business_stage", "match": "Starting Out", "points": 10},
        {"category": "business_stage", "match": "Growing", "points": 20},
        {"category": "business_stage", "match": "Scaling", "points": 25},
        {"category": "business_stage", "match": "Established", "points": 20},
        {"category": "platform_commitment", "match": "Single Feature User", "points": 5},
        {"category": "platform_commitment", "match": "Multiple Features", "points": 15},
        {"category": "platform_commitment", "match": "Full Platform User", "points": 25},
        {"category": "platform_commitment", "match": "Custom App Owner", "points": 30},
    ],
    "intent_events": {
        "coaching.session_booked": 25,
        "course.purchased": 20,
        "subscription.upgraded": 20,
        "livestream.attended": 15,
        "community.post_created": 10,
        "app.downloaded": 25,
        "digital_product.purchased": 15,
        "ama.attended": 12,
        "content.viewed": 5,
        "email.clicked": 3,
    },
    "decay_half_life_days": 14,
    "fit_tiers": [
        {"label": "A", "min": 70},
        {"label": "B", "min": 40, "max": 70},
        {"label": "C", "min": 0, "max": 40},
    ],
    "intent_tiers": [
        {"label": "Hot", "min": 60},
        {"label": "Warm", "min": 25, "max": 60},
        {"label": "Cold", "min": 0, "max": 25},
    ],
    "combined_weights": {"fit_weight": 0.5, "intent_weight": 0.5},
}


# =================================================================
# VALIDATION
# =================================================================


def load_scoring_configuration(data: Mapping[str, Any]) -> ScoringConfiguration:
    """
    Parse and validate a scoring configuration.

    This is the only way configuration values enter the scoring engine.

    Raises:
        ConfigurationError: on any structural or semantic problem
    """
    try:
        config = ScoringConfiguration.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ConfigurationError(
            f"Invalid scoring configuration: {e}", operation="load_configuration"
        ) from e

    _validate_fit_rules(config.fit_rules)
    _validate_intent_events(config.intent_events)
    if not math.isfinite(config.decay_half_life_days) or config.decay_half_life_days <= 0:
        raise ConfigurationError(
            "decay_half_life_days must be a positive number", operation="load_configuration"
        )
    validate_combined_weights(config.combined_weights)
    validate_tier_thresholds(config.fit_tiers, name="fit_tiers")
    validate_tier_thresholds(config.intent_tiers, name="intent_tiers")
    return config


def load_scoring_configuration_file(path: str | Path) -> ScoringConfiguration:
    """Load and validate a JSON scoring configuration file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Cannot read scoring configuration from {path}: {e}", operation="load_configuration"
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Scoring configuration in {path} must be a JSON object", operation="load_configuration"
        )
    return load_scoring_configuration(data)


def default_scoring_configuration() -> ScoringConfiguration:
    return load_scoring_configuration(DEFAULT_SCORING_CONFIGURATION)


@lru_cache(maxsize=1)
def get_base_configuration() -> ScoringConfiguration:
    """Configuration used for tenants that have not stored their own."""
    if settings.SCORING_CONFIG_PATH:
        logger.info("Loading scoring configuration file", path=settings.SCORING_CONFIG_PATH)
        return load_scoring_configuration_file(settings.SCORING_CONFIG_PATH)
    return default_scoring_configuration()


def validate_combined_weights(weights: CombinedWeights) -> None:
    total = weights.fit_weight + weights.intent_weight
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ConfigurationError(
            f"fit_weight + intent_weight must equal 1 (got {total})",
            operation="validate_weights",
        )


def validate_tier_thresholds(thresholds: Sequence[TierThreshold], name: str = "tiers") -> None:
    """
    Check that tiers cover ``[0, inf)`` exactly once.

    Tiers are listed highest first. The first tier has no upper bound, each
    lower tier ends where the next-higher one starts (``max`` may be omitted
    to mean exactly that), and the lowest tier starts at 0.
    """
    if not thresholds:
        raise ConfigurationError(
            f"{name}: at least one tier is required", operation="validate_tiers"
        )

    labels = [tier.label for tier in thresholds]
    if len(set(labels)) != len(labels):
        raise ConfigurationError(f"{name}: tier labels must be unique", operation="validate_tiers")

    for tier in thresholds:
        if not math.isfinite(tier.min) or (tier.max is not None and not math.isfinite(tier.max)):
            raise ConfigurationError(
                f"{name}: tier '{tier.label}' bounds must be finite", operation="validate_tiers"
            )
        if tier.max is not None and tier.max <= tier.min:
            raise ConfigurationError(
                f"{name}: tier '{tier.label}' max must be greater than min",
                operation="validate_tiers",
            )

    top = thresholds[0]
    if top.max is not None:
        raise ConfigurationError(
            f"{name}: highest tier '{top.label}' must not have an upper bound",
            operation="validate_tiers",
        )

    for higher, lower in zip(thresholds, thresholds[1:]):
        if lower.min >= higher.min:
            raise ConfigurationError(
                f"{name}: tiers must be ordered by descending min "
                f"('{lower.label}' follows '{higher.label}')",
                operation="validate_tiers",
            )
        if lower.max is not None and lower.max < higher.min:
            raise ConfigurationError(
                f"{name}: gap between '{lower.label}' and '{higher.label}'",
                operation="validate_tiers",
            )
        if lower.max is not None and lower.max > higher.min:
            raise ConfigurationError(
                f"{name}: '{lower.label}' overlaps '{higher.label}'",
                operation="validate_tiers",
            )

    if thresholds[-1].min != 0:
        raise ConfigurationError(
            f"{name}: lowest tier '{thresholds[-1].label}' must start at 0",
            operation="validate_tiers",
        )


def _validate_fit_rules(rules: Sequence[FitRule]) -> None:
    brackets: list[FitRule] = []
    for index, rule in enumerate(rules):
        if not math.isfinite(rule.points):
            raise ConfigurationError(
                f"fit_rules[{index}]: points must be finite", operation="validate_fit_rules"
            )
        if rule.category in EXACT_MATCH_CATEGORIES:
            if not rule.match:
                raise ConfigurationError(
                    f"fit_rules[{index}]: '{rule.category.value}' rules need a match value",
                    operation="validate_fit_rules",
                )
            if rule.min_value is not None or rule.max_value is not None:
                raise ConfigurationError(
                    f"fit_rules[{index}]: range bounds only apply to audience_size",
                    operation="validate_fit_rules",
                )
            continue

        if rule.match is not None:
            raise ConfigurationError(
                f"fit_rules[{index}]: audience_size rules use min_value/max_value, not match",
                operation="validate_fit_rules",
            )
        if rule.min_value is None or rule.min_value < 0:
            raise ConfigurationError(
                f"fit_rules[{index}]: audience_size min_value must be >= 0",
                operation="validate_fit_rules",
            )
        if rule.max_value is not None and rule.max_value <= rule.min_value:
            raise ConfigurationError(
                f"fit_rules[{index}]: audience_size max_value must exceed min_value",
                operation="validate_fit_rules",
            )
        brackets.append(rule)

    brackets.sort(key=lambda rule: rule.min_value)
    for lower, upper in zip(brackets, brackets[1:]):
        if lower.max_value is None:
            raise ConfigurationError(
                "audience_size: only the highest bracket may be open-ended",
                operation="validate_fit_rules",
            )
        if upper.min_value < lower.max_value:
            raise ConfigurationError(
                f"audience_size: brackets starting at {lower.min_value} and "
                f"{upper.min_value} overlap",
                operation="validate_fit_rules",
            )


def _validate_intent_events(events: Mapping[str, float]) -> None:
    for event_type, points in events.items():
        if not event_type.strip():
            raise ConfigurationError(
                "intent_events: event type must not be blank", operation="validate_intent_events"
            )
        if not math.isfinite(points) or points < 0:
            raise ConfigurationError(
                f"intent_events: '{event_type}' points must be a non-negative number",
                operation="validate_intent_events",
            )


# =================================================================
# EDITS (each returns a new, re-validated configuration)
# =================================================================


def with_fit_rule_added(
    config: ScoringConfiguration, rule: Mapping[str, Any]
) -> ScoringConfiguration:
    data = config.to_storage_dict()
    data["fit_rules"].append(dict(rule))
    return load_scoring_configuration(data)


def with_fit_rule_removed(config: ScoringConfiguration, index: int) -> ScoringConfiguration:
    data = config.to_storage_dict()
    if not 0 <= index < len(data["fit_rules"]):
        raise ConfigurationError(f"No fit rule at index {index}", operation="remove_fit_rule")
    del data["fit_rules"][index]
    return load_scoring_configuration(data)


def with_intent_event(
    config: ScoringConfiguration, event_type: str, points: float
) -> ScoringConfiguration:
    """Add an intent event or change its points."""
    data = config.to_storage_dict()
    data["intent_events"][event_type] = points
    return load_scoring_configuration(data)


def without_intent_event(config: ScoringConfiguration, event_type: str) -> ScoringConfiguration:
    data = config.to_storage_dict()
    if data["intent_events"].pop(event_type, None) is None:
        raise ConfigurationError(
            f"Unknown intent event '{event_type}'", operation="remove_intent_event"
        )
    return load_scoring_configuration(data)
