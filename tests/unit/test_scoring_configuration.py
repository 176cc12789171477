import json

import pytest

from app.errors import ConfigurationError
from app.features.lead_scoring.configuration import (
    DEFAULT_SCORING_CONFIGURATION,
    TierThreshold,
    default_scoring_configuration,
    get_base_configuration,
    load_scoring_configuration,
    load_scoring_configuration_file,
    validate_tier_thresholds,
    with_fit_rule_added,
    with_fit_rule_removed,
    with_intent_event,
    without_intent_event,
)


def _config_data(**overrides):
    data = json.loads(json.dumps(DEFAULT_SCORING_CONFIGURATION))
    data.update(overrides)
    return data


def test_default_configuration_is_valid():
    config = default_scoring_configuration()

    assert config.decay_half_life_days == 14
    assert [tier.label for tier in config.fit_tiers] == ["A", "B", "C"]
    assert config.intent_events["course.purchased"] == 20


def test_intent_events_cannot_be_changed_in_place():
    config = get_base_configuration()

    with pytest.raises(TypeError):
        config.intent_events["course.purchased"] = -500.0

    assert get_base_configuration().intent_events["course.purchased"] == 20
    assert config.to_storage_dict()["intent_events"]["course.purchased"] == 20


def test_storage_dict_round_trips_through_loader():
    config = default_scoring_configuration()
    assert load_scoring_configuration(config.to_storage_dict()) == config


def test_weights_must_sum_to_one():
    data = _config_data(combined_weights={"fit_weight": 0.5, "intent_weight": 0.6})
    with pytest.raises(ConfigurationError, match="must equal 1"):
        load_scoring_configuration(data)


def test_weights_within_tolerance_are_accepted():
    data = _config_data(combined_weights={"fit_weight": 0.3333333, "intent_weight": 0.6666667})
    config = load_scoring_configuration(data)
    assert config.combined_weights.fit_weight == pytest.approx(0.3333333)


@pytest.mark.parametrize("half_life", [0, -3])
def test_half_life_must_be_positive(half_life):
    with pytest.raises(ConfigurationError):
        load_scoring_configuration(_config_data(decay_half_life_days=half_life))


def test_unknown_keys_are_rejected():
    with pytest.raises(ConfigurationError):
        load_scoring_configuration(_config_data(surprise=True))


def test_negative_intent_points_are_rejected():
    events = dict(DEFAULT_SCORING_CONFIGURATION["intent_events"], **{"email.bounced": -5})
    with pytest.raises(ConfigurationError, match="non-negative"):
        load_scoring_configuration(_config_data(intent_events=events))


def test_exact_match_rule_needs_match_value():
    rules = [{"category": "creator_type", "points": 10}]
    with pytest.raises(ConfigurationError, match="match value"):
        load_scoring_configuration(_config_data(fit_rules=rules))


def test_overlapping_audience_brackets_are_rejected():
    rules = [
        {"category": "audience_size", "min_value": 0, "max_value": 5000, "points": 5},
        {"category": "audience_size", "min_value": 4000, "max_value": 9000, "points": 10},
    ]
    with pytest.raises(ConfigurationError, match="overlap"):
        load_scoring_configuration(_config_data(fit_rules=rules))


def test_only_highest_bracket_may_be_open_ended():
    rules = [
        {"category": "audience_size", "min_value": 0, "points": 5},
        {"category": "audience_size", "min_value": 5000, "points": 10},
    ]
    with pytest.raises(ConfigurationError, match="open-ended"):
        load_scoring_configuration(_config_data(fit_rules=rules))


def test_tiers_may_omit_max_for_lower_tiers():
    tiers = [
        TierThreshold(label="High", min=50),
        TierThreshold(label="Low", min=0),
    ]
    validate_tier_thresholds(tiers)


@pytest.mark.parametrize(
    "tiers, message",
    [
        ([], "at least one"),
        ([{"label": "A", "min": 10}], "start at 0"),
        ([{"label": "A", "min": 50, "max": 100}, {"label": "B", "min": 0}], "upper bound"),
        ([{"label": "A", "min": 50}, {"label": "B", "min": 0, "max": 40}], "gap"),
        ([{"label": "A", "min": 50}, {"label": "B", "min": 0, "max": 60}], "overlaps"),
        ([{"label": "A", "min": 0}, {"label": "B", "min": 50}], "descending"),
        ([{"label": "A", "min": 50}, {"label": "A", "min": 0}], "unique"),
    ],
)
def test_invalid_tiers_are_rejected(tiers, message):
    with pytest.raises(ConfigurationError, match=message):
        load_scoring_configuration(_config_data(fit_tiers=tiers))


def test_adding_a_creator_type_revalidates():
    config = default_scoring_configuration()
    updated = with_fit_rule_added(
        config, {"category": "creator_type", "match": "Podcaster", "points": 15}
    )

    assert len(updated.fit_rules) == len(config.fit_rules) + 1
    assert updated.fit_rules[-1].match == "Podcaster"
    with pytest.raises(ConfigurationError):
        with_fit_rule_added(config, {"category": "creator_type", "points": 15})


def test_removing_rules_and_events():
    config = default_scoring_configuration()

    assert len(with_fit_rule_removed(config, 0).fit_rules) == len(config.fit_rules) - 1
    assert "email.clicked" not in without_intent_event(config, "email.clicked").intent_events
    with pytest.raises(ConfigurationError):
        with_fit_rule_removed(config, 999)
    with pytest.raises(ConfigurationError):
        without_intent_event(config, "never.defined")


def test_changing_event_points_keeps_original_untouched():
    config = default_scoring_configuration()
    updated = with_intent_event(config, "webinar.attended", 12)

    assert updated.intent_events["webinar.attended"] == 12
    assert "webinar.attended" not in config.intent_events


def test_configuration_file_loading(tmp_path):
    path = tmp_path / "scoring.json"
    path.write_text(json.dumps(_config_data(decay_half_life_days=7)), encoding="utf-8")

    assert load_scoring_configuration_file(path).decay_half_life_days == 7


def test_configuration_file_must_be_json_object(tmp_path):
    path = tmp_path / "scoring.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_scoring_configuration_file(path)
    with pytest.raises(ConfigurationError):
        load_scoring_configuration_file(tmp_path / "missing.json")
