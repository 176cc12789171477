from datetime import timedelta

import pytest

from app.errors import ConfigurationError, NotFoundError
from app.features.lead_scoring.domain.models import ContactAttributes, EngagementEvent
from app.features.lead_scoring.pipeline.scoring.service import LeadScoringService


def _add_contact(repository, contact_id, now, tenant_id="tenant-1", events=(), **attributes):
    contact = ContactAttributes(contact_id=contact_id, tenant_id=tenant_id, **attributes)
    return repository.add_contact(
        contact,
        [
            EngagementEvent(
                contact_id=contact_id, type=event_type, occurred_at=now - timedelta(days=days)
            )
            for event_type, days in events
        ],
    )


@pytest.mark.asyncio
async def test_score_contact_upserts_one_record(scoring_repository, scoring_config, now):
    service = LeadScoringService(repository=scoring_repository)
    contact = _add_contact(scoring_repository, "c1", now, creator_type="Life Coach")

    first = await service.score_contact(contact, [], scoring_config, as_of=now)
    second = await service.score_contact(contact, [], scoring_config, as_of=now)

    assert first == second
    assert scoring_repository.upserts == 2
    assert list(scoring_repository.scores) == [("tenant-1", "c1")]
    assert scoring_repository.scores[("tenant-1", "c1")].computed_at == now


@pytest.mark.asyncio
async def test_score_contact_by_id_loads_contact_and_events(scoring_repository, now):
    service = LeadScoringService(repository=scoring_repository)
    _add_contact(
        scoring_repository,
        "c1",
        now,
        creator_type="Business Coach",
        events=[("course.purchased", 14)],
    )

    record = await service.score_contact_by_id("tenant-1", "c1", as_of=now)

    assert record.fit_score == 25
    assert record.intent_score == pytest.approx(10)
    assert record.combined_score == pytest.approx(17.5)


@pytest.mark.asyncio
async def test_score_unknown_contact_raises_not_found(scoring_repository, now):
    service = LeadScoringService(repository=scoring_repository)
    _add_contact(scoring_repository, "c1", now, tenant_id="other-tenant")

    with pytest.raises(NotFoundError):
        await service.score_contact_by_id("tenant-1", "c1", as_of=now)
    assert scoring_repository.upserts == 0


@pytest.mark.asyncio
async def test_tenant_configuration_overrides_base(scoring_repository, scoring_config, now):
    service = LeadScoringService(repository=scoring_repository)
    data = scoring_config.to_storage_dict()
    data["combined_weights"] = {"fit_weight": 1.0, "intent_weight": 0.0}
    await service.save_configuration("tenant-1", data)
    _add_contact(
        scoring_repository, "c1", now, creator_type="Life Coach", events=[("app.downloaded", 0)]
    )

    record = await service.score_contact_by_id("tenant-1", "c1", as_of=now)

    assert record.combined_score == pytest.approx(25)
    assert (await service.get_configuration("other-tenant")) == scoring_config


@pytest.mark.asyncio
async def test_invalid_configuration_is_not_saved(scoring_repository, scoring_config):
    service = LeadScoringService(repository=scoring_repository)
    data = scoring_config.to_storage_dict()
    data["combined_weights"] = {"fit_weight": 0.9, "intent_weight": 0.9}

    with pytest.raises(ConfigurationError):
        await service.save_configuration("tenant-1", data)
    assert scoring_repository.configs == {}


@pytest.mark.asyncio
async def test_rescore_tenant_isolates_failures(scoring_repository, now):
    service = LeadScoringService(repository=scoring_repository)
    for contact_id in ("c1", "c2", "c3", "c4", "c5"):
        _add_contact(scoring_repository, contact_id, now, creator_type="Life Coach")
    _add_contact(scoring_repository, "x1", now, tenant_id="tenant-2")
    scoring_repository.failing_contacts.add("c3")

    metrics = await service.rescore_tenant("tenant-1", as_of=now, batch_size=2)

    assert metrics.contacts_processed == 5
    assert metrics.contacts_scored == 4
    assert metrics.failures == 1
    assert metrics.errors[0]["contact_id"] == "c3"
    assert ("tenant-1", "c3") not in scoring_repository.scores
    assert ("tenant-2", "x1") not in scoring_repository.scores


@pytest.mark.asyncio
async def test_get_score_and_top_leads(scoring_repository, now):
    service = LeadScoringService(repository=scoring_repository)
    _add_contact(scoring_repository, "low", now)
    _add_contact(
        scoring_repository, "high", now, creator_type="Life Coach", business_stage="Scaling"
    )
    await service.rescore_tenant("tenant-1", as_of=now)

    top = await service.get_top_leads("tenant-1", limit=1)

    assert [record.contact_id for record in top] == ["high"]
    assert (await service.get_score("tenant-1", "low")).combined_score == 0
    with pytest.raises(NotFoundError):
        await service.get_score("tenant-1", "missing")


@pytest.mark.asyncio
async def test_configuration_edits_are_stored_per_tenant(scoring_repository, scoring_config):
    service = LeadScoringService(repository=scoring_repository)

    await service.set_intent_event("tenant-1", "webinar.attended", 30)
    await service.add_fit_rule(
        "tenant-1", {"category": "creator_type", "match": "Podcaster", "points": 10}
    )
    await service.remove_fit_rule("tenant-1", 0)
    config = await service.remove_intent_event("tenant-1", "email.clicked")

    stored = scoring_repository.configs["tenant-1"]
    assert stored == config.to_storage_dict()
    assert stored["intent_events"]["webinar.attended"] == 30
    assert "email.clicked" not in stored["intent_events"]
    assert stored["fit_rules"][0]["match"] == "Business Coach"
    assert stored["fit_rules"][-1]["match"] == "Podcaster"
    assert (await service.get_configuration("tenant-2")) == scoring_config


@pytest.mark.asyncio
async def test_invalid_configuration_edits_are_not_stored(scoring_repository):
    service = LeadScoringService(repository=scoring_repository)

    with pytest.raises(ConfigurationError):
        await service.set_intent_event("tenant-1", "email.clicked", -1)
    with pytest.raises(ConfigurationError):
        await service.remove_intent_event("tenant-1", "never.seen")
    with pytest.raises(ConfigurationError):
        await service.remove_fit_rule("tenant-1", 99)
    assert scoring_repository.configs == {}
