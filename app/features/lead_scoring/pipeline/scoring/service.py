"""
Lead scoring service - computes and persists fit/intent/combined scores.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from app.config import settings
from app.errors import NotFoundError
from app.features.lead_scoring.configuration import (
    ScoringConfiguration,
    get_base_configuration,
    load_scoring_configuration,
    with_fit_rule_added,
    with_fit_rule_removed,
    with_intent_event,
    without_intent_event,
)
from app.features.lead_scoring.domain.models import (
    ContactAttributes,
    EngagementEvent,
    ScoreRecord,
)
from app.infrastructure.observability.logging import get_logger
from app.utils.time_helpers import as_utc

from .engine import build_score_record
from .repository import LeadScoringRepository

logger = get_logger(__name__)


class RescoreRunMetrics:
    """Counters for one batch rescoring run."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        self.start_time = datetime.now(UTC)
        self.contacts_processed = 0
        self.contacts_scored = 0
        self.failures = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_success(self, contact_id: str) -> None:
        self.contacts_processed += 1
        self.contacts_scored += 1

    def record_failure(self, contact_id: str, error: str) -> None:
        self.contacts_processed += 1
        self.failures += 1
        self.errors.append({"contact_id": contact_id, "error": error})
        logger.warning(
            "Contact rescore failed",
            tenant_id=self.tenant_id,
            contact_id=contact_id,
            error=error,
        )

    def finalize(self) -> None:
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "contacts_processed": self.contacts_processed,
            "contacts_scored": self.contacts_scored,
            "failures": self.failures,
            "errors_count": len(self.errors),
        }


class LeadScoringService:
    DEFAULT_TOP_LIMIT = 50

    def __init__(self, repository=LeadScoringRepository):
        self.repository = repository

    async def score_contact(
        self,
        contact: ContactAttributes,
        events: Iterable[EngagementEvent],
        config: ScoringConfiguration,
        as_of: datetime | None = None,
    ) -> ScoreRecord:
        """
        Score one contact and upsert its ScoreRecord.

        ``computed_at`` is the ``as_of`` reference, so repeating the call with
        the same inputs writes an identical record. Storage failures propagate;
        retry policy belongs to the caller.
        """
        as_of = as_utc(as_of) if as_of is not None else datetime.now(UTC)
        record = build_score_record(contact, events, config, as_of)
        await self.repository.upsert_score_record(record)

        logger.info(
            "Contact scored",
            tenant_id=record.tenant_id,
            contact_id=record.contact_id,
            fit_score=round(record.fit_score, 2),
            intent_score=round(record.intent_score, 2),
            combined_score=round(record.combined_score, 2),
            fit_tier=record.fit_tier,
            intent_tier=record.intent_tier,
        )
        return record

    async def score_contact_by_id(
        self, tenant_id: str, contact_id: str, as_of: datetime | None = None
    ) -> ScoreRecord:
        config = await self.get_configuration(tenant_id)
        return await self._score_stored_contact(tenant_id, contact_id, config, as_of)

    async def _score_stored_contact(
        self,
        tenant_id: str,
        contact_id: str,
        config: ScoringConfiguration,
        as_of: datetime | None,
    ) -> ScoreRecord:
        contact = await self.repository.get_contact(tenant_id, contact_id)
        if contact is None:
            raise NotFoundError(
                f"Contact {contact_id} not found", operation="score_contact"
            )
        events = await self.repository.get_engagement_events(tenant_id, contact_id)
        return await self.score_contact(contact, events, config, as_of)

    async def rescore_tenant(
        self,
        tenant_id: str,
        as_of: datetime | None = None,
        batch_size: int | None = None,
    ) -> RescoreRunMetrics:
        """
        Recompute every contact of a tenant.

        The configuration is resolved once up front, so an invalid one aborts
        the run before anything is written. After that a failing contact is
        recorded and skipped.
        """
        config = await self.get_configuration(tenant_id)
        as_of = as_utc(as_of) if as_of is not None else datetime.now(UTC)
        batch_size = batch_size or settings.LEAD_RESCORE_BATCH_SIZE
        metrics = RescoreRunMetrics(tenant_id)

        after_id = None
        while True:
            contact_ids = await self.repository.list_contact_ids(tenant_id, after_id, batch_size)
            if not contact_ids:
                break

            for contact_id in contact_ids:
                try:
                    await self._score_stored_contact(tenant_id, contact_id, config, as_of)
                    metrics.record_success(contact_id)
                except Exception as e:
                    metrics.record_failure(contact_id, str(e))

            after_id = contact_ids[-1]
            if len(contact_ids) < batch_size:
                break

        metrics.finalize()
        logger.info("Tenant rescore finished", **metrics.to_dict())
        return metrics

    async def get_score(self, tenant_id: str, contact_id: str) -> ScoreRecord:
        record = await self.repository.get_score_record(tenant_id, contact_id)
        if record is None:
            raise NotFoundError(
                f"No score recorded for contact {contact_id}", operation="get_score"
            )
        return record

    async def get_top_leads(
        self, tenant_id: str, limit: int = DEFAULT_TOP_LIMIT
    ) -> list[ScoreRecord]:
        return await self.repository.get_top_score_records(tenant_id, limit)

    async def get_configuration(self, tenant_id: str) -> ScoringConfiguration:
        """Tenant's stored configuration, or the base configuration if none is stored."""
        data = await self.repository.fetch_configuration(tenant_id)
        if data is None:
            return get_base_configuration()
        return load_scoring_configuration(data)

    async def save_configuration(
        self, tenant_id: str, data: Mapping[str, Any]
    ) -> ScoringConfiguration:
        """Validate first; nothing is written for an invalid configuration."""
        config = load_scoring_configuration(data)
        return await self._store_configuration(tenant_id, config)

    # Single-entry edits start from the tenant's effective configuration and
    # store the re-validated result as the tenant's own

    async def add_fit_rule(
        self, tenant_id: str, rule: Mapping[str, Any]
    ) -> ScoringConfiguration:
        config = with_fit_rule_added(await self.get_configuration(tenant_id), rule)
        return await self._store_configuration(tenant_id, config)

    async def remove_fit_rule(self, tenant_id: str, index: int) -> ScoringConfiguration:
        config = with_fit_rule_removed(await self.get_configuration(tenant_id), index)
        return await self._store_configuration(tenant_id, config)

    async def set_intent_event(
        self, tenant_id: str, event_type: str, points: float
    ) -> ScoringConfiguration:
        config = with_intent_event(await self.get_configuration(tenant_id), event_type, points)
        return await self._store_configuration(tenant_id, config)

    async def remove_intent_event(self, tenant_id: str, event_type: str) -> ScoringConfiguration:
        config = without_intent_event(await self.get_configuration(tenant_id), event_type)
        return await self._store_configuration(tenant_id, config)

    async def _store_configuration(
        self, tenant_id: str, config: ScoringConfiguration
    ) -> ScoringConfiguration:
        await self.repository.save_configuration(tenant_id, config.to_storage_dict())
        logger.info(
            "Scoring configuration stored",
            tenant_id=tenant_id,
            fit_rules=len(config.fit_rules),
            intent_events=len(config.intent_events),
        )
        return config


lead_scoring_service = LeadScoringService()
