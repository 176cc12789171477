"""
Repository helpers for lead scoring reads and score persistence.

Tables touched:
    contacts              (id, tenant_id, creator_type, audience_size,
                           business_stage, platform_commitment)
    engagement_events     (tenant_id, contact_id, event_type, occurred_at)
    lead_scores           (tenant_id, contact_id, ..., UNIQUE (tenant_id, contact_id))
    lead_scoring_configs  (tenant_id PRIMARY KEY, config JSONB, updated_at)
"""

from typing import Any

from psycopg.types.json import Jsonb

from app.db.helpers import execute_query, fetch_all, fetch_one
from app.features.lead_scoring.domain.models import (
    ContactAttributes,
    EngagementEvent,
    ScoreRecord,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class LeadScoringRepository:
    """Thin wrappers for fetching scoring inputs and persisting score records."""

    SCORE_SELECT_COLUMNS = """
        tenant_id, contact_id, fit_score, intent_score, combined_score,
        fit_tier, intent_tier, computed_at
    """

    @staticmethod
    def _row_to_contact(row: dict | None) -> ContactAttributes | None:
        if not row:
            return None

        audience_size = row.get("audience_size")
        return ContactAttributes(
            contact_id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            creator_type=row.get("creator_type"),
            audience_size=int(audience_size) if audience_size is not None else None,
            business_stage=row.get("business_stage"),
            platform_commitment=row.get("platform_commitment"),
        )

    @staticmethod
    def _row_to_event(row: dict) -> EngagementEvent:
        return EngagementEvent(
            contact_id=str(row["contact_id"]),
            type=row["event_type"],
            occurred_at=row["occurred_at"],
        )

    @staticmethod
    def _row_to_score(row: dict | None) -> ScoreRecord | None:
        if not row:
            return None

        return ScoreRecord(
            tenant_id=str(row["tenant_id"]),
            contact_id=str(row["contact_id"]),
            fit_score=float(row["fit_score"]),
            intent_score=float(row["intent_score"]),
            combined_score=float(row["combined_score"]),
            fit_tier=row["fit_tier"],
            intent_tier=row["intent_tier"],
            computed_at=row["computed_at"],
        )

    @classmethod
    async def get_contact(cls, tenant_id: str, contact_id: str) -> ContactAttributes | None:
        row = await fetch_one(
            """
            SELECT id, tenant_id, creator_type, audience_size,
                   business_stage, platform_commitment
            FROM contacts
            WHERE tenant_id = %s
              AND id = %s
            """,
            (tenant_id, contact_id),
        )
        return cls._row_to_contact(row)

    @classmethod
    async def get_engagement_events(cls, tenant_id: str, contact_id: str) -> list[EngagementEvent]:
        rows = await fetch_all(
            """
            SELECT contact_id, event_type, occurred_at
            FROM engagement_events
            WHERE tenant_id = %s
              AND contact_id = %s
            ORDER BY occurred_at
            """,
            (tenant_id, contact_id),
        )
        return [cls._row_to_event(row) for row in rows]

    @staticmethod
    async def list_contact_ids(tenant_id: str, after_id: str | None, limit: int) -> list[str]:
        """Keyset-paginated contact ids for batch rescoring."""
        if after_id is None:
            rows = await fetch_all(
                "SELECT id FROM contacts WHERE tenant_id = %s ORDER BY id LIMIT %s",
                (tenant_id, limit),
            )
        else:
            rows = await fetch_all(
                """
                SELECT id FROM contacts
                WHERE tenant_id = %s
                  AND id > %s
                ORDER BY id
                LIMIT %s
                """,
                (tenant_id, after_id, limit),
            )
        return [str(row["id"]) for row in rows]

    @staticmethod
    async def list_tenant_ids() -> list[str]:
        rows = await fetch_all("SELECT DISTINCT tenant_id FROM contacts ORDER BY tenant_id")
        return [str(row["tenant_id"]) for row in rows]

    @staticmethod
    async def upsert_score_record(record: ScoreRecord) -> None:
        """One row per (tenant, contact); recomputation overwrites it."""
        await execute_query(
            """
            INSERT INTO lead_scores (
                tenant_id, contact_id, fit_score, intent_score, combined_score,
                fit_tier, intent_tier, computed_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (tenant_id, contact_id) DO UPDATE
            SET fit_score = EXCLUDED.fit_score,
                intent_score = EXCLUDED.intent_score,
                combined_score = EXCLUDED.combined_score,
                fit_tier = EXCLUDED.fit_tier,
                intent_tier = EXCLUDED.intent_tier,
                computed_at = EXCLUDED.computed_at
            """,
            (
                record.tenant_id,
                record.contact_id,
                record.fit_score,
                record.intent_score,
                record.combined_score,
                record.fit_tier,
                record.intent_tier,
                record.computed_at,
            ),
        )
        logger.debug(
            "Lead score upserted",
            tenant_id=record.tenant_id,
            contact_id=record.contact_id,
            combined_score=record.combined_score,
        )

    @classmethod
    async def get_score_record(cls, tenant_id: str, contact_id: str) -> ScoreRecord | None:
        row = await fetch_one(
            f"""
            SELECT {cls.SCORE_SELECT_COLUMNS}
            FROM lead_scores
            WHERE tenant_id = %s
              AND contact_id = %s
            """,
            (tenant_id, contact_id),
        )
        return cls._row_to_score(row)

    @classmethod
    async def get_top_score_records(cls, tenant_id: str, limit: int) -> list[ScoreRecord]:
        rows = await fetch_all(
            f"""
            SELECT {cls.SCORE_SELECT_COLUMNS}
            FROM lead_scores
            WHERE tenant_id = %s
            ORDER BY combined_score DESC, contact_id
            LIMIT %s
            """,
            (tenant_id, limit),
        )
        return [cls._row_to_score(row) for row in rows]

    @staticmethod
    async def fetch_configuration(tenant_id: str) -> dict[str, Any] | None:
        row = await fetch_one(
            "SELECT config FROM lead_scoring_configs WHERE tenant_id = %s",
            (tenant_id,),
        )
        return row["config"] if row else None

    @staticmethod
    async def save_configuration(tenant_id: str, config: dict[str, Any]) -> None:
        await execute_query(
            """
            INSERT INTO lead_scoring_configs (tenant_id, config, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (tenant_id) DO UPDATE
            SET config = EXCLUDED.config,
                updated_at = NOW()
            """,
            (tenant_id, Jsonb(config)),
        )
        logger.info("Scoring configuration saved", tenant_id=tenant_id)
