"""
Persistence layer for marketing campaign scheduling.

Every status change is a conditional UPDATE on the current status and
reports whether a row was actually changed. The scheduled -> sending
compare-and-swap is what guarantees at most one driver sends a campaign.
"""

from collections.abc import Iterable
from datetime import datetime

from app.db.helpers import execute_query, fetch_all, fetch_one
from app.errors import StorageError
from app.features.campaigns.domain.models import Campaign, CampaignStatus, ensure_transition
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_ERROR_LENGTH = 500


class CampaignRepository:
    """Storage operations backing the campaign scheduler."""

    CAMPAIGN_SELECT_COLUMNS = """
        id, tenant_id, name, status, scheduled_at, timezone,
        recipients, send_attempts, last_error, updated_at
    """

    @classmethod
    def _row_to_campaign(cls, row: dict | None) -> Campaign | None:
        if not row:
            return None

        try:
            status = CampaignStatus(row["status"])
        except ValueError as e:
            raise StorageError(
                f"Campaign {row['id']} has unknown status {row['status']!r}",
                operation="row_to_campaign",
                recoverable=False,
            ) from e

        return Campaign(
            id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            name=row.get("name") or "",
            status=status,
            scheduled_at=row.get("scheduled_at"),
            timezone=row.get("timezone") or "UTC",
            recipients=list(row.get("recipients") or []),
            send_attempts=row.get("send_attempts") or 0,
            last_error=row.get("last_error"),
            updated_at=row.get("updated_at"),
        )

    @classmethod
    async def get_campaign(cls, tenant_id: str, campaign_id: str) -> Campaign | None:
        row = await fetch_one(
            f"""
            SELECT {cls.CAMPAIGN_SELECT_COLUMNS}
            FROM marketing_campaigns
            WHERE tenant_id = %s
              AND id = %s
            """,
            (tenant_id, campaign_id),
        )
        return cls._row_to_campaign(row)

    @classmethod
    async def get_due_campaigns(cls, now: datetime) -> list[Campaign]:
        rows = await fetch_all(
            f"""
            SELECT {cls.CAMPAIGN_SELECT_COLUMNS}
            FROM marketing_campaigns
            WHERE status = 'scheduled'
              AND scheduled_at <= %s
            ORDER BY scheduled_at
            """,
            (now,),
        )
        return [cls._row_to_campaign(row) for row in rows]

    @classmethod
    async def list_scheduled(cls, tenant_id: str) -> list[Campaign]:
        rows = await fetch_all(
            f"""
            SELECT {cls.CAMPAIGN_SELECT_COLUMNS}
            FROM marketing_campaigns
            WHERE tenant_id = %s
              AND status = 'scheduled'
            ORDER BY scheduled_at
            """,
            (tenant_id,),
        )
        return [cls._row_to_campaign(row) for row in rows]

    @staticmethod
    async def compare_and_swap_campaign_status(
        campaign_id: str, expected_status: CampaignStatus, new_status: CampaignStatus
    ) -> bool:
        """
        Atomically move a campaign from ``expected_status`` to ``new_status``.

        Returns False when the campaign was not in ``expected_status`` (for
        example another driver already claimed it). Entering ``sending``
        counts as one send attempt.
        """
        ensure_transition(expected_status, new_status)
        attempt_increment = 1 if new_status is CampaignStatus.SENDING else 0
        updated = await execute_query(
            """
            UPDATE marketing_campaigns
            SET status = %s,
                send_attempts = send_attempts + %s,
                updated_at = NOW()
            WHERE id = %s
              AND status = %s
            """,
            (new_status.value, attempt_increment, campaign_id, expected_status.value),
        )
        swapped = updated == 1
        logger.debug(
            "Campaign status compare-and-swap",
            campaign_id=campaign_id,
            expected_status=expected_status.value,
            new_status=new_status.value,
            swapped=swapped,
        )
        return swapped

    @staticmethod
    async def requeue_stale_sending(stale_before: datetime) -> list[str]:
        """
        Put campaigns stuck in ``sending`` since before ``stale_before`` back
        into ``scheduled`` with their original due time.

        A campaign ends up stuck when its driver died mid-send or could not
        store the outcome. Returns the reclaimed campaign ids.
        """
        rows = await fetch_all(
            """
            UPDATE marketing_campaigns
            SET status = 'scheduled',
                last_error = 'send outcome unknown, reclaimed',
                updated_at = NOW()
            WHERE status = 'sending'
              AND updated_at < %s
            RETURNING id
            """,
            (stale_before,),
        )
        return [str(row["id"]) for row in rows]

    @staticmethod
    async def record_campaign_outcome(
        campaign_id: str, status: CampaignStatus, error_message: str | None = None
    ) -> bool:
        """Store the result of a send; only applies to campaigns still in ``sending``."""
        ensure_transition(CampaignStatus.SENDING, status)
        truncated_error = error_message[:MAX_ERROR_LENGTH] if error_message else None
        updated = await execute_query(
            """
            UPDATE marketing_campaigns
            SET status = %s,
                last_error = %s,
                sent_at = CASE WHEN %s = 'sent' THEN NOW() ELSE sent_at END,
                updated_at = NOW()
            WHERE id = %s
              AND status = 'sending'
            """,
            (status.value, truncated_error, status.value, campaign_id),
        )
        if updated != 1:
            logger.warning(
                "Campaign outcome not recorded, campaign no longer sending",
                campaign_id=campaign_id,
                status=status.value,
            )
        return updated == 1

    @staticmethod
    async def set_schedule(
        tenant_id: str,
        campaign_id: str,
        scheduled_at: datetime,
        timezone: str,
        allowed_statuses: Iterable[CampaignStatus],
    ) -> bool:
        """Arm a campaign; resets attempt bookkeeping from earlier runs."""
        allowed_statuses = list(allowed_statuses)
        for status in allowed_statuses:
            ensure_transition(status, CampaignStatus.SCHEDULED)
        updated = await execute_query(
            """
            UPDATE marketing_campaigns
            SET status = 'scheduled',
                scheduled_at = %s,
                timezone = %s,
                send_attempts = 0,
                last_error = NULL,
                updated_at = NOW()
            WHERE tenant_id = %s
              AND id = %s
              AND status = ANY(%s)
            """,
            (
                scheduled_at,
                timezone,
                tenant_id,
                campaign_id,
                [status.value for status in allowed_statuses],
            ),
        )
        return updated == 1

    @staticmethod
    async def update_scheduled_at(
        tenant_id: str, campaign_id: str, scheduled_at: datetime, timezone: str
    ) -> bool:
        updated = await execute_query(
            """
            UPDATE marketing_campaigns
            SET scheduled_at = %s,
                timezone = %s,
                updated_at = NOW()
            WHERE tenant_id = %s
              AND id = %s
              AND status = 'scheduled'
            """,
            (scheduled_at, timezone, tenant_id, campaign_id),
        )
        return updated == 1

    @staticmethod
    async def clear_schedule(tenant_id: str, campaign_id: str) -> bool:
        updated = await execute_query(
            """
            UPDATE marketing_campaigns
            SET status = 'draft',
                scheduled_at = NULL,
                updated_at = NOW()
            WHERE tenant_id = %s
              AND id = %s
              AND status = 'scheduled'
            """,
            (tenant_id, campaign_id),
        )
        return updated == 1
