"""
Campaign scheduler - schedule/cancel/reschedule and the periodic send driver.

Delivery is at-least-once: a failed or timed-out send puts the campaign
back into ``scheduled`` with its original due time, so the next poll
picks it up again. With CAMPAIGN_MAX_SEND_ATTEMPTS set, the campaign is
parked in ``failed`` once the cap is reached instead.

Campaigns left in ``sending`` past CAMPAIGN_STALE_SENDING_SECONDS (driver
crashed, outcome write failed) are reclaimed at the start of each pass.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.errors import DelegateError, NotFoundError, StorageError, ValidationError
from app.features.campaigns.domain.models import (
    SCHEDULABLE_STATUSES,
    Campaign,
    CampaignStatus,
    ScheduledCampaignView,
)
from app.features.campaigns.repository.campaign_repository import CampaignRepository
from app.infrastructure.observability.logging import get_logger, log_job_run
from app.utils.time_helpers import as_utc, localize_to_utc, utc_now

from .sender import CampaignSender, close_campaign_sender, get_campaign_sender

logger = get_logger(__name__)


class SchedulerRunMetrics:
    """Metrics tracking for one process_due_campaigns() pass."""

    def __init__(self, now: datetime):
        self.now = now
        self.start_time = datetime.now(UTC)
        self.due = 0
        self.sent = 0
        self.requeued = 0
        self.failed = 0
        self.skipped = 0
        self.reclaimed = 0
        self.errors = 0
        self.total_duration_seconds = 0.0

    def record_sent(self, campaign: Campaign) -> None:
        self.sent += 1
        logger.info(
            "Campaign sent",
            campaign_id=campaign.id,
            tenant_id=campaign.tenant_id,
            attempt=campaign.send_attempts,
        )

    def record_send_failure(
        self, campaign: Campaign, error: str, requeued: bool, recoverable: bool = True
    ) -> None:
        if requeued:
            self.requeued += 1
        else:
            self.failed += 1
        logger.warning(
            "Campaign send failed",
            campaign_id=campaign.id,
            tenant_id=campaign.tenant_id,
            attempt=campaign.send_attempts,
            outcome="requeued" if requeued else "failed",
            error=error,
            recoverable=recoverable,
        )

    def record_skipped(self, campaign: Campaign) -> None:
        self.skipped += 1
        logger.info(
            "Campaign already claimed by another driver",
            campaign_id=campaign.id,
            tenant_id=campaign.tenant_id,
        )

    def record_error(self, campaign: Campaign, error: str) -> None:
        self.errors += 1
        logger.error(
            "Campaign processing error",
            campaign_id=campaign.id,
            tenant_id=campaign.tenant_id,
            error=error,
        )

    def finalize(self) -> None:
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "now": self.now.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "campaigns_due": self.due,
            "campaigns_sent": self.sent,
            "campaigns_requeued": self.requeued,
            "campaigns_failed": self.failed,
            "campaigns_skipped": self.skipped,
            "campaigns_reclaimed": self.reclaimed,
            "processing_errors": self.errors,
        }


class CampaignScheduler:
    def __init__(
        self,
        repository=CampaignRepository,
        sender: CampaignSender | None = None,
        send_timeout: float | None = None,
        max_send_attempts: int | None = None,
        stale_sending_after: float | None = None,
    ):
        self.repository = repository
        self._sender = sender
        self.send_timeout = send_timeout or settings.CAMPAIGN_SEND_TIMEOUT_SECONDS
        self.max_send_attempts = max_send_attempts
        self.stale_sending_after = (
            stale_sending_after or settings.CAMPAIGN_STALE_SENDING_SECONDS
        )

    @property
    def sender(self) -> CampaignSender:
        # An injected sender is owned by the caller; otherwise use the
        # process-wide one, which is rebuilt after close()
        if self._sender is not None:
            return self._sender
        return get_campaign_sender()

    async def close(self) -> None:
        if self._sender is not None:
            await self._sender.close()
        else:
            await close_campaign_sender()

    # =================================================================
    # CALLER OPERATIONS
    # =================================================================

    async def schedule(
        self,
        tenant_id: str,
        campaign_id: str,
        scheduled_at: datetime,
        timezone: str = "UTC",
        now: datetime | None = None,
    ) -> Campaign:
        """
        Schedule a campaign, or move an already scheduled one to a new time.

        Raises:
            ValidationError: time not in the future, unknown timezone, or the
                campaign is sending/sent
            NotFoundError: no such campaign for the tenant
        """
        scheduled_at = self._future_time(scheduled_at, timezone, now)

        updated = await self.repository.set_schedule(
            tenant_id, campaign_id, scheduled_at, timezone, SCHEDULABLE_STATUSES
        )
        if not updated:
            campaign = await self.get_campaign(tenant_id, campaign_id)
            raise ValidationError(
                f"Campaign in status '{campaign.status.value}' cannot be scheduled",
                operation="schedule",
            )

        logger.info(
            "Campaign scheduled",
            tenant_id=tenant_id,
            campaign_id=campaign_id,
            scheduled_at=scheduled_at.isoformat(),
            timezone=timezone,
        )
        return await self.get_campaign(tenant_id, campaign_id)

    async def reschedule(
        self,
        tenant_id: str,
        campaign_id: str,
        scheduled_at: datetime,
        timezone: str = "UTC",
        now: datetime | None = None,
    ) -> Campaign:
        """Move a scheduled campaign to a new future time."""
        scheduled_at = self._future_time(scheduled_at, timezone, now)

        updated = await self.repository.update_scheduled_at(
            tenant_id, campaign_id, scheduled_at, timezone
        )
        if not updated:
            await self._raise_not_scheduled(tenant_id, campaign_id, "reschedule")

        logger.info(
            "Campaign rescheduled",
            tenant_id=tenant_id,
            campaign_id=campaign_id,
            scheduled_at=scheduled_at.isoformat(),
            timezone=timezone,
        )
        return await self.get_campaign(tenant_id, campaign_id)

    async def cancel(self, tenant_id: str, campaign_id: str) -> None:
        """
        Return a scheduled campaign to draft.

        Raises ValidationError whenever the campaign is not currently scheduled
        (including when it is already sending).
        """
        cleared = await self.repository.clear_schedule(tenant_id, campaign_id)
        if not cleared:
            await self._raise_not_scheduled(tenant_id, campaign_id, "cancel")

        logger.info("Campaign schedule cancelled", tenant_id=tenant_id, campaign_id=campaign_id)

    async def get_campaign(self, tenant_id: str, campaign_id: str) -> Campaign:
        campaign = await self.repository.get_campaign(tenant_id, campaign_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found", operation="get_campaign")
        return campaign

    async def get_scheduled_campaigns(
        self, tenant_id: str, now: datetime | None = None
    ) -> list[ScheduledCampaignView]:
        now = as_utc(now) if now is not None else utc_now()
        campaigns = await self.repository.list_scheduled(tenant_id)
        return [
            ScheduledCampaignView(
                campaign=campaign,
                time_until_send_seconds=(
                    max(0.0, (as_utc(campaign.scheduled_at) - now).total_seconds())
                    if campaign.scheduled_at
                    else 0.0
                ),
            )
            for campaign in campaigns
        ]

    # =================================================================
    # PERIODIC DRIVER
    # =================================================================

    async def process_due_campaigns(self, now: datetime | None = None) -> int:
        """
        Send every campaign that is scheduled and due at ``now``.

        Campaigns are independent: a failure on one is logged and the rest
        are still processed. Returns the number of due campaigns attempted,
        not the number delivered.
        """
        now = as_utc(now) if now is not None else utc_now()
        metrics = SchedulerRunMetrics(now)

        reclaimed = await self.repository.requeue_stale_sending(
            now - timedelta(seconds=self.stale_sending_after)
        )
        if reclaimed:
            metrics.reclaimed = len(reclaimed)
            logger.warning(
                "Stale sending campaigns reclaimed",
                campaign_ids=reclaimed,
                count=len(reclaimed),
            )

        due = await self.repository.get_due_campaigns(now)
        metrics.due = len(due)
        logger.info("Due campaigns found", count=len(due), now=now.isoformat())
        if not due:
            return 0

        # Resolve the delegate before claiming anything so a missing sender
        # configuration fails the pass instead of burning send attempts
        sender = self.sender

        for campaign in due:
            try:
                await self._process_campaign(campaign, sender, metrics)
            except StorageError as e:
                metrics.record_error(campaign, str(e))
            except Exception as e:
                logger.exception("Unexpected campaign processing failure", campaign_id=campaign.id)
                metrics.record_error(campaign, f"{type(e).__name__}: {e}")

        metrics.finalize()
        log_job_run("campaign_scheduler", metrics.to_dict())
        return len(due)

    async def _process_campaign(
        self, campaign: Campaign, sender: CampaignSender, metrics: SchedulerRunMetrics
    ) -> None:
        claimed = await self.repository.compare_and_swap_campaign_status(
            campaign.id, CampaignStatus.SCHEDULED, CampaignStatus.SENDING
        )
        if not claimed:
            metrics.record_skipped(campaign)
            return

        campaign.status = CampaignStatus.SENDING
        campaign.send_attempts += 1

        try:
            await asyncio.wait_for(sender.send(campaign), timeout=self.send_timeout)
        except TimeoutError:
            await self._handle_send_failure(
                campaign, f"send timed out after {self.send_timeout}s", metrics
            )
            return
        except DelegateError as e:
            await self._handle_send_failure(
                campaign, str(e), metrics, recoverable=e.recoverable
            )
            return
        except Exception as e:
            await self._handle_send_failure(campaign, str(e) or type(e).__name__, metrics)
            return

        await self.repository.record_campaign_outcome(campaign.id, CampaignStatus.SENT)
        campaign.status = CampaignStatus.SENT
        metrics.record_sent(campaign)

    async def _handle_send_failure(
        self,
        campaign: Campaign,
        error: str,
        metrics: SchedulerRunMetrics,
        recoverable: bool = True,
    ) -> None:
        exhausted = (
            self.max_send_attempts is not None and campaign.send_attempts >= self.max_send_attempts
        )
        status = CampaignStatus.FAILED if exhausted else CampaignStatus.SCHEDULED

        await self.repository.record_campaign_outcome(campaign.id, status, error)
        campaign.status = status
        campaign.last_error = error
        metrics.record_send_failure(
            campaign, error, requeued=not exhausted, recoverable=recoverable
        )

    # =================================================================
    # HELPERS
    # =================================================================

    @staticmethod
    def _future_time(scheduled_at: datetime, timezone: str, now: datetime | None) -> datetime:
        scheduled_at = localize_to_utc(scheduled_at, timezone)
        now = as_utc(now) if now is not None else utc_now()
        if scheduled_at <= now:
            raise ValidationError("scheduled time must be in the future", operation="schedule")
        return scheduled_at

    async def _raise_not_scheduled(self, tenant_id: str, campaign_id: str, operation: str) -> None:
        campaign = await self.get_campaign(tenant_id, campaign_id)
        raise ValidationError(
            f"Campaign is not scheduled (status '{campaign.status.value}')",
            operation=operation,
        )


campaign_scheduler = CampaignScheduler(max_send_attempts=settings.CAMPAIGN_MAX_SEND_ATTEMPTS)
