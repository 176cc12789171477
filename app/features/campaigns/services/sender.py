"""
Send delegates for campaign delivery.

The scheduler only needs ``await sender.send(campaign)`` which either
returns (delivered) or raises DelegateError. Actual email delivery, rate
limiting and provider retries happen behind the delivery endpoint.
"""

from typing import Any

import httpx

from app.config import settings
from app.errors import ConfigurationError, DelegateError
from app.features.campaigns.domain.models import Campaign
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 30  # seconds


class CampaignSender:
    """Interface for campaign send delegates."""

    async def send(self, campaign: Campaign) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class HttpCampaignSender(CampaignSender):
    """POSTs the campaign to a delivery service endpoint."""

    def __init__(self, url: str, token: str | None = None, timeout: float = REQUEST_TIMEOUT):
        self.url = url
        self.token = token
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _payload(campaign: Campaign) -> dict[str, Any]:
        return {
            "campaign_id": campaign.id,
            "tenant_id": campaign.tenant_id,
            "name": campaign.name,
            "recipients": campaign.recipients,
            "attempt": campaign.send_attempts,
        }

    async def send(self, campaign: Campaign) -> None:
        try:
            response = await self._client.post(
                self.url, json=self._payload(campaign), headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise DelegateError(f"Delivery service timed out: {e}") from e
        except httpx.RequestError as e:
            raise DelegateError(f"Delivery service unreachable: {e}") from e

        if not response.is_success:
            raise DelegateError(
                f"Delivery service rejected campaign (HTTP {response.status_code}): "
                f"{response.text[:200]}",
                recoverable=response.status_code >= 500 or response.status_code == 429,
            )

        logger.debug(
            "Campaign handed to delivery service",
            campaign_id=campaign.id,
            tenant_id=campaign.tenant_id,
            status_code=response.status_code,
        )


_campaign_sender: CampaignSender | None = None


def get_campaign_sender() -> CampaignSender:
    """Process-wide HTTP sender built from settings."""
    global _campaign_sender
    if _campaign_sender is None:
        if not settings.campaign_sender_configured():
            raise ConfigurationError(
                "CAMPAIGN_SENDER_URL is not configured", operation="get_campaign_sender"
            )
        _campaign_sender = HttpCampaignSender(
            settings.CAMPAIGN_SENDER_URL,
            token=settings.CAMPAIGN_SENDER_TOKEN,
            timeout=settings.CAMPAIGN_SEND_TIMEOUT_SECONDS,
        )
    return _campaign_sender


async def close_campaign_sender() -> None:
    """Close the process-wide sender; the next get_campaign_sender() builds a new one."""
    global _campaign_sender
    if _campaign_sender is None:
        return
    sender, _campaign_sender = _campaign_sender, None
    await sender.close()
