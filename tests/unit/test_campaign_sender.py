import json

import httpx
import pytest

from app.errors import ConfigurationError, DelegateError
from app.features.campaigns.domain.models import CampaignStatus
from app.features.campaigns.services import sender as sender_module
from app.features.campaigns.services.sender import (
    HttpCampaignSender,
    close_campaign_sender,
    get_campaign_sender,
)

DELIVERY_URL = "https://delivery.internal/campaigns/send"


@pytest.mark.asyncio
async def test_send_posts_campaign_payload(httpx_mock, make_campaign):
    httpx_mock.add_response(method="POST", url=DELIVERY_URL, status_code=202, json={"queued": True})
    campaign = make_campaign(status=CampaignStatus.SENDING, send_attempts=2)
    sender = HttpCampaignSender(DELIVERY_URL, token="secret")

    await sender.send(campaign)
    await sender.close()

    request = httpx_mock.get_requests()[0]
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body == {
        "campaign_id": "camp-1",
        "tenant_id": "tenant-1",
        "name": "Campaign camp-1",
        "recipients": ["a@example.com"],
        "attempt": 2,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, recoverable", [(503, True), (429, True), (400, False)])
async def test_error_responses_raise_delegate_error(
    httpx_mock, make_campaign, status_code, recoverable
):
    httpx_mock.add_response(method="POST", url=DELIVERY_URL, status_code=status_code, text="nope")
    sender = HttpCampaignSender(DELIVERY_URL)

    with pytest.raises(DelegateError) as exc:
        await sender.send(make_campaign())
    await sender.close()

    assert exc.value.recoverable is recoverable
    assert str(status_code) in str(exc.value)


@pytest.mark.asyncio
async def test_timeouts_raise_delegate_error(httpx_mock, make_campaign):
    httpx_mock.add_exception(httpx.ReadTimeout("too slow"))
    sender = HttpCampaignSender(DELIVERY_URL)

    with pytest.raises(DelegateError, match="timed out"):
        await sender.send(make_campaign())
    await sender.close()


def test_sender_requires_configured_url(monkeypatch):
    monkeypatch.setattr(sender_module, "_campaign_sender", None)
    monkeypatch.setattr(sender_module.settings, "CAMPAIGN_SENDER_URL", None)

    with pytest.raises(ConfigurationError):
        get_campaign_sender()


def test_sender_is_built_once_from_settings(monkeypatch):
    monkeypatch.setattr(sender_module, "_campaign_sender", None)
    monkeypatch.setattr(sender_module.settings, "CAMPAIGN_SENDER_URL", DELIVERY_URL)

    first = get_campaign_sender()

    assert first is get_campaign_sender()
    assert first.url == DELIVERY_URL


@pytest.mark.asyncio
async def test_closed_sender_is_rebuilt_on_next_use(monkeypatch):
    monkeypatch.setattr(sender_module, "_campaign_sender", None)
    monkeypatch.setattr(sender_module.settings, "CAMPAIGN_SENDER_URL", DELIVERY_URL)
    first = get_campaign_sender()

    await close_campaign_sender()
    second = get_campaign_sender()

    assert second is not first
    assert first._client.is_closed
    assert not second._client.is_closed
    await close_campaign_sender()
    assert sender_module._campaign_sender is None
