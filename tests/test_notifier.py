from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from rentflow.config import Settings
from rentflow.integrations.notifier import WebhookNotifier


def _mock_client(response=None, error: Exception | None = None) -> AsyncMock:
    mock_client = AsyncMock()
    if error is not None:
        mock_client.post = AsyncMock(side_effect=error)
    else:
        mock_client.post = AsyncMock(return_value=response)
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None
    return mock_client


def test_from_settings_without_url_returns_none():
    assert WebhookNotifier.from_settings(Settings(notify_webhook_url="")) is None


def test_from_settings_strips_values():
    notifier = WebhookNotifier.from_settings(
        Settings(notify_webhook_url=" https://notify.local/hook ", notify_webhook_token=" s3cret ")
    )
    assert notifier.endpoint_url == "https://notify.local/hook"
    assert notifier.token == "s3cret"


@pytest.mark.asyncio
async def test_notify_posts_event_with_bearer_token():
    notifier = WebhookNotifier(endpoint_url="https://notify.local/hook", token="s3cret")
    mock_client = _mock_client(httpx.Response(202, json={"queued": True}))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await notifier.notify("contract_activated", 55, {"contract_id": 1})

    assert result == {"success": True}
    mock_client.post.assert_awaited_once_with(
        "https://notify.local/hook",
        json={"event_type": "contract_activated", "recipient_id": 55, "data": {"contract_id": 1}},
        headers={"Authorization": "Bearer s3cret"},
    )


@pytest.mark.asyncio
async def test_notify_reports_http_error_status():
    notifier = WebhookNotifier(endpoint_url="https://notify.local/hook")
    mock_client = _mock_client(httpx.Response(500, text="boom"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await notifier.notify("contract_expired", 55, {})

    assert result == {"success": False, "error": "notify_http_500"}
    assert mock_client.post.await_args.kwargs["headers"] == {}


@pytest.mark.asyncio
async def test_notify_swallows_transport_errors():
    notifier = WebhookNotifier(endpoint_url="https://notify.local/hook")
    mock_client = _mock_client(error=httpx.ConnectError("connection refused"))

    with patch("httpx.AsyncClient", return_value=mock_client):
        result = await notifier.notify("contract_expired", 55, {})

    assert result["success"] is False
    assert "connection refused" in result["error"]
