from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from rentflow.config import Settings
from rentflow.integrations.base import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class WebhookNotifier(NotificationDispatcher):
    """Posts contract events to the notification service (push/email fan-out happens there)."""

    endpoint_url: str
    token: str = ""
    timeout: float = 15.0

    channel = "webhook"

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookNotifier | None":
        url = (settings.notify_webhook_url or "").strip()
        if not url:
            return None
        return cls(endpoint_url=url, token=(settings.notify_webhook_token or "").strip())

    async def notify(self, event_type: str, recipient_id: int, template_data: dict) -> dict:
        payload = {
            "event_type": event_type,
            "recipient_id": recipient_id,
            "data": template_data,
        }
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.endpoint_url, json=payload, headers=headers)

            if 200 <= resp.status_code < 300:
                return {"success": True}

            logger.warning("Notification %s for %s rejected: HTTP %s", event_type, recipient_id, resp.status_code)
            return {"success": False, "error": f"notify_http_{resp.status_code}"}
        except httpx.HTTPError as e:
            logger.warning("Notification %s for %s failed: %s", event_type, recipient_id, e)
            return {"success": False, "error": str(e)}
