"""
Base notification dispatcher — abstract interface for delivering contract events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class NotificationDispatcher(ABC):
    """Base class for notification channels."""

    channel: str = ""

    @abstractmethod
    async def notify(self, event_type: str, recipient_id: int, template_data: dict) -> dict:
        """
        Deliver one event to one recipient.

        Args:
            event_type: Event name (e.g., "contract_created", "contract_terminated")
            recipient_id: User id of the recipient
            template_data: Values for the message template

        Returns:
            Result dict with at least {"success": bool}
        """
