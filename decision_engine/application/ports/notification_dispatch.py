"""Notification dispatch port (email)."""

from __future__ import annotations

from typing import Protocol

from decision_engine.domain.events.invite import InviteNotificationEvent


class NotificationDispatchProtocol(Protocol):
    """Hands notification payloads to the email dispatch collaborator."""

    async def dispatch(self, event: InviteNotificationEvent) -> None:
        """Queue the notification for delivery."""
        ...
