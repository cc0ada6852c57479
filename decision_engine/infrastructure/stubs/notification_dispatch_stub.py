"""Notification dispatch stub that records emitted payloads."""

from __future__ import annotations

from decision_engine.application.ports.notification_dispatch import (
    NotificationDispatchProtocol,
)
from decision_engine.domain.events.invite import InviteNotificationEvent


class NotificationDispatchStub(NotificationDispatchProtocol):
    """Collects notification events (for development and testing)."""

    def __init__(self) -> None:
        self.events: list[InviteNotificationEvent] = []

    async def dispatch(self, event: InviteNotificationEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()
