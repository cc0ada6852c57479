"""Notification dispatch adapters."""

from decision_engine.infrastructure.adapters.notifications.webhook_notification_dispatch import (  # noqa: E501
    WebhookNotificationDispatch,
)

__all__ = ["WebhookNotificationDispatch"]
