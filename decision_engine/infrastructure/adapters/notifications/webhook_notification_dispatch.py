"""Webhook notification dispatch.

Posts invite notification payloads to the email dispatch service's webhook.
Retries a bounded number of times, then raises; the email service owns
delivery from there.
"""

from __future__ import annotations

import httpx
from structlog import get_logger

from decision_engine.application.ports.notification_dispatch import (
    NotificationDispatchProtocol,
)
from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.events.invite import InviteNotificationEvent

logger = get_logger(__name__)


class WebhookNotificationDispatch(NotificationDispatchProtocol):
    """Hands notification payloads to an HTTP webhook."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        webhook_url: str,
        max_retries: int = 3,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._client = client
        self._webhook_url = webhook_url
        self._max_retries = max_retries
        self._timeout = timeout_seconds

    async def dispatch(self, event: InviteNotificationEvent) -> None:
        """Post the payload, retrying on transport errors and non-2xx responses.

        Raises:
            InfrastructureFailureError: If every attempt fails.
        """
        log = logger.bind(event_id=str(event.event_id), event_type=event.event_type)
        last_error = "no attempt made"
        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._client.post(
                    self._webhook_url,
                    json=event.to_dict(),
                    headers={"X-Event-Type": event.event_type},
                    timeout=self._timeout,
                )
            except httpx.HTTPError as e:
                last_error = str(e)
                log.warning("notification_dispatch_error", attempt=attempt, error=last_error)
                continue

            if response.status_code < 300:
                log.info(
                    "notification_dispatched",
                    status_code=response.status_code,
                    attempt=attempt,
                )
                return

            last_error = f"HTTP {response.status_code}"
            log.warning(
                "notification_dispatch_failed",
                status_code=response.status_code,
                attempt=attempt,
            )

        raise InfrastructureFailureError("notification_dispatch", last_error)
