"""HTTP realtime publisher (Centrifugo-compatible publish API).

Sends `POST {api_url}/api/publish` with body
`{"channel": ..., "data": {"mutationId": ..., ...payload}}`. A single
attempt is made per message; the bus owns delivery retries to subscribers.
"""

from __future__ import annotations

import httpx
from structlog import get_logger

from decision_engine.application.ports.realtime_publisher import (
    RealtimePublisherProtocol,
)
from decision_engine.domain.errors.infrastructure import RealtimePublishError
from decision_engine.domain.models.realtime import InvalidationMessage

logger = get_logger(__name__)


class HttpRealtimePublisher(RealtimePublisherProtocol):
    """Publishes invalidation messages through the bus HTTP API.

    The httpx client is owned by the caller (the engine container) so one
    connection pool is shared for the process lifetime.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._publish_url = f"{api_url.rstrip('/')}/api/publish"
        self._api_key = api_key
        self._timeout = timeout_seconds

    async def publish(self, message: InvalidationMessage) -> None:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["X-API-Key"] = self._api_key

        try:
            response = await self._client.post(
                self._publish_url,
                json={"channel": message.channel, "data": message.to_wire()},
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise RealtimePublishError(message.channel, str(e)) from e

        if response.status_code >= 300:
            raise RealtimePublishError(
                message.channel, f"bus responded with HTTP {response.status_code}"
            )
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("error"):
            raise RealtimePublishError(message.channel, str(body["error"]))

        logger.debug(
            "realtime_message_published",
            channel=message.channel,
            mutation_id=message.mutation_id,
        )
