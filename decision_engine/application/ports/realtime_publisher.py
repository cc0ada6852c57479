"""Realtime publisher port.

The realtime bus accepts `(channel, mutationId, payload)` publications. The
engine only produces these tuples; delivery, retries and subscriber state
belong to the bus.
"""

from __future__ import annotations

from typing import Protocol

from decision_engine.domain.models.realtime import InvalidationMessage


class RealtimePublisherProtocol(Protocol):
    """Contract for publishing invalidation messages."""

    async def publish(self, message: InvalidationMessage) -> None:
        """Publish one message to its channel.

        Raises:
            RealtimePublishError: If the bus rejects or cannot receive it.
        """
        ...
