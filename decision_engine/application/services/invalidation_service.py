"""Invalidation publisher service.

Every mutation that changes viewer-visible state publishes a message to
one or more deterministic channels. One logical mutation gets one fresh
mutation id, shared by all of its channels; delivery attempts never mint a
new id. Publishing happens after the mutation is persisted, so a publish
failure is logged and does not undo or fail the mutation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from structlog import get_logger

from decision_engine.domain.errors.infrastructure import RealtimePublishError
from decision_engine.domain.models.realtime import InvalidationMessage

if TYPE_CHECKING:
    from decision_engine.application.ports.realtime_publisher import (
        RealtimePublisherProtocol,
    )

logger = get_logger(__name__)


def new_mutation_id() -> str:
    """Generate a mutation identifier for one logical state change."""
    return str(uuid4())


@dataclass(frozen=True)
class InvalidationResult:
    """Outcome of publishing one logical mutation.

    Attributes:
        mutation_id: The id shared by every message.
        messages: Messages handed to the bus successfully.
        failed_channels: Channels whose publish call failed.
    """

    mutation_id: str
    messages: tuple[InvalidationMessage, ...]
    failed_channels: tuple[str, ...] = ()

    @property
    def fully_published(self) -> bool:
        return not self.failed_channels


class InvalidationPublisher:
    """Publishes `{channel, mutationId, payload}` tuples for a mutation."""

    def __init__(self, publisher: RealtimePublisherProtocol) -> None:
        """Initialize the invalidation publisher.

        Args:
            publisher: Realtime bus adapter.
        """
        self._publisher = publisher

    async def publish(
        self,
        channels: Sequence[str],
        payload: Mapping[str, Any] | None = None,
        mutation_id: str | None = None,
    ) -> InvalidationResult:
        """Publish one logical mutation to every channel.

        Args:
            channels: Channel names; duplicates are published once.
            payload: Optional payload merged into each message body.
            mutation_id: Reuse an id already assigned to this mutation;
                a fresh one is generated when omitted.

        Returns:
            InvalidationResult describing what reached the bus.
        """
        mutation_id = mutation_id or new_mutation_id()
        log = logger.bind(mutation_id=mutation_id)

        published: list[InvalidationMessage] = []
        failed: list[str] = []
        for channel in dict.fromkeys(channels):
            message = InvalidationMessage(
                channel=channel, mutation_id=mutation_id, payload=dict(payload or {})
            )
            try:
                await self._publisher.publish(message)
            except RealtimePublishError as e:
                log.warning(
                    "invalidation_publish_failed", channel=channel, error=str(e)
                )
                failed.append(channel)
                continue
            published.append(message)

        log.debug("invalidation_published", channels=[m.channel for m in published])
        return InvalidationResult(
            mutation_id=mutation_id,
            messages=tuple(published),
            failed_channels=tuple(failed),
        )
