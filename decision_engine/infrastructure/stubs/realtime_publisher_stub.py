"""Realtime publisher stub that records published messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

from decision_engine.application.ports.realtime_publisher import (
    RealtimePublisherProtocol,
)
from decision_engine.domain.errors.infrastructure import RealtimePublishError
from decision_engine.domain.models.realtime import InvalidationMessage

if TYPE_CHECKING:
    from decision_engine.infrastructure.realtime.subscriber import (
        InvalidationSubscriber,
    )


class RealtimePublisherStub(RealtimePublisherProtocol):
    """Records messages instead of sending them.

    When a subscriber is attached, every recorded message is also delivered
    to it in-process, which stands in for the bus during local runs.

    Attributes:
        messages: Every published message, in publish order.
        fail: When True, publish raises RealtimePublishError.
    """

    def __init__(self, subscriber: InvalidationSubscriber | None = None) -> None:
        self.messages: list[InvalidationMessage] = []
        self.fail = False
        self._subscriber = subscriber

    async def publish(self, message: InvalidationMessage) -> None:
        if self.fail:
            raise RealtimePublishError(message.channel, "stub configured to fail")
        self.messages.append(message)
        if self._subscriber is not None:
            await self._subscriber.deliver(message.channel, message.to_wire())

    def channels(self) -> list[str]:
        return [m.channel for m in self.messages]

    def clear(self) -> None:
        self.messages.clear()
