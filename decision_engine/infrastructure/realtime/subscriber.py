"""Invalidation subscriber with mutation-id deduplication.

Delivery from the realtime bus is at-least-once. Subscribers register
handlers per channel; a message whose mutation id was already seen on that
channel is dropped, so each logical mutation runs a channel's handlers at
most once. Seen ids are kept in a bounded LRU owned by the subscriber
instance (one per process, created by the container).

Usage:
    subscriber = InvalidationSubscriber(capacity=1000)
    unsubscribe = subscriber.subscribe(Channels.instance(instance_id), on_change)
    await subscriber.deliver(channel, {"mutationId": "...", "reason": "..."})
"""

from __future__ import annotations

import inspect
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

from structlog import get_logger

from decision_engine.domain.models.realtime import InvalidationMessage

logger = get_logger(__name__)

InvalidationHandler = Callable[
    [InvalidationMessage], Union[Awaitable[None], None]
]

DEFAULT_DEDUP_CAPACITY = 1000


class MutationDeduplicator:
    """Bounded LRU set of (channel, mutation id) pairs."""

    def __init__(self, capacity: int = DEFAULT_DEDUP_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._seen: OrderedDict[tuple[str, str], None] = OrderedDict()

    def first_sighting(self, channel: str, mutation_id: str) -> bool:
        """Record the pair; return False if it was already recorded."""
        key = (channel, mutation_id)
        if key in self._seen:
            self._seen.move_to_end(key)
            return False
        self._seen[key] = None
        if len(self._seen) > self._capacity:
            self._seen.popitem(last=False)
        return True

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: object) -> bool:
        return key in self._seen


class InvalidationSubscriber:
    """Channel -> handlers registry with at-most-once dispatch per mutation."""

    def __init__(self, capacity: int = DEFAULT_DEDUP_CAPACITY) -> None:
        self._handlers: dict[str, list[InvalidationHandler]] = {}
        self._dedup = MutationDeduplicator(capacity)

    def subscribe(
        self, channel: str, handler: InvalidationHandler
    ) -> Callable[[], None]:
        """Register `handler` on `channel`.

        Registering the same handler twice is a no-op.

        Returns:
            A callable that removes the registration.
        """
        handlers = self._handlers.setdefault(channel, [])
        if handler in handlers:
            logger.warning("invalidation_handler_already_subscribed", channel=channel)
            return lambda: None
        handlers.append(handler)
        return lambda: self.unsubscribe(channel, handler)

    def unsubscribe(self, channel: str, handler: InvalidationHandler) -> None:
        handlers = self._handlers.get(channel)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[channel]

    @property
    def channels(self) -> list[str]:
        """Channels with at least one handler."""
        return sorted(self._handlers)

    async def deliver(self, channel: str, data: Mapping[str, Any]) -> int:
        """Dispatch one wire message received on `channel`.

        Args:
            channel: Channel the message arrived on.
            data: Wire body, `{"mutationId": ..., **payload}`.

        Returns:
            Number of handlers invoked (0 for duplicates or unknown channels).

        Raises:
            ValueError: If the body carries no mutation id.
        """
        if "mutationId" not in data:
            raise ValueError(f"message on '{channel}' has no mutationId")
        message = InvalidationMessage.from_wire(channel, data)
        log = logger.bind(channel=channel, mutation_id=message.mutation_id)

        if not self._dedup.first_sighting(channel, message.mutation_id):
            log.debug("invalidation_duplicate_dropped")
            return 0

        invoked = 0
        for handler in list(self._handlers.get(channel, ())):
            try:
                outcome = handler(message)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                log.exception("invalidation_handler_failed", error=str(e))
                continue
            invoked += 1
        return invoked
