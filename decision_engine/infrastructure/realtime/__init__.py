"""Consumer-side realtime invalidation handling."""

from decision_engine.infrastructure.realtime.subscriber import (
    InvalidationHandler,
    InvalidationSubscriber,
    MutationDeduplicator,
)

__all__ = ["InvalidationHandler", "InvalidationSubscriber", "MutationDeduplicator"]
