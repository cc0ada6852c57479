"""Realtime bus adapters."""

from decision_engine.infrastructure.adapters.realtime.http_realtime_publisher import (
    HttpRealtimePublisher,
)

__all__ = ["HttpRealtimePublisher"]
