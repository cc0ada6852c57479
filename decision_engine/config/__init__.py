"""Configuration loaded from environment variables."""

from decision_engine.config.engine_config import (
    DecisionEngineConfig,
    NotificationConfig,
    RealtimeConfig,
)

__all__ = ["DecisionEngineConfig", "NotificationConfig", "RealtimeConfig"]
