"""Prometheus metrics for the decision engine."""

from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)

__all__ = ["DecisionMetricsCollector"]
