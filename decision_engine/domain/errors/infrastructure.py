"""Infrastructure failure error (storage, query or transport failure)."""

from __future__ import annotations

from decision_engine.domain.exceptions import DecisionEngineError


class InfrastructureFailureError(DecisionEngineError):
    """Raised when a backing store or transport cannot complete an operation.

    Fatal to the current operation. The transition scheduler only raises this
    when it cannot query candidate instances at all.

    Attributes:
        operation: The operation that failed.
    """

    error_kind = "infrastructure_failure"

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Infrastructure failure during {operation}: {reason}")


class RealtimePublishError(InfrastructureFailureError):
    """Raised by realtime publishers when a publish call fails."""

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        super().__init__(f"realtime publish to '{channel}'", reason)
