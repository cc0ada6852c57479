"""Errors for actions that are not permitted in the current phase.

These errors mean "this isn't allowed right now": the input may be valid,
but the instance's current phase does not enable the capability.
"""

from __future__ import annotations

from uuid import UUID

from decision_engine.domain.exceptions import DecisionEngineError


class PhaseRuleViolationError(DecisionEngineError):
    """Base class for actions rejected by the current phase's rule set.

    Attributes:
        instance_id: Instance the action targeted.
        phase_id: The instance's current phase.
        action: The attempted capability.
    """

    error_kind = "phase_rule_violation"

    def __init__(
        self,
        instance_id: UUID,
        phase_id: str,
        action: str,
        message: str | None = None,
    ) -> None:
        self.instance_id = instance_id
        self.phase_id = phase_id
        self.action = action
        super().__init__(
            message
            or f"Phase '{phase_id}' of instance {instance_id} does not allow {action}"
        )


class PhaseDoesNotAllowSubmissionError(PhaseRuleViolationError):
    """Raised when proposals are submitted outside a submission phase.

    Also raised for instances that are not published; `status` is then set.
    """

    def __init__(
        self, instance_id: UUID, phase_id: str, status: str | None = None
    ) -> None:
        self.status = status
        message = None
        if status is not None:
            message = f"Instance {instance_id} is {status}; proposal submission is closed"
        super().__init__(instance_id, phase_id, "proposal submission", message=message)


class PhaseDoesNotAllowVotingError(PhaseRuleViolationError):
    """Raised when ballots are cast outside a voting phase."""

    def __init__(self, instance_id: UUID, phase_id: str) -> None:
        super().__init__(instance_id, phase_id, "voting")


class InstanceNotActiveError(PhaseRuleViolationError):
    """Raised when the instance is not published (draft, completed, cancelled)."""

    def __init__(self, instance_id: UUID, phase_id: str, status: str) -> None:
        self.status = status
        super().__init__(
            instance_id,
            phase_id,
            "participation",
            message=f"Instance {instance_id} is {status}; participation is closed",
        )
