"""Concurrency conflict error for compare-and-swap writes on instances.

The instance row is the unit of optimistic concurrency. Both the transition
scheduler and admin edits write with a compare-and-swap keyed on the observed
current phase and revision; a mismatch raises this error.
"""

from __future__ import annotations

from uuid import UUID

from decision_engine.domain.exceptions import DecisionEngineError


class ConcurrencyConflictError(DecisionEngineError):
    """Raised when a CAS write fails because the instance changed concurrently.

    This is a recoverable error - the caller should re-read the instance and
    decide whether to retry or abort.

    Attributes:
        instance_id: Instance that was being modified.
        expected_revision: Revision the writer observed.
        expected_phase_id: Phase the writer observed, if the write was phase-keyed.
        operation: Description of the failed operation.
    """

    error_kind = "concurrency_conflict"

    def __init__(
        self,
        instance_id: UUID,
        expected_revision: int,
        expected_phase_id: str | None = None,
        operation: str = "instance_update",
    ) -> None:
        self.instance_id = instance_id
        self.expected_revision = expected_revision
        self.expected_phase_id = expected_phase_id
        self.operation = operation
        phase_part = (
            f", phase '{expected_phase_id}'" if expected_phase_id is not None else ""
        )
        super().__init__(
            f"Concurrent modification detected for instance {instance_id} "
            f"during {operation}. Expected revision {expected_revision}{phase_part}."
        )
