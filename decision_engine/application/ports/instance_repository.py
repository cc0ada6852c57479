"""Process instance repository port.

The instance row is the unit of optimistic concurrency. Writes other than
creation are compare-and-swap: the phase advance is keyed on the observed
current phase and revision, admin edits on the revision.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from decision_engine.domain.models.instance import ProcessInstance, ProcessStatus
from decision_engine.domain.models.selection import PhaseSelectionResult


class InstanceRepositoryProtocol(Protocol):
    """Persistence contract for process instances.

    Methods:
        create: Insert a new instance
        get: Fetch one instance
        list_instances: List instances, optionally by status
        list_due_for_transition: Published instances whose current phase expired
        advance_phase_cas: Phase advance with compare-and-swap
        update_cas: Admin edit with compare-and-swap on revision
    """

    async def create(self, instance: ProcessInstance) -> ProcessInstance:
        """Persist a new instance.

        Raises:
            InfrastructureFailureError: If the store rejects the write.
        """
        ...

    async def get(self, instance_id: UUID) -> ProcessInstance | None:
        """Return the instance, or None if it does not exist."""
        ...

    async def list_instances(
        self, status: ProcessStatus | None = None
    ) -> list[ProcessInstance]:
        """Return instances ordered by creation time."""
        ...

    async def list_due_for_transition(self, now: datetime) -> list[ProcessInstance]:
        """Return published instances whose current phase's planned end is <= now.

        Raises:
            InfrastructureFailureError: If the query cannot run.
        """
        ...

    async def advance_phase_cas(
        self,
        instance_id: UUID,
        expected_phase_id: str,
        expected_revision: int,
        next_phase_id: str | None,
        result: PhaseSelectionResult | None,
        now: datetime,
    ) -> ProcessInstance:
        """Atomically advance the instance off `expected_phase_id`.

        Only the phase, status, results, revision and timestamps change; other
        columns are left as stored. `next_phase_id=None` completes the
        instance on its last phase.

        Returns:
            The updated instance.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            ConcurrencyConflictError: If the stored phase, revision or status
                no longer match.
        """
        ...

    async def update_cas(
        self, instance: ProcessInstance, expected_revision: int
    ) -> ProcessInstance:
        """Replace the stored instance if its revision is `expected_revision`.

        `instance` already carries the incremented revision.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            ConcurrencyConflictError: If the stored revision differs.
        """
        ...
