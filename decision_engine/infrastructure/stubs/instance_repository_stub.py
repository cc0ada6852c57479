"""Process instance repository stub implementation.

In-memory implementation of InstanceRepositoryProtocol for development and
testing. Compare-and-swap writes are simulated with an asyncio.Lock; in
production PostgreSQL's UPDATE ... WHERE ... RETURNING provides atomicity.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from uuid import UUID

from decision_engine.application.ports.instance_repository import (
    InstanceRepositoryProtocol,
)
from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.not_found import InstanceNotFoundError
from decision_engine.domain.models.instance import ProcessInstance, ProcessStatus
from decision_engine.domain.models.selection import PhaseSelectionResult


class InstanceRepositoryStub(InstanceRepositoryProtocol):
    """In-memory stub implementation of InstanceRepositoryProtocol.

    NOT suitable for production use.

    Attributes:
        _instances: Dictionary mapping instance.id to ProcessInstance.
    """

    def __init__(self) -> None:
        self._instances: dict[UUID, ProcessInstance] = {}
        self._cas_lock = asyncio.Lock()

    async def create(self, instance: ProcessInstance) -> ProcessInstance:
        async with self._cas_lock:
            if instance.id in self._instances:
                raise ValueError(f"Instance already exists: {instance.id}")
            self._instances[instance.id] = instance
        return instance

    async def get(self, instance_id: UUID) -> ProcessInstance | None:
        return self._instances.get(instance_id)

    async def list_instances(
        self, status: ProcessStatus | None = None
    ) -> list[ProcessInstance]:
        instances = sorted(self._instances.values(), key=lambda i: i.created_at)
        if status is None:
            return instances
        return [i for i in instances if i.status is status]

    async def list_due_for_transition(self, now: datetime) -> list[ProcessInstance]:
        instances = await self.list_instances()
        return [i for i in instances if i.is_due_for_transition(now)]

    async def advance_phase_cas(
        self,
        instance_id: UUID,
        expected_phase_id: str,
        expected_revision: int,
        next_phase_id: str | None,
        result: PhaseSelectionResult | None,
        now: datetime,
    ) -> ProcessInstance:
        async with self._cas_lock:
            stored = self._instances.get(instance_id)
            if stored is None:
                raise InstanceNotFoundError(instance_id)
            if (
                stored.current_phase_id != expected_phase_id
                or stored.revision != expected_revision
                or not stored.is_active
            ):
                raise ConcurrencyConflictError(
                    instance_id=instance_id,
                    expected_revision=expected_revision,
                    expected_phase_id=expected_phase_id,
                    operation="phase_advance",
                )
            updated = stored.with_phase_advanced(next_phase_id, result, now)
            self._instances[instance_id] = updated
            return updated

    async def update_cas(
        self, instance: ProcessInstance, expected_revision: int
    ) -> ProcessInstance:
        async with self._cas_lock:
            stored = self._instances.get(instance.id)
            if stored is None:
                raise InstanceNotFoundError(instance.id)
            if stored.revision != expected_revision:
                raise ConcurrencyConflictError(
                    instance_id=instance.id,
                    expected_revision=expected_revision,
                    operation="instance_update",
                )
            self._instances[instance.id] = instance
            return instance

    def clear(self) -> None:
        """Clear all stored instances (for testing)."""
        self._instances.clear()
