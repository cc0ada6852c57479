"""PostgreSQL process instance repository.

Compare-and-swap writes are single UPDATE statements guarded by the
observed phase and revision, so two schedulers racing on the same
instance cannot both advance it:

    UPDATE decision_process_instances
       SET current_phase_id = ..., revision = revision + 1, ...
     WHERE id = :id
       AND current_phase_id = :expected_phase_id
       AND revision = :expected_revision
       AND status = 'published'
    RETURNING *

A zero-row update is resolved into InstanceNotFoundError or
ConcurrencyConflictError with a follow-up read.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.errors.not_found import InstanceNotFoundError
from decision_engine.domain.models.instance import (
    PhaseSchedule,
    ProcessInstance,
    ProcessStatus,
)
from decision_engine.domain.models.selection import PhaseSelectionResult
from decision_engine.infrastructure.adapters.persistence.rows import (
    from_json,
    to_decimal,
    to_json,
    to_uuid,
)

logger = get_logger(__name__)

_COLUMNS = """
    id, template_id, name, current_phase_id, status, budget, categories,
    field_values, owner_profile_id, invite_only, phases, phase_results,
    revision, created_at, updated_at, completed_at
"""


def instance_from_row(row: Mapping[str, Any]) -> ProcessInstance:
    """Build a ProcessInstance from a `decision_process_instances` row."""
    return ProcessInstance(
        id=to_uuid(row["id"]),
        template_id=row["template_id"],
        name=row["name"],
        current_phase_id=row["current_phase_id"],
        phases=tuple(
            PhaseSchedule.from_dict(entry) for entry in from_json(row["phases"], [])
        ),
        status=ProcessStatus(row["status"]),
        budget=to_decimal(row["budget"]),
        categories=tuple(from_json(row["categories"], [])),
        field_values=from_json(row["field_values"], {}),
        owner_profile_id=to_uuid(row["owner_profile_id"]),
        invite_only=bool(row["invite_only"]),
        phase_results=tuple(
            PhaseSelectionResult.from_dict(result)
            for result in from_json(row["phase_results"], [])
        ),
        revision=int(row["revision"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        completed_at=row["completed_at"],
    )


def instance_params(instance: ProcessInstance) -> dict[str, Any]:
    """Bind parameters for inserting or replacing an instance row."""
    return {
        "id": instance.id,
        "template_id": instance.template_id,
        "name": instance.name,
        "current_phase_id": instance.current_phase_id,
        "status": instance.status.value,
        "budget": instance.budget,
        "categories": to_json(list(instance.categories)),
        "field_values": to_json(dict(instance.field_values)),
        "owner_profile_id": instance.owner_profile_id,
        "invite_only": instance.invite_only,
        "phases": to_json([entry.to_dict() for entry in instance.phases]),
        "phase_results": to_json([r.to_dict() for r in instance.phase_results]),
        "revision": instance.revision,
        "created_at": instance.created_at,
        "updated_at": instance.updated_at,
        "completed_at": instance.completed_at,
    }


class PostgresInstanceRepository:
    """PostgreSQL implementation of InstanceRepositoryProtocol.

    Attributes:
        _session_factory: SQLAlchemy async session factory for DB access.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, instance: ProcessInstance) -> ProcessInstance:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    text(f"""
                        INSERT INTO decision_process_instances ({_COLUMNS})
                        VALUES (
                            :id, :template_id, :name, :current_phase_id, :status,
                            :budget, CAST(:categories AS jsonb),
                            CAST(:field_values AS jsonb), :owner_profile_id,
                            :invite_only, CAST(:phases AS jsonb),
                            CAST(:phase_results AS jsonb), :revision,
                            :created_at, :updated_at, :completed_at
                        )
                    """),
                    instance_params(instance),
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("instance_create", str(e)) from e
        return instance

    async def get(self, instance_id: UUID) -> ProcessInstance | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_process_instances
                        WHERE id = :id
                    """),
                    {"id": instance_id},
                )
                row = result.mappings().fetchone()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("instance_get", str(e)) from e
        return instance_from_row(row) if row else None

    async def list_instances(
        self, status: ProcessStatus | None = None
    ) -> list[ProcessInstance]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_process_instances
                        WHERE CAST(:status AS text) IS NULL OR status = :status
                        ORDER BY created_at, id
                    """),
                    {"status": status.value if status else None},
                )
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("instance_list", str(e)) from e
        return [instance_from_row(row) for row in rows]

    async def list_due_for_transition(self, now: datetime) -> list[ProcessInstance]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_process_instances i
                        WHERE i.status = 'published'
                          AND EXISTS (
                              SELECT 1
                              FROM jsonb_array_elements(i.phases) AS p
                              WHERE p->>'phase_id' = i.current_phase_id
                                AND p->>'planned_end_date' IS NOT NULL
                                AND (p->>'planned_end_date')::timestamptz <= :now
                          )
                        ORDER BY i.created_at, i.id
                    """),
                    {"now": now},
                )
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("list_due_for_transition", str(e)) from e
        return [instance_from_row(row) for row in rows]

    async def advance_phase_cas(
        self,
        instance_id: UUID,
        expected_phase_id: str,
        expected_revision: int,
        next_phase_id: str | None,
        result: PhaseSelectionResult | None,
        now: datetime,
    ) -> ProcessInstance:
        appended = [result.to_dict()] if result is not None else []
        try:
            async with self._session_factory() as session:
                updated = await session.execute(
                    text(f"""
                        UPDATE decision_process_instances
                        SET current_phase_id = COALESCE(
                                CAST(:next_phase_id AS text), current_phase_id
                            ),
                            status = CASE
                                WHEN CAST(:next_phase_id AS text) IS NULL
                                THEN 'completed' ELSE status END,
                            completed_at = CASE
                                WHEN CAST(:next_phase_id AS text) IS NULL
                                THEN :now ELSE completed_at END,
                            phase_results = phase_results || CAST(:appended AS jsonb),
                            revision = revision + 1,
                            updated_at = :now
                        WHERE id = :id
                          AND current_phase_id = :expected_phase_id
                          AND revision = :expected_revision
                          AND status = 'published'
                        RETURNING {_COLUMNS}
                    """),
                    {
                        "id": instance_id,
                        "next_phase_id": next_phase_id,
                        "appended": to_json(appended),
                        "expected_phase_id": expected_phase_id,
                        "expected_revision": expected_revision,
                        "now": now,
                    },
                )
                row = updated.mappings().fetchone()
                if row is None:
                    await session.rollback()
                    await self._raise_for_missed_write(
                        session,
                        instance_id,
                        expected_revision,
                        expected_phase_id,
                        "phase_advance",
                    )
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("phase_advance", str(e)) from e

        logger.debug(
            "instance_phase_advanced",
            instance_id=str(instance_id),
            from_phase=expected_phase_id,
            to_phase=next_phase_id,
        )
        return instance_from_row(row)

    async def update_cas(
        self, instance: ProcessInstance, expected_revision: int
    ) -> ProcessInstance:
        params = instance_params(instance)
        params["expected_revision"] = expected_revision
        try:
            async with self._session_factory() as session:
                updated = await session.execute(
                    text(f"""
                        UPDATE decision_process_instances
                        SET name = :name,
                            budget = :budget,
                            categories = CAST(:categories AS jsonb),
                            field_values = CAST(:field_values AS jsonb),
                            phases = CAST(:phases AS jsonb),
                            invite_only = :invite_only,
                            revision = :revision,
                            updated_at = :updated_at
                        WHERE id = :id AND revision = :expected_revision
                        RETURNING {_COLUMNS}
                    """),
                    params,
                )
                row = updated.mappings().fetchone()
                if row is None:
                    await session.rollback()
                    await self._raise_for_missed_write(
                        session, instance.id, expected_revision, None, "instance_update"
                    )
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("instance_update", str(e)) from e
        return instance_from_row(row)

    async def _raise_for_missed_write(
        self,
        session: AsyncSession,
        instance_id: UUID,
        expected_revision: int,
        expected_phase_id: str | None,
        operation: str,
    ) -> None:
        exists = await session.execute(
            text("SELECT 1 FROM decision_process_instances WHERE id = :id"),
            {"id": instance_id},
        )
        if exists.scalar() is None:
            raise InstanceNotFoundError(instance_id)
        raise ConcurrencyConflictError(
            instance_id=instance_id,
            expected_revision=expected_revision,
            expected_phase_id=expected_phase_id,
            operation=operation,
        )
