"""PostgreSQL proposal repository.

Proposal status is not a column: it is projected from `submitted_at`,
`review_decision` and the instance's current phase rules at read time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.models.proposal import (
    ProfileEntityType,
    Proposal,
    ReviewDecision,
)
from decision_engine.infrastructure.adapters.persistence.rows import (
    from_json,
    to_decimal,
    to_json,
    to_uuid,
)

_COLUMNS = """
    id, instance_id, author_profile_id, title, content, document_id,
    author_entity_type, category_ids, budget, submitted_at,
    submitted_phase_id, review_decision, created_at, updated_at
"""


def proposal_from_row(row: Mapping[str, Any]) -> Proposal:
    return Proposal(
        id=to_uuid(row["id"]),
        instance_id=to_uuid(row["instance_id"]),
        author_profile_id=to_uuid(row["author_profile_id"]),
        title=row["title"],
        content=from_json(row["content"], {}),
        document_id=row["document_id"],
        author_entity_type=ProfileEntityType(row["author_entity_type"]),
        category_ids=tuple(from_json(row["category_ids"], [])),
        budget=to_decimal(row["budget"]),
        submitted_at=row["submitted_at"],
        submitted_phase_id=row["submitted_phase_id"],
        review_decision=ReviewDecision(row["review_decision"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresProposalRepository:
    """PostgreSQL implementation of ProposalRepositoryProtocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, proposal: Proposal) -> Proposal:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    text(f"""
                        INSERT INTO decision_proposals ({_COLUMNS})
                        VALUES (
                            :id, :instance_id, :author_profile_id, :title,
                            CAST(:content AS jsonb), :document_id,
                            :author_entity_type, CAST(:category_ids AS jsonb),
                            :budget, :submitted_at, :submitted_phase_id,
                            :review_decision, :created_at, :updated_at
                        )
                        ON CONFLICT (id) DO UPDATE SET
                            title = EXCLUDED.title,
                            content = EXCLUDED.content,
                            document_id = EXCLUDED.document_id,
                            category_ids = EXCLUDED.category_ids,
                            budget = EXCLUDED.budget,
                            submitted_at = EXCLUDED.submitted_at,
                            submitted_phase_id = EXCLUDED.submitted_phase_id,
                            review_decision = EXCLUDED.review_decision,
                            updated_at = EXCLUDED.updated_at
                    """),
                    {
                        "id": proposal.id,
                        "instance_id": proposal.instance_id,
                        "author_profile_id": proposal.author_profile_id,
                        "title": proposal.title,
                        "content": to_json(dict(proposal.content)),
                        "document_id": proposal.document_id,
                        "author_entity_type": proposal.author_entity_type.value,
                        "category_ids": to_json(list(proposal.category_ids)),
                        "budget": proposal.budget,
                        "submitted_at": proposal.submitted_at,
                        "submitted_phase_id": proposal.submitted_phase_id,
                        "review_decision": proposal.review_decision.value,
                        "created_at": proposal.created_at,
                        "updated_at": proposal.updated_at,
                    },
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("proposal_save", str(e)) from e
        return proposal

    async def get(self, proposal_id: UUID) -> Proposal | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"SELECT {_COLUMNS} FROM decision_proposals WHERE id = :id"),
                    {"id": proposal_id},
                )
                row = result.mappings().fetchone()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("proposal_get", str(e)) from e
        return proposal_from_row(row) if row else None

    async def list_by_instance(self, instance_id: UUID) -> list[Proposal]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_proposals
                        WHERE instance_id = :instance_id
                        ORDER BY created_at, id
                    """),
                    {"instance_id": instance_id},
                )
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("proposal_list", str(e)) from e
        return [proposal_from_row(row) for row in rows]

    async def get_many(self, proposal_ids: list[UUID]) -> list[Proposal]:
        if not proposal_ids:
            return []
        statement = text(
            f"SELECT {_COLUMNS} FROM decision_proposals WHERE id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement, {"ids": list(proposal_ids)})
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("proposal_get_many", str(e)) from e
        return [proposal_from_row(row) for row in rows]
