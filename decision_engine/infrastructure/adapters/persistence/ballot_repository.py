"""PostgreSQL ballot repository.

The unique key (instance_id, phase_id, member_profile_id) makes a re-cast
an in-place replacement; the original ballot id survives the upsert.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.models.ballot import Ballot
from decision_engine.infrastructure.adapters.persistence.rows import (
    from_json,
    to_json,
    to_uuid,
)

_COLUMNS = """
    id, instance_id, phase_id, member_profile_id, selected_proposal_ids,
    signature, submitted_at
"""


def ballot_from_row(row: Mapping[str, Any]) -> Ballot:
    return Ballot(
        id=to_uuid(row["id"]),
        instance_id=to_uuid(row["instance_id"]),
        phase_id=row["phase_id"],
        member_profile_id=to_uuid(row["member_profile_id"]),
        selected_proposal_ids=tuple(
            UUID(str(p)) for p in from_json(row["selected_proposal_ids"], [])
        ),
        signature=row["signature"],
        submitted_at=row["submitted_at"],
    )


class PostgresBallotRepository:
    """PostgreSQL implementation of BallotRepositoryProtocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def upsert(self, ballot: Ballot) -> Ballot:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        INSERT INTO decision_ballots ({_COLUMNS})
                        VALUES (
                            :id, :instance_id, :phase_id, :member_profile_id,
                            CAST(:selected_proposal_ids AS jsonb), :signature,
                            :submitted_at
                        )
                        ON CONFLICT (instance_id, phase_id, member_profile_id)
                        DO UPDATE SET
                            selected_proposal_ids = EXCLUDED.selected_proposal_ids,
                            signature = EXCLUDED.signature,
                            submitted_at = EXCLUDED.submitted_at
                        RETURNING {_COLUMNS}
                    """),
                    {
                        "id": ballot.id,
                        "instance_id": ballot.instance_id,
                        "phase_id": ballot.phase_id,
                        "member_profile_id": ballot.member_profile_id,
                        "selected_proposal_ids": to_json(
                            [str(p) for p in ballot.selected_proposal_ids]
                        ),
                        "signature": ballot.signature,
                        "submitted_at": ballot.submitted_at,
                    },
                )
                row = result.mappings().fetchone()
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("ballot_upsert", str(e)) from e
        return ballot_from_row(row)

    async def get(
        self, instance_id: UUID, phase_id: str, member_profile_id: UUID
    ) -> Ballot | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_ballots
                        WHERE instance_id = :instance_id
                          AND phase_id = :phase_id
                          AND member_profile_id = :member_profile_id
                    """),
                    {
                        "instance_id": instance_id,
                        "phase_id": phase_id,
                        "member_profile_id": member_profile_id,
                    },
                )
                row = result.mappings().fetchone()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("ballot_get", str(e)) from e
        return ballot_from_row(row) if row else None

    async def list_for_phase(self, instance_id: UUID, phase_id: str) -> list[Ballot]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_ballots
                        WHERE instance_id = :instance_id AND phase_id = :phase_id
                        ORDER BY submitted_at, id
                    """),
                    {"instance_id": instance_id, "phase_id": phase_id},
                )
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("ballot_list", str(e)) from e
        return [ballot_from_row(row) for row in rows]
