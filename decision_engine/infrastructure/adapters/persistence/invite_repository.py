"""PostgreSQL invite repository."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.models.invite import Invite, InviteRole
from decision_engine.domain.models.proposal import ProfileEntityType
from decision_engine.infrastructure.adapters.persistence.rows import to_uuid

_COLUMNS = """
    id, instance_id, email, invited_by, role, profile_id,
    profile_entity_type, created_at, accepted_on
"""


def invite_from_row(row: Mapping[str, Any]) -> Invite:
    return Invite(
        id=to_uuid(row["id"]),
        instance_id=to_uuid(row["instance_id"]),
        email=row["email"],
        invited_by=to_uuid(row["invited_by"]),
        role=InviteRole(row["role"]),
        profile_id=to_uuid(row["profile_id"]),
        profile_entity_type=ProfileEntityType(row["profile_entity_type"]),
        created_at=row["created_at"],
        accepted_on=row["accepted_on"],
    )


class PostgresInviteRepository:
    """PostgreSQL implementation of InviteRepositoryProtocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, invite: Invite) -> Invite:
        try:
            async with self._session_factory() as session:
                await session.execute(
                    text(f"""
                        INSERT INTO decision_invites ({_COLUMNS})
                        VALUES (
                            :id, :instance_id, :email, :invited_by, :role,
                            :profile_id, :profile_entity_type, :created_at,
                            :accepted_on
                        )
                        ON CONFLICT (id) DO UPDATE SET
                            role = EXCLUDED.role,
                            profile_id = EXCLUDED.profile_id,
                            profile_entity_type = EXCLUDED.profile_entity_type,
                            accepted_on = EXCLUDED.accepted_on
                    """),
                    {
                        "id": invite.id,
                        "instance_id": invite.instance_id,
                        "email": invite.email,
                        "invited_by": invite.invited_by,
                        "role": invite.role.value,
                        "profile_id": invite.profile_id,
                        "profile_entity_type": invite.profile_entity_type.value,
                        "created_at": invite.created_at,
                        "accepted_on": invite.accepted_on,
                    },
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("invite_save", str(e)) from e
        return invite

    async def get(self, invite_id: UUID) -> Invite | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"SELECT {_COLUMNS} FROM decision_invites WHERE id = :id"),
                    {"id": invite_id},
                )
                row = result.mappings().fetchone()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("invite_get", str(e)) from e
        return invite_from_row(row) if row else None

    async def list_by_instance(self, instance_id: UUID) -> list[Invite]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_invites
                        WHERE instance_id = :instance_id
                        ORDER BY created_at, id
                    """),
                    {"instance_id": instance_id},
                )
                rows = result.mappings().fetchall()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("invite_list", str(e)) from e
        return [invite_from_row(row) for row in rows]

    async def find_accepted(
        self, instance_id: UUID, profile_id: UUID
    ) -> Invite | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    text(f"""
                        SELECT {_COLUMNS}
                        FROM decision_invites
                        WHERE instance_id = :instance_id
                          AND profile_id = :profile_id
                          AND accepted_on IS NOT NULL
                        ORDER BY accepted_on
                        LIMIT 1
                    """),
                    {"instance_id": instance_id, "profile_id": profile_id},
                )
                row = result.mappings().fetchone()
        except SQLAlchemyError as e:
            raise InfrastructureFailureError("invite_find_accepted", str(e)) from e
        return invite_from_row(row) if row else None
