"""Invite repository stub implementation (in-memory, for testing)."""

from __future__ import annotations

from uuid import UUID

from decision_engine.application.ports.invite_repository import (
    InviteRepositoryProtocol,
)
from decision_engine.domain.models.invite import Invite


class InviteRepositoryStub(InviteRepositoryProtocol):
    """In-memory stub implementation of InviteRepositoryProtocol."""

    def __init__(self) -> None:
        self._invites: dict[UUID, Invite] = {}

    async def save(self, invite: Invite) -> Invite:
        self._invites[invite.id] = invite
        return invite

    async def get(self, invite_id: UUID) -> Invite | None:
        return self._invites.get(invite_id)

    async def list_by_instance(self, instance_id: UUID) -> list[Invite]:
        return sorted(
            (i for i in self._invites.values() if i.instance_id == instance_id),
            key=lambda i: i.created_at,
        )

    async def find_accepted(
        self, instance_id: UUID, profile_id: UUID
    ) -> Invite | None:
        for invite in self._invites.values():
            if (
                invite.instance_id == instance_id
                and invite.profile_id == profile_id
                and not invite.is_pending
            ):
                return invite
        return None

    def clear(self) -> None:
        """Clear all stored invites (for testing)."""
        self._invites.clear()
