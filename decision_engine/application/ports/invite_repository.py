"""Invite repository port."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from decision_engine.domain.models.invite import Invite


class InviteRepositoryProtocol(Protocol):
    """Persistence contract for invites."""

    async def save(self, invite: Invite) -> Invite:
        """Insert or replace an invite by id."""
        ...

    async def get(self, invite_id: UUID) -> Invite | None:
        """Return the invite, or None if it does not exist."""
        ...

    async def list_by_instance(self, instance_id: UUID) -> list[Invite]:
        """Return the instance's invites ordered by creation time."""
        ...

    async def find_accepted(
        self, instance_id: UUID, profile_id: UUID
    ) -> Invite | None:
        """Return the profile's accepted invite for the instance, if any."""
        ...
