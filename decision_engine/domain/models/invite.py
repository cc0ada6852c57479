"""Invite domain model.

An invite grants a profile access to participate in an instance. It is
pending while `accepted_on` is None.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from decision_engine.domain.models.proposal import ProfileEntityType


class InviteRole(Enum):
    """Role granted by an invite."""

    PARTICIPANT = "participant"
    ADMIN = "admin"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class Invite:
    """Participation invite for one instance."""

    id: UUID
    instance_id: UUID
    email: str
    invited_by: UUID
    role: InviteRole = InviteRole.PARTICIPANT
    profile_id: UUID | None = None
    profile_entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL
    created_at: datetime = field(default_factory=_utc_now)
    accepted_on: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.accepted_on is None

    def with_accepted(self, profile_id: UUID, now: datetime) -> Invite:
        return replace(self, profile_id=profile_id, accepted_on=now)

    def with_role(self, role: InviteRole) -> Invite:
        return replace(self, role=role)
