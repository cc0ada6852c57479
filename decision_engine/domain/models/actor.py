"""Authenticated actor passed in by the calling layer.

Authentication happens outside the engine; services only read the actor's
profile id and whether it holds the admin role for the instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from decision_engine.domain.models.proposal import ProfileEntityType


@dataclass(frozen=True, eq=True)
class ActorContext:
    """The profile performing an operation."""

    profile_id: UUID
    is_admin: bool = False
    entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL
