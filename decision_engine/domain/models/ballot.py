"""Ballot domain model.

At most one ballot exists per (instance, phase, member). Casting again in
the same phase replaces the previous ballot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

import blake3


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def compute_ballot_signature(
    instance_id: UUID,
    phase_id: str,
    member_profile_id: UUID,
    selected_proposal_ids: tuple[UUID, ...],
) -> str:
    """BLAKE3 digest of the ballot's identity and its sorted selections.

    Independent of selection order, so re-submitting the same set yields the
    same signature.
    """
    selections = ",".join(sorted(str(p) for p in selected_proposal_ids))
    material = f"{instance_id}|{phase_id}|{member_profile_id}|{selections}"
    return blake3.blake3(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True, eq=True)
class BallotKey:
    """Upsert key of a ballot."""

    instance_id: UUID
    phase_id: str
    member_profile_id: UUID


@dataclass(frozen=True, eq=True)
class Ballot:
    """A member's proposal selections for one instance phase."""

    id: UUID
    instance_id: UUID
    phase_id: str
    member_profile_id: UUID
    selected_proposal_ids: tuple[UUID, ...]
    signature: str = ""
    submitted_at: datetime = field(default_factory=_utc_now)

    @property
    def key(self) -> BallotKey:
        return BallotKey(self.instance_id, self.phase_id, self.member_profile_id)

    @classmethod
    def create(
        cls,
        ballot_id: UUID,
        instance_id: UUID,
        phase_id: str,
        member_profile_id: UUID,
        selected_proposal_ids: tuple[UUID, ...],
        submitted_at: datetime,
    ) -> Ballot:
        return cls(
            id=ballot_id,
            instance_id=instance_id,
            phase_id=phase_id,
            member_profile_id=member_profile_id,
            selected_proposal_ids=selected_proposal_ids,
            signature=compute_ballot_signature(
                instance_id, phase_id, member_profile_id, selected_proposal_ids
            ),
            submitted_at=submitted_at,
        )
