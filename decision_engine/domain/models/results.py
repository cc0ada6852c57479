"""Results aggregation read models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class ResultsMode(Enum):
    """Which source a results projection was computed from.

    OPEN: voting is in progress; figures come from live ballots.
    CLOSED: voting has closed; figures come from the persisted outcome of
        the last completed voting phase.
    """

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, eq=True)
class ResultsStats:
    """Summary statistics for an instance's voting results.

    In OPEN mode `proposals_funded` and `total_allocated` are zero since no
    funding decision exists yet; `vote_tallies` carries the live counts.
    """

    instance_id: UUID
    mode: ResultsMode
    phase_id: str
    members_voted: int
    proposals_funded: int = 0
    total_allocated: Decimal = Decimal("0")
    vote_tallies: Mapping[UUID, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": str(self.instance_id),
            "mode": self.mode.value,
            "phase_id": self.phase_id,
            "members_voted": self.members_voted,
            "proposals_funded": self.proposals_funded,
            "total_allocated": str(self.total_allocated),
            "vote_tallies": {str(k): v for k, v in self.vote_tallies.items()},
        }


@dataclass(frozen=True, eq=True)
class VotingStatus:
    """A member's view of voting in the current phase."""

    instance_id: UUID
    phase_id: str
    member_profile_id: UUID
    voting_open: bool
    max_votes_per_member: int
    selected_proposal_ids: tuple[UUID, ...] = ()
    submitted_at: Any = None

    @property
    def has_voted(self) -> bool:
        return bool(self.selected_proposal_ids)

    @property
    def is_read_only(self) -> bool:
        return not self.voting_open
