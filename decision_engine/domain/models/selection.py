"""Selection pipeline value types.

A selection pipeline runs when a phase completes. It consumes
`ProposalCandidate` values (a proposal plus its vote tally) and a
`SelectionContext`, and produces one `ProposalSelection` per candidate. The
collected selections of one completed phase are persisted on the instance as
a `PhaseSelectionResult`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class SelectionOutcome(Enum):
    """Outcome assigned to a proposal when a phase completes."""

    CARRIED_FORWARD = "carried_forward"
    FUNDED = "funded"
    REJECTED = "rejected"


@dataclass(frozen=True, eq=True)
class ProposalCandidate:
    """A proposal as seen by pipeline steps.

    Attributes:
        proposal_id: Proposal identifier (final tie-breaker).
        vote_count: Number of ballots selecting the proposal in the phase.
        budget: Requested budget, None when the proposal asks for none.
        created_at: Proposal creation time (first tie-breaker).
        category_ids: Categories the proposal is tagged with.
    """

    proposal_id: UUID
    vote_count: int
    created_at: datetime
    budget: Decimal | None = None
    category_ids: tuple[str, ...] = ()

    @property
    def budget_or_zero(self) -> Decimal:
        return self.budget if self.budget is not None else Decimal("0")


@dataclass(frozen=True, eq=True)
class SelectionContext:
    """Inputs shared by every step of one pipeline run.

    Attributes:
        phase_id: The completing phase.
        aggregate_budget: Total budget available to the phase, if any.
        variables: Effective phase settings, addressable by `{variable: name}`.
    """

    phase_id: str
    aggregate_budget: Decimal | None = None
    variables: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, eq=True)
class ProposalSelection:
    """Outcome of one proposal in a completed phase."""

    proposal_id: UUID
    outcome: SelectionOutcome
    vote_count: int = 0
    rank: int | None = None
    allocated: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": str(self.proposal_id),
            "outcome": self.outcome.value,
            "vote_count": self.vote_count,
            "rank": self.rank,
            "allocated": str(self.allocated),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProposalSelection:
        return cls(
            proposal_id=UUID(str(data["proposal_id"])),
            outcome=SelectionOutcome(data["outcome"]),
            vote_count=int(data.get("vote_count", 0)),
            rank=data.get("rank"),
            allocated=Decimal(str(data.get("allocated", "0"))),
        )


@dataclass(frozen=True, eq=True)
class PhaseSelectionResult:
    """Persisted outcome of a completed phase.

    Recorded by the transition scheduler when a phase with a selection
    pipeline completes, and for every completed voting phase so that closed
    results can be reported even without a pipeline.

    Attributes:
        phase_id: The phase that completed.
        executed_at: When the transition ran.
        selections: Ranked selections first, then rejected candidates.
        members_voted: Distinct members with a ballot in the phase.
        voting_phase: Whether the phase had voting enabled.
        pipeline_applied: Whether a selection pipeline produced the selections.
    """

    phase_id: str
    executed_at: datetime
    selections: tuple[ProposalSelection, ...] = ()
    members_voted: int = 0
    voting_phase: bool = False
    pipeline_applied: bool = False

    @property
    def funded(self) -> tuple[ProposalSelection, ...]:
        return tuple(
            s for s in self.selections if s.outcome is SelectionOutcome.FUNDED
        )

    @property
    def carried_forward_ids(self) -> frozenset[UUID]:
        return frozenset(
            s.proposal_id
            for s in self.selections
            if s.outcome is SelectionOutcome.CARRIED_FORWARD
        )

    @property
    def total_allocated(self) -> Decimal:
        return sum((s.allocated for s in self.funded), Decimal("0"))

    def ranked(self) -> tuple[ProposalSelection, ...]:
        """Return the selections that received a rank, in rank order."""
        return tuple(
            sorted(
                (s for s in self.selections if s.rank is not None),
                key=lambda s: s.rank or 0,
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase_id": self.phase_id,
            "executed_at": self.executed_at.isoformat(),
            "selections": [s.to_dict() for s in self.selections],
            "members_voted": self.members_voted,
            "voting_phase": self.voting_phase,
            "pipeline_applied": self.pipeline_applied,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PhaseSelectionResult:
        return cls(
            phase_id=data["phase_id"],
            executed_at=datetime.fromisoformat(data["executed_at"]),
            selections=tuple(
                ProposalSelection.from_dict(s) for s in data.get("selections", ())
            ),
            members_voted=int(data.get("members_voted", 0)),
            voting_phase=bool(data.get("voting_phase", False)),
            pipeline_applied=bool(data.get("pipeline_applied", False)),
        )
