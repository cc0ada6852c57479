"""Vote tallying and candidate construction for selection pipelines."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from uuid import UUID

from decision_engine.domain.models.ballot import Ballot
from decision_engine.domain.models.proposal import Proposal
from decision_engine.domain.models.selection import ProposalCandidate


def tally_votes(ballots: Iterable[Ballot]) -> dict[UUID, int]:
    """Count how many ballots select each proposal."""
    counts: Counter[UUID] = Counter()
    for ballot in ballots:
        counts.update(set(ballot.selected_proposal_ids))
    return dict(counts)


def count_members(ballots: Iterable[Ballot]) -> int:
    """Number of distinct members with a ballot."""
    return len({ballot.member_profile_id for ballot in ballots})


def build_candidates(
    proposals: Iterable[Proposal],
    tallies: dict[UUID, int],
    carried_forward: frozenset[UUID] | None = None,
) -> tuple[ProposalCandidate, ...]:
    """Eligible proposals as pipeline candidates.

    Drafts and rejected proposals are excluded. When an earlier phase
    carried a subset forward, only that subset is considered.
    """
    return tuple(
        ProposalCandidate(
            proposal_id=proposal.id,
            vote_count=tallies.get(proposal.id, 0),
            created_at=proposal.created_at,
            budget=proposal.budget,
            category_ids=proposal.category_ids,
        )
        for proposal in proposals
        if proposal.is_eligible_for_selection
        and (carried_forward is None or proposal.id in carried_forward)
    )
