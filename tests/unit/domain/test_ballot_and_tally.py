"""Unit tests for ballots, ballot signatures and vote tallying."""

from uuid import uuid4

from decision_engine.domain.models.ballot import compute_ballot_signature
from decision_engine.domain.models.proposal import ReviewDecision
from decision_engine.domain.services.vote_tally import (
    build_candidates,
    count_members,
    tally_votes,
)
from tests.helpers.decision_builders import make_ballot, make_proposal


class TestBallotSignature:
    """Tests for compute_ballot_signature."""

    def test_independent_of_selection_order(self) -> None:
        """Test that the same selections in another order sign identically."""
        instance_id, member = uuid4(), uuid4()
        a, b = uuid4(), uuid4()

        first = compute_ballot_signature(instance_id, "vote", member, (a, b))
        second = compute_ballot_signature(instance_id, "vote", member, (b, a))

        assert first == second
        assert len(first) == 64

    def test_changes_with_selections(self) -> None:
        """Test that different selections produce a different signature."""
        instance_id, member = uuid4(), uuid4()

        assert compute_ballot_signature(
            instance_id, "vote", member, (uuid4(),)
        ) != compute_ballot_signature(instance_id, "vote", member, (uuid4(),))

    def test_ballot_create_signs(self) -> None:
        """Test that Ballot.create fills in the signature and the upsert key."""
        instance_id, proposal_id = uuid4(), uuid4()

        ballot = make_ballot(instance_id, "vote", [proposal_id])

        assert ballot.signature == compute_ballot_signature(
            instance_id, "vote", ballot.member_profile_id, (proposal_id,)
        )
        assert ballot.key.phase_id == "vote"


class TestTally:
    """Tests for tally_votes and count_members."""

    def test_counts_per_proposal(self) -> None:
        """Test that each ballot counts once per selected proposal."""
        instance_id = uuid4()
        a, b = uuid4(), uuid4()
        ballots = [
            make_ballot(instance_id, "vote", [a, b]),
            make_ballot(instance_id, "vote", [a]),
        ]

        assert tally_votes(ballots) == {a: 2, b: 1}
        assert count_members(ballots) == 2

    def test_no_ballots(self) -> None:
        """Test that an empty phase tallies nothing."""
        assert tally_votes([]) == {}
        assert count_members([]) == 0


class TestBuildCandidates:
    """Tests for build_candidates."""

    def test_excludes_drafts_and_rejected(self) -> None:
        """Test that only eligible proposals become candidates."""
        instance_id = uuid4()
        eligible = make_proposal(instance_id, budget=100)
        draft = make_proposal(instance_id, submitted=False)
        rejected = make_proposal(instance_id, review_decision=ReviewDecision.REJECTED)

        candidates = build_candidates(
            [eligible, draft, rejected], {eligible.id: 4, rejected.id: 9}
        )

        assert [c.proposal_id for c in candidates] == [eligible.id]
        assert candidates[0].vote_count == 4
        assert candidates[0].budget == eligible.budget

    def test_restricted_to_carried_forward(self) -> None:
        """Test that a carried-forward set narrows the candidate pool."""
        instance_id = uuid4()
        kept = make_proposal(instance_id)
        dropped = make_proposal(instance_id)

        candidates = build_candidates([kept, dropped], {}, frozenset({kept.id}))

        assert [c.proposal_id for c in candidates] == [kept.id]
        assert candidates[0].vote_count == 0
