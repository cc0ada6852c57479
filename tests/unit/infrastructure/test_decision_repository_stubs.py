"""Unit tests for the in-memory repository and publisher stubs."""

import asyncio
from uuid import uuid4

import pytest

from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.infrastructure import RealtimePublishError
from decision_engine.domain.errors.not_found import InstanceNotFoundError
from decision_engine.domain.models.instance import ProcessStatus
from decision_engine.domain.models.realtime import InvalidationMessage
from decision_engine.infrastructure.realtime.subscriber import InvalidationSubscriber
from decision_engine.infrastructure.stubs import (
    BallotRepositoryStub,
    InstanceRepositoryStub,
    RealtimePublisherStub,
)
from tests.helpers.decision_builders import T0, make_ballot, make_instance


class TestInstanceRepositoryStub:
    """Tests for InstanceRepositoryStub compare-and-swap semantics."""

    @pytest.mark.asyncio
    async def test_create_twice_rejected(self, propose_vote_template) -> None:
        """Test that ids are unique."""
        repo = InstanceRepositoryStub()
        instance = make_instance(propose_vote_template)
        await repo.create(instance)

        with pytest.raises(ValueError):
            await repo.create(instance)

    @pytest.mark.asyncio
    async def test_concurrent_advances_single_winner(self, propose_vote_template) -> None:
        """Test that only one of two identical CAS writes succeeds."""
        repo = InstanceRepositoryStub()
        instance = await repo.create(make_instance(propose_vote_template))

        outcomes = await asyncio.gather(
            repo.advance_phase_cas(instance.id, "propose", 0, "vote", None, T0),
            repo.advance_phase_cas(instance.id, "propose", 0, "vote", None, T0),
            return_exceptions=True,
        )

        conflicts = [o for o in outcomes if isinstance(o, ConcurrencyConflictError)]
        assert len(conflicts) == 1
        assert (await repo.get(instance.id)).revision == 1

    @pytest.mark.asyncio
    async def test_completed_instance_not_advanced(self, propose_vote_template) -> None:
        """Test that terminal instances reject phase advances."""
        repo = InstanceRepositoryStub()
        instance = await repo.create(
            make_instance(propose_vote_template, status=ProcessStatus.COMPLETED)
        )

        with pytest.raises(ConcurrencyConflictError):
            await repo.advance_phase_cas(instance.id, "propose", 0, "vote", None, T0)

    @pytest.mark.asyncio
    async def test_advance_missing(self) -> None:
        """Test that advancing an unknown instance is not found."""
        with pytest.raises(InstanceNotFoundError):
            await InstanceRepositoryStub().advance_phase_cas(
                uuid4(), "propose", 0, "vote", None, T0
            )

    @pytest.mark.asyncio
    async def test_list_due(self, propose_vote_template) -> None:
        """Test that only expired published instances are due."""
        repo = InstanceRepositoryStub()
        due = await repo.create(
            make_instance(propose_vote_template, end_dates={"propose": T0})
        )
        await repo.create(make_instance(propose_vote_template))

        assert [i.id for i in await repo.list_due_for_transition(T0)] == [due.id]


class TestBallotRepositoryStub:
    """Tests for ballot upserts."""

    @pytest.mark.asyncio
    async def test_upsert_keeps_identity(self) -> None:
        """Test that a second ballot for the same member replaces the first."""
        repo = BallotRepositoryStub()
        instance_id, member = uuid4(), uuid4()
        first = await repo.upsert(make_ballot(instance_id, "vote", [uuid4()], member))
        replacement = make_ballot(instance_id, "vote", [uuid4()], member)

        stored = await repo.upsert(replacement)

        assert stored.id == first.id
        assert stored.selected_proposal_ids == replacement.selected_proposal_ids
        assert repo.count == 1

    @pytest.mark.asyncio
    async def test_phases_kept_apart(self) -> None:
        """Test that ballots in different phases do not overwrite each other."""
        repo = BallotRepositoryStub()
        instance_id, member = uuid4(), uuid4()
        await repo.upsert(make_ballot(instance_id, "vote", [uuid4()], member))
        await repo.upsert(make_ballot(instance_id, "final", [uuid4()], member))

        assert repo.count == 2


class TestRealtimePublisherStub:
    """Tests for the in-process publisher."""

    @pytest.mark.asyncio
    async def test_delivers_to_subscriber(self) -> None:
        """Test that an attached subscriber receives published messages."""
        received = []
        subscriber = InvalidationSubscriber()
        subscriber.subscribe("decisions:global", received.append)
        stub = RealtimePublisherStub(subscriber)

        await stub.publish(InvalidationMessage("decisions:global", "m-1", {}))

        assert [m.mutation_id for m in received] == ["m-1"]

    @pytest.mark.asyncio
    async def test_configured_failure(self) -> None:
        """Test that the fail flag raises RealtimePublishError."""
        stub = RealtimePublisherStub()
        stub.fail = True

        with pytest.raises(RealtimePublishError):
            await stub.publish(InvalidationMessage("decisions:global", "m-1", {}))

        assert stub.messages == []
