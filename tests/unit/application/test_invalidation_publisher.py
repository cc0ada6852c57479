"""Unit tests for InvalidationPublisher."""

from unittest.mock import AsyncMock

import pytest

from decision_engine.application.services.invalidation_service import (
    InvalidationPublisher,
)
from decision_engine.domain.errors.infrastructure import RealtimePublishError
from decision_engine.infrastructure.stubs import RealtimePublisherStub


@pytest.fixture
def bus() -> RealtimePublisherStub:
    return RealtimePublisherStub()


@pytest.fixture
def publisher(bus: RealtimePublisherStub) -> InvalidationPublisher:
    return InvalidationPublisher(bus)


class TestInvalidationPublisher:
    """Tests for publishing one mutation to several channels."""

    @pytest.mark.asyncio
    async def test_one_mutation_id_for_all_channels(self, publisher, bus) -> None:
        """Test that every channel of a mutation carries the same id."""
        result = await publisher.publish(["decisions:a", "decisions:b"])

        assert {m.mutation_id for m in bus.messages} == {result.mutation_id}
        assert result.fully_published

    @pytest.mark.asyncio
    async def test_duplicate_channels_published_once(self, publisher, bus) -> None:
        """Test that repeated channel names are collapsed in order."""
        await publisher.publish(["decisions:a", "decisions:b", "decisions:a"])

        assert bus.channels() == ["decisions:a", "decisions:b"]

    @pytest.mark.asyncio
    async def test_fresh_id_per_mutation(self, publisher) -> None:
        """Test that separate mutations get separate ids."""
        first = await publisher.publish(["decisions:a"])
        second = await publisher.publish(["decisions:a"])

        assert first.mutation_id != second.mutation_id

    @pytest.mark.asyncio
    async def test_reuses_given_mutation_id(self, publisher, bus) -> None:
        """Test that a retried delivery keeps the original id."""
        result = await publisher.publish(["decisions:a"], mutation_id="m-42")

        assert result.mutation_id == "m-42"
        assert bus.messages[0].mutation_id == "m-42"

    @pytest.mark.asyncio
    async def test_payload_copied_into_messages(self, publisher, bus) -> None:
        """Test that the payload is attached to every message."""
        await publisher.publish(["decisions:a"], payload={"type": "ballot_cast"})

        assert bus.messages[0].to_wire()["type"] == "ballot_cast"

    @pytest.mark.asyncio
    async def test_failure_recorded_not_raised(self) -> None:
        """Test that a failing channel is reported while others still publish."""

        async def publish(message):
            if message.channel == "decisions:broken":
                raise RealtimePublishError(message.channel, "connection refused")

        bus = AsyncMock()
        bus.publish.side_effect = publish
        publisher = InvalidationPublisher(bus)

        result = await publisher.publish(["decisions:broken", "decisions:ok"])

        assert result.failed_channels == ("decisions:broken",)
        assert [m.channel for m in result.messages] == ["decisions:ok"]
        assert not result.fully_published
