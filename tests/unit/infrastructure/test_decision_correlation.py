"""Unit tests for correlation id context management and the structlog processor."""

import asyncio

import pytest

from decision_engine.infrastructure.observability.correlation import (
    correlation_id_processor,
    generate_correlation_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)


class TestCorrelationIdContext:
    """Tests for correlation id context management."""

    def test_generate_unique(self) -> None:
        """Test that each call returns a unique id."""
        ids = {generate_correlation_id() for _ in range(50)}
        assert len(ids) == 50

    def test_set_and_reset(self) -> None:
        """Test that reset restores the previous value."""
        token = set_correlation_id("tick-1")
        assert get_correlation_id() == "tick-1"

        reset_correlation_id(token)
        assert get_correlation_id() == ""

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self) -> None:
        """Test that concurrent tasks keep their own ids."""
        results: dict[str, str] = {}

        async def run(name: str) -> None:
            set_correlation_id(name)
            await asyncio.sleep(0)
            results[name] = get_correlation_id()

        await asyncio.gather(run("a"), run("b"))

        assert results == {"a": "a", "b": "b"}


class TestCorrelationIdProcessor:
    """Tests for correlation_id_processor."""

    def test_adds_bound_id(self) -> None:
        """Test that the bound id is added to the event dict."""
        token = set_correlation_id("req-9")
        try:
            event = correlation_id_processor(None, "info", {"event": "x"})
        finally:
            reset_correlation_id(token)

        assert event["correlation_id"] == "req-9"

    def test_omitted_without_id(self) -> None:
        """Test that nothing is added outside a request."""
        event = correlation_id_processor(None, "info", {"event": "x"})

        assert "correlation_id" not in event
