"""Frozen clock for deadline-driven tests.

Phase deadlines, ballot timestamps and scheduler tick durations all read
time through TimeAuthorityProtocol. Tests freeze the clock at 2026-01-01
UTC and move it forward explicitly:

    >>> clock = FakeTimeAuthority()
    >>> clock.advance(delta=timedelta(days=7))   # past a one-week phase
    >>> clock.move_past(instance.current_schedule.planned_end_date)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from decision_engine.application.ports.time_authority import TimeAuthorityProtocol

DEFAULT_FROZEN_AT = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


class FakeTimeAuthority(TimeAuthorityProtocol):
    """Clock that only moves when a test moves it.

    The monotonic reading advances together with wall time, so tick
    durations measured across an `advance()` equal the advanced amount.
    """

    def __init__(self, frozen_at: datetime = DEFAULT_FROZEN_AT) -> None:
        if frozen_at.tzinfo is None:
            raise ValueError("FakeTimeAuthority needs a timezone-aware datetime")
        self._now = frozen_at
        self._elapsed = 0.0

    def utcnow(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by `delta`; the clock never runs backwards."""
        if delta < timedelta(0):
            raise ValueError(f"Cannot move the clock backwards by {delta}")
        self._now += delta
        self._elapsed += delta.total_seconds()

    def move_past(self, deadline: datetime, margin: timedelta = timedelta(seconds=1)) -> None:
        """Jump to just after `deadline`, e.g. a phase's planned end date."""
        target = deadline + margin
        if target > self._now:
            self.advance(target - self._now)

    def __repr__(self) -> str:
        return f"FakeTimeAuthority(now={self._now.isoformat()})"
