"""Ballot repository port.

Ballots are upserted: at most one row exists per (instance, phase, member).
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from decision_engine.domain.models.ballot import Ballot


class BallotRepositoryProtocol(Protocol):
    """Persistence contract for ballots."""

    async def upsert(self, ballot: Ballot) -> Ballot:
        """Insert the ballot or replace the member's ballot for the phase.

        Returns:
            The stored ballot. When replacing, the original ballot id is kept.
        """
        ...

    async def get(
        self, instance_id: UUID, phase_id: str, member_profile_id: UUID
    ) -> Ballot | None:
        """Return the member's ballot for the phase, if any."""
        ...

    async def list_for_phase(self, instance_id: UUID, phase_id: str) -> list[Ballot]:
        """Return every ballot cast in the instance phase."""
        ...
