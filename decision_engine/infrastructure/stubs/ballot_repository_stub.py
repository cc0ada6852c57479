"""Ballot repository stub implementation.

Keys ballots by (instance, phase, member) so a second cast replaces the
first, mirroring the unique constraint of the production table.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import UUID

from decision_engine.application.ports.ballot_repository import (
    BallotRepositoryProtocol,
)
from decision_engine.domain.models.ballot import Ballot, BallotKey


class BallotRepositoryStub(BallotRepositoryProtocol):
    """In-memory stub implementation of BallotRepositoryProtocol."""

    def __init__(self) -> None:
        self._ballots: dict[BallotKey, Ballot] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, ballot: Ballot) -> Ballot:
        async with self._lock:
            existing = self._ballots.get(ballot.key)
            stored = replace(ballot, id=existing.id) if existing else ballot
            self._ballots[ballot.key] = stored
            return stored

    async def get(
        self, instance_id: UUID, phase_id: str, member_profile_id: UUID
    ) -> Ballot | None:
        return self._ballots.get(BallotKey(instance_id, phase_id, member_profile_id))

    async def list_for_phase(self, instance_id: UUID, phase_id: str) -> list[Ballot]:
        return [
            b
            for key, b in self._ballots.items()
            if key.instance_id == instance_id and key.phase_id == phase_id
        ]

    @property
    def count(self) -> int:
        """Number of stored ballots (for testing)."""
        return len(self._ballots)

    def clear(self) -> None:
        """Clear all stored ballots (for testing)."""
        self._ballots.clear()
