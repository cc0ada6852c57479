"""Proposal repository port."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from decision_engine.domain.models.proposal import Proposal


class ProposalRepositoryProtocol(Protocol):
    """Persistence contract for proposals."""

    async def save(self, proposal: Proposal) -> Proposal:
        """Insert or replace a proposal by id."""
        ...

    async def get(self, proposal_id: UUID) -> Proposal | None:
        """Return the proposal, or None if it does not exist."""
        ...

    async def list_by_instance(self, instance_id: UUID) -> list[Proposal]:
        """Return the instance's proposals ordered by creation time."""
        ...

    async def get_many(self, proposal_ids: list[UUID]) -> list[Proposal]:
        """Return the proposals that exist among `proposal_ids`."""
        ...
