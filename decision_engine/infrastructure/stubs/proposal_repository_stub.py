"""Proposal repository stub implementation (in-memory, for testing)."""

from __future__ import annotations

from uuid import UUID

from decision_engine.application.ports.proposal_repository import (
    ProposalRepositoryProtocol,
)
from decision_engine.domain.models.proposal import Proposal


class ProposalRepositoryStub(ProposalRepositoryProtocol):
    """In-memory stub implementation of ProposalRepositoryProtocol."""

    def __init__(self) -> None:
        self._proposals: dict[UUID, Proposal] = {}

    async def save(self, proposal: Proposal) -> Proposal:
        self._proposals[proposal.id] = proposal
        return proposal

    async def get(self, proposal_id: UUID) -> Proposal | None:
        return self._proposals.get(proposal_id)

    async def list_by_instance(self, instance_id: UUID) -> list[Proposal]:
        return sorted(
            (p for p in self._proposals.values() if p.instance_id == instance_id),
            key=lambda p: (p.created_at, str(p.id)),
        )

    async def get_many(self, proposal_ids: list[UUID]) -> list[Proposal]:
        return [self._proposals[p] for p in proposal_ids if p in self._proposals]

    def clear(self) -> None:
        """Clear all stored proposals (for testing)."""
        self._proposals.clear()
