"""Realtime invalidation channel naming and message model.

Channel names are deterministic from entity identity. Each logical
mutation carries one fresh mutation id, shared by every channel it is
published to, which subscribers use as a deduplication key.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

CHANNEL_PREFIX = "decisions"


class Channels:
    """Channel name builders."""

    @staticmethod
    def global_decisions() -> str:
        return f"{CHANNEL_PREFIX}:global"

    @staticmethod
    def instance(instance_id: UUID) -> str:
        return f"{CHANNEL_PREFIX}:instance:{instance_id}"

    @staticmethod
    def instance_results(instance_id: UUID) -> str:
        return f"{CHANNEL_PREFIX}:instance:{instance_id}:results"

    @staticmethod
    def instance_proposals(instance_id: UUID) -> str:
        return f"{CHANNEL_PREFIX}:instance:{instance_id}:proposals"

    @staticmethod
    def proposal(proposal_id: UUID) -> str:
        return f"{CHANNEL_PREFIX}:proposal:{proposal_id}"


@dataclass(frozen=True, eq=True)
class InvalidationMessage:
    """One `{channel, mutationId, payload}` publication."""

    channel: str
    mutation_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Message body delivered to subscribers."""
        return {"mutationId": self.mutation_id, **dict(self.payload)}

    @classmethod
    def from_wire(cls, channel: str, data: Mapping[str, Any]) -> InvalidationMessage:
        payload = {k: v for k, v in data.items() if k != "mutationId"}
        return cls(channel=channel, mutation_id=str(data["mutationId"]), payload=payload)
