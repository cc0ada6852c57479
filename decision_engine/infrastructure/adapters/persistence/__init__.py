"""PostgreSQL repository adapters (SQLAlchemy async + asyncpg)."""

from decision_engine.infrastructure.adapters.persistence.ballot_repository import (
    PostgresBallotRepository,
)
from decision_engine.infrastructure.adapters.persistence.instance_repository import (
    PostgresInstanceRepository,
)
from decision_engine.infrastructure.adapters.persistence.invite_repository import (
    PostgresInviteRepository,
)
from decision_engine.infrastructure.adapters.persistence.proposal_repository import (
    PostgresProposalRepository,
)

__all__ = [
    "PostgresBallotRepository",
    "PostgresInstanceRepository",
    "PostgresInviteRepository",
    "PostgresProposalRepository",
]
