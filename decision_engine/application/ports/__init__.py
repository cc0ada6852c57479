"""Ports (interfaces) implemented by infrastructure adapters and stubs."""

from decision_engine.application.ports.ballot_repository import (
    BallotRepositoryProtocol,
)
from decision_engine.application.ports.instance_repository import (
    InstanceRepositoryProtocol,
)
from decision_engine.application.ports.invite_repository import (
    InviteRepositoryProtocol,
)
from decision_engine.application.ports.notification_dispatch import (
    NotificationDispatchProtocol,
)
from decision_engine.application.ports.proposal_repository import (
    ProposalRepositoryProtocol,
)
from decision_engine.application.ports.realtime_publisher import (
    RealtimePublisherProtocol,
)
from decision_engine.application.ports.template_catalog import (
    TemplateCatalogProtocol,
)
from decision_engine.application.ports.time_authority import TimeAuthorityProtocol

__all__ = [
    "BallotRepositoryProtocol",
    "InstanceRepositoryProtocol",
    "InviteRepositoryProtocol",
    "NotificationDispatchProtocol",
    "ProposalRepositoryProtocol",
    "RealtimePublisherProtocol",
    "TemplateCatalogProtocol",
    "TimeAuthorityProtocol",
]
