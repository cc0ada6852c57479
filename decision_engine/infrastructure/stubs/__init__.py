"""In-memory stub implementations of application ports."""

from decision_engine.infrastructure.stubs.ballot_repository_stub import (
    BallotRepositoryStub,
)
from decision_engine.infrastructure.stubs.instance_repository_stub import (
    InstanceRepositoryStub,
)
from decision_engine.infrastructure.stubs.invite_repository_stub import (
    InviteRepositoryStub,
)
from decision_engine.infrastructure.stubs.notification_dispatch_stub import (
    NotificationDispatchStub,
)
from decision_engine.infrastructure.stubs.proposal_repository_stub import (
    ProposalRepositoryStub,
)
from decision_engine.infrastructure.stubs.realtime_publisher_stub import (
    RealtimePublisherStub,
)
from decision_engine.infrastructure.stubs.template_catalog_stub import (
    TemplateCatalogStub,
)
from decision_engine.infrastructure.stubs.time_authority_stub import (
    SystemTimeAuthority,
)

__all__ = [
    "BallotRepositoryStub",
    "InstanceRepositoryStub",
    "InviteRepositoryStub",
    "NotificationDispatchStub",
    "ProposalRepositoryStub",
    "RealtimePublisherStub",
    "SystemTimeAuthority",
    "TemplateCatalogStub",
]
