"""Process-scoped dependency container for the decision engine.

One `EngineContainer` exists per process (API server or scheduler worker).
It owns every stateful collaborator: repositories, the HTTP client used by
the realtime and notification adapters, the database engine, the metrics
registry and the invalidation subscriber. `aclose()` releases them.

Adapter selection:
    DECISION_USE_POSTGRES=true -> PostgreSQL repositories (DATABASE_URL)
    otherwise                  -> in-memory stubs
    REALTIME_API_URL set       -> HTTP realtime publisher
    otherwise                  -> in-memory publisher delivering to `subscriber`
    NOTIFICATION_WEBHOOK_URL   -> webhook dispatch, else in-memory stub

Usage:
    container = EngineContainer.from_environment()
    summary = await container.phase_transition_service.process_due_transitions()
    await container.aclose()
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from prometheus_client import CollectorRegistry
from structlog import get_logger

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
from decision_engine.application.services.instance_service import InstanceService
from decision_engine.application.services.invalidation_service import (
    InvalidationPublisher,
)
from decision_engine.application.services.invite_service import InviteService
from decision_engine.application.services.phase_transition_service import (
    PhaseTransitionService,
)
from decision_engine.application.services.proposal_service import ProposalService
from decision_engine.application.services.results_service import ResultsService
from decision_engine.application.services.voting_service import VotingService
from decision_engine.bootstrap.database import DatabaseBootstrap
from decision_engine.config.engine_config import (
    DecisionEngineConfig,
    NotificationConfig,
    RealtimeConfig,
)
from decision_engine.infrastructure.adapters.notifications.webhook_notification_dispatch import (
    WebhookNotificationDispatch,
)
from decision_engine.infrastructure.adapters.realtime.http_realtime_publisher import (
    HttpRealtimePublisher,
)
from decision_engine.infrastructure.adapters.templates.yaml_template_catalog import (
    YamlTemplateCatalog,
)
from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)
from decision_engine.infrastructure.realtime.subscriber import InvalidationSubscriber
from decision_engine.infrastructure.stubs import (
    BallotRepositoryStub,
    InstanceRepositoryStub,
    InviteRepositoryStub,
    NotificationDispatchStub,
    ProposalRepositoryStub,
    RealtimePublisherStub,
    SystemTimeAuthority,
)

logger = get_logger(__name__)


@dataclass
class Repositories:
    """The four persistence ports, always chosen together."""

    instances: InstanceRepositoryProtocol
    proposals: ProposalRepositoryProtocol
    ballots: BallotRepositoryProtocol
    invites: InviteRepositoryProtocol

    @classmethod
    def in_memory(cls) -> Repositories:
        return cls(
            instances=InstanceRepositoryStub(),
            proposals=ProposalRepositoryStub(),
            ballots=BallotRepositoryStub(),
            invites=InviteRepositoryStub(),
        )

    @classmethod
    def postgres(cls, database: DatabaseBootstrap) -> Repositories:
        from decision_engine.infrastructure.adapters.persistence import (
            PostgresBallotRepository,
            PostgresInstanceRepository,
            PostgresInviteRepository,
            PostgresProposalRepository,
        )

        factory = database.session_factory
        return cls(
            instances=PostgresInstanceRepository(factory),
            proposals=PostgresProposalRepository(factory),
            ballots=PostgresBallotRepository(factory),
            invites=PostgresInviteRepository(factory),
        )


@dataclass
class EngineContainer:
    """Services and adapters for one process."""

    config: DecisionEngineConfig
    repositories: Repositories
    template_catalog: TemplateCatalogProtocol
    time_authority: TimeAuthorityProtocol
    realtime_publisher: RealtimePublisherProtocol
    notification_dispatch: NotificationDispatchProtocol
    metrics: DecisionMetricsCollector
    subscriber: InvalidationSubscriber
    http_client: httpx.AsyncClient | None = None
    database: DatabaseBootstrap | None = None
    invalidation: InvalidationPublisher = field(init=False)
    instance_service: InstanceService = field(init=False)
    proposal_service: ProposalService = field(init=False)
    voting_service: VotingService = field(init=False)
    results_service: ResultsService = field(init=False)
    invite_service: InviteService = field(init=False)
    phase_transition_service: PhaseTransitionService = field(init=False)

    def __post_init__(self) -> None:
        repos = self.repositories
        self.invalidation = InvalidationPublisher(self.realtime_publisher)
        self.instance_service = InstanceService(
            instance_repo=repos.instances,
            template_catalog=self.template_catalog,
            time_authority=self.time_authority,
            invalidation=self.invalidation,
            invite_repo=repos.invites,
        )
        self.proposal_service = ProposalService(
            instance_repo=repos.instances,
            proposal_repo=repos.proposals,
            template_catalog=self.template_catalog,
            time_authority=self.time_authority,
            invalidation=self.invalidation,
            invite_repo=repos.invites,
        )
        self.voting_service = VotingService(
            instance_repo=repos.instances,
            proposal_repo=repos.proposals,
            ballot_repo=repos.ballots,
            template_catalog=self.template_catalog,
            time_authority=self.time_authority,
            invalidation=self.invalidation,
            invite_repo=repos.invites,
            default_max_votes_per_member=self.config.default_max_votes_per_member,
        )
        self.results_service = ResultsService(
            instance_repo=repos.instances,
            ballot_repo=repos.ballots,
            template_catalog=self.template_catalog,
        )
        self.invite_service = InviteService(
            instance_repo=repos.instances,
            invite_repo=repos.invites,
            notification_dispatch=self.notification_dispatch,
            time_authority=self.time_authority,
        )
        self.phase_transition_service = PhaseTransitionService(
            instance_repo=repos.instances,
            proposal_repo=repos.proposals,
            ballot_repo=repos.ballots,
            template_catalog=self.template_catalog,
            time_authority=self.time_authority,
            invalidation=self.invalidation,
            metrics=self.metrics,
            concurrency=self.config.transition_concurrency,
        )

    @classmethod
    def in_memory(
        cls,
        config: DecisionEngineConfig | None = None,
        template_catalog: TemplateCatalogProtocol | None = None,
        time_authority: TimeAuthorityProtocol | None = None,
    ) -> EngineContainer:
        """Container with stub adapters only; used by tests and local runs."""
        config = config or DecisionEngineConfig()
        subscriber = InvalidationSubscriber(capacity=config.dedup_capacity)
        return cls(
            config=config,
            repositories=Repositories.in_memory(),
            template_catalog=template_catalog
            or YamlTemplateCatalog.from_directory(config.template_dir),
            time_authority=time_authority or SystemTimeAuthority(),
            realtime_publisher=RealtimePublisherStub(subscriber),
            notification_dispatch=NotificationDispatchStub(),
            metrics=DecisionMetricsCollector(
                registry=CollectorRegistry(), environment=config.environment
            ),
            subscriber=subscriber,
        )

    @classmethod
    def from_environment(cls) -> EngineContainer:
        """Build the container selected by environment variables."""
        return cls.from_config(
            DecisionEngineConfig.from_environment(),
            RealtimeConfig.from_environment(),
            NotificationConfig.from_environment(),
        )

    @classmethod
    def from_config(
        cls,
        config: DecisionEngineConfig,
        realtime: RealtimeConfig,
        notifications: NotificationConfig,
    ) -> EngineContainer:
        database: DatabaseBootstrap | None = None
        if config.use_postgres:
            database = DatabaseBootstrap.from_environment()
            repositories = Repositories.postgres(database)
        else:
            repositories = Repositories.in_memory()

        http_client: httpx.AsyncClient | None = None
        if realtime.enabled or notifications.enabled:
            http_client = httpx.AsyncClient()

        subscriber = InvalidationSubscriber(capacity=config.dedup_capacity)

        realtime_publisher: RealtimePublisherProtocol
        if realtime.enabled and http_client is not None:
            realtime_publisher = HttpRealtimePublisher(
                client=http_client,
                api_url=realtime.api_url or "",
                api_key=realtime.api_key,
                timeout_seconds=realtime.timeout_seconds,
            )
        else:
            realtime_publisher = RealtimePublisherStub(subscriber)

        notification_dispatch: NotificationDispatchProtocol
        if notifications.enabled and http_client is not None:
            notification_dispatch = WebhookNotificationDispatch(
                client=http_client,
                webhook_url=notifications.webhook_url or "",
                max_retries=notifications.max_retries,
                timeout_seconds=notifications.timeout_seconds,
            )
        else:
            notification_dispatch = NotificationDispatchStub()

        container = cls(
            config=config,
            repositories=repositories,
            template_catalog=YamlTemplateCatalog.from_directory(config.template_dir),
            time_authority=SystemTimeAuthority(),
            realtime_publisher=realtime_publisher,
            notification_dispatch=notification_dispatch,
            metrics=DecisionMetricsCollector(
                registry=CollectorRegistry(), environment=config.environment
            ),
            subscriber=subscriber,
            http_client=http_client,
            database=database,
        )
        logger.info(
            "engine_container_created",
            environment=config.environment,
            repositories="postgres" if database else "in_memory",
            realtime="http" if realtime.enabled else "in_memory",
            notifications="webhook" if notifications.enabled else "in_memory",
        )
        return container

    async def aclose(self) -> None:
        """Release the HTTP client and database engine."""
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
        if self.database is not None:
            await self.database.dispose()
            self.database = None
        logger.info("engine_container_closed")
