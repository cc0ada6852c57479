"""Container-backed FastAPI dependencies.

The container is created by the app lifespan and stored on `app.state`;
every dependency here reads it from the request, so there is no module
state.

Caller identity comes from headers set by the upstream auth gateway:
- X-Profile-Id: acting profile (UUID)
- X-Admin: "true" when the gateway granted platform admin rights
"""

from uuid import UUID

from fastapi import Header, HTTPException, Request

from decision_engine.application.ports.template_catalog import (
    TemplateCatalogProtocol,
)
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
from decision_engine.bootstrap.container import EngineContainer
from decision_engine.domain.models.actor import ActorContext
from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)


def get_container(request: Request) -> EngineContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=503,
            detail={
                "type": "urn:decision-engine:error:not-ready",
                "title": "Service Unavailable",
                "status": 503,
                "detail": "Engine container is not initialized",
                "instance": str(request.url),
                "error_kind": "infrastructure_failure",
            },
        )
    return container


def get_template_catalog(request: Request) -> TemplateCatalogProtocol:
    return get_container(request).template_catalog


def get_instance_service(request: Request) -> InstanceService:
    return get_container(request).instance_service


def get_proposal_service(request: Request) -> ProposalService:
    return get_container(request).proposal_service


def get_voting_service(request: Request) -> VotingService:
    return get_container(request).voting_service


def get_results_service(request: Request) -> ResultsService:
    return get_container(request).results_service


def get_invite_service(request: Request) -> InviteService:
    return get_container(request).invite_service


def get_phase_transition_service(request: Request) -> PhaseTransitionService:
    return get_container(request).phase_transition_service


def get_invalidation(request: Request) -> InvalidationPublisher:
    return get_container(request).invalidation


def get_metrics(request: Request) -> DecisionMetricsCollector:
    return get_container(request).metrics


async def get_actor(
    request: Request,
    x_profile_id: str | None = Header(default=None, alias="X-Profile-Id"),
    x_admin: str | None = Header(default=None, alias="X-Admin"),
) -> ActorContext:
    """Resolve the acting profile; 401 when the header is missing or malformed."""
    if not x_profile_id:
        raise _unauthenticated(request, "X-Profile-Id header is required")
    try:
        profile_id = UUID(x_profile_id)
    except ValueError:
        raise _unauthenticated(request, "X-Profile-Id must be a UUID") from None
    is_admin = (x_admin or "").strip().lower() == "true"
    return ActorContext(profile_id=profile_id, is_admin=is_admin)


def _unauthenticated(request: Request, message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={
            "type": "urn:decision-engine:error:unauthenticated",
            "title": "Unauthenticated",
            "status": 401,
            "detail": message,
            "instance": str(request.url),
            "error_kind": "unauthenticated",
        },
    )
