"""Proposal endpoints: submit, drafts, review and listing.

Proposal status in every response is projected from the instance's current
phase rules at read time.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from decision_engine.api.dependencies.engine import (
    get_actor,
    get_metrics,
    get_proposal_service,
)
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    ErrorResponse,
    ProposalResponse,
    ReviewProposalRequest,
    SubmitProposalRequest,
)
from decision_engine.application.services.proposal_service import ProposalService
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.actor import ActorContext
from decision_engine.domain.models.proposal import ProfileEntityType, ReviewDecision
from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)

router = APIRouter(prefix="/v1", tags=["proposals"])

_WRITE_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse, "description": "Phase does not allow submission"},
    422: {"model": ErrorResponse},
}


@router.post(
    "/instances/{instance_id}/proposals",
    response_model=ProposalResponse,
    status_code=201,
    responses=_WRITE_ERRORS,
)
async def submit_proposal(
    instance_id: UUID,
    request_data: SubmitProposalRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: ProposalService = Depends(get_proposal_service),
    metrics: DecisionMetricsCollector = Depends(get_metrics),
) -> ProposalResponse:
    try:
        view = await service.submit_proposal(
            instance_id,
            actor.profile_id,
            request_data.content,
            request_data.category_ids,
            request_data.budget,
            title=request_data.title,
            document_id=request_data.document_id,
            author_entity_type=ProfileEntityType(request_data.author_entity_type.value),
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    metrics.record_proposal()
    return ProposalResponse.from_view(view)


@router.post(
    "/instances/{instance_id}/proposals/drafts",
    response_model=ProposalResponse,
    status_code=201,
    responses=_WRITE_ERRORS,
)
async def create_draft(
    instance_id: UUID,
    request_data: SubmitProposalRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: ProposalService = Depends(get_proposal_service),
) -> ProposalResponse:
    try:
        view = await service.create_draft(
            instance_id,
            actor.profile_id,
            request_data.content,
            request_data.category_ids,
            request_data.budget,
            title=request_data.title,
            document_id=request_data.document_id,
            author_entity_type=ProfileEntityType(request_data.author_entity_type.value),
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return ProposalResponse.from_view(view)


@router.post(
    "/proposals/{proposal_id}/submit",
    response_model=ProposalResponse,
    responses=_WRITE_ERRORS,
)
async def submit_draft(
    proposal_id: UUID,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: ProposalService = Depends(get_proposal_service),
    metrics: DecisionMetricsCollector = Depends(get_metrics),
) -> ProposalResponse:
    try:
        view = await service.submit_draft(proposal_id, actor.profile_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    metrics.record_proposal()
    return ProposalResponse.from_view(view)


@router.post(
    "/proposals/{proposal_id}/review",
    response_model=ProposalResponse,
    responses=_WRITE_ERRORS,
)
async def review_proposal(
    proposal_id: UUID,
    request_data: ReviewProposalRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: ProposalService = Depends(get_proposal_service),
) -> ProposalResponse:
    try:
        view = await service.review_proposal(
            proposal_id, actor, ReviewDecision(request_data.decision.value)
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return ProposalResponse.from_view(view)


@router.get(
    "/proposals/{proposal_id}",
    response_model=ProposalResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_proposal(
    proposal_id: UUID,
    request: Request,
    service: ProposalService = Depends(get_proposal_service),
) -> ProposalResponse:
    try:
        view = await service.get_proposal(proposal_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return ProposalResponse.from_view(view)


@router.get(
    "/instances/{instance_id}/proposals",
    response_model=list[ProposalResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_proposals(
    instance_id: UUID,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: ProposalService = Depends(get_proposal_service),
) -> list[ProposalResponse]:
    """Submitted proposals plus the caller's own drafts."""
    try:
        views = await service.list_proposals(instance_id, include_drafts_of=actor.profile_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return [ProposalResponse.from_view(v) for v in views]
