"""Ballot casting and voting status endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from decision_engine.api.dependencies.engine import (
    get_actor,
    get_metrics,
    get_voting_service,
)
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    BallotResponse,
    CastBallotRequest,
    ErrorResponse,
    VotingStatusResponse,
)
from decision_engine.application.services.voting_service import VotingService
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.actor import ActorContext
from decision_engine.infrastructure.monitoring.decision_metrics import (
    DecisionMetricsCollector,
)

router = APIRouter(prefix="/v1/instances/{instance_id}", tags=["voting"])


@router.put(
    "/ballot",
    response_model=BallotResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Voting is not open"},
        422: {"model": ErrorResponse, "description": "Invalid selection"},
    },
)
async def cast_ballot(
    instance_id: UUID,
    request_data: CastBallotRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
    metrics: DecisionMetricsCollector = Depends(get_metrics),
) -> BallotResponse:
    """Cast or replace the caller's ballot for the current voting phase."""
    try:
        ballot = await service.cast_ballot(
            instance_id, actor.profile_id, request_data.selected_proposal_ids
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    metrics.record_ballot()
    return BallotResponse.from_domain(ballot)


@router.get(
    "/voting-status",
    response_model=VotingStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_voting_status(
    instance_id: UUID,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: VotingService = Depends(get_voting_service),
) -> VotingStatusResponse:
    try:
        status = await service.get_voting_status(instance_id, actor.profile_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return VotingStatusResponse.from_domain(status)
