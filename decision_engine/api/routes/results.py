"""Results endpoints: summary statistics and the latest ranked outcome."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response

from decision_engine.api.dependencies.engine import get_results_service
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    ErrorResponse,
    PhaseResultResponse,
    ResultsStatsResponse,
    SelectionResponse,
)
from decision_engine.application.services.results_service import ResultsService
from decision_engine.domain.exceptions import DecisionEngineError

router = APIRouter(prefix="/v1/instances/{instance_id}/results", tags=["results"])


@router.get(
    "/stats",
    response_model=ResultsStatsResponse,
    responses={
        204: {"description": "No voting has happened yet"},
        404: {"model": ErrorResponse},
    },
)
async def get_results_stats(
    instance_id: UUID,
    request: Request,
    service: ResultsService = Depends(get_results_service),
) -> ResultsStatsResponse | Response:
    try:
        stats = await service.get_results_stats(instance_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    if stats is None:
        return Response(status_code=204)
    return ResultsStatsResponse.from_domain(stats)


@router.get(
    "/latest",
    response_model=PhaseResultResponse,
    responses={
        204: {"description": "No phase has produced a result yet"},
        404: {"model": ErrorResponse},
    },
)
async def get_latest_result(
    instance_id: UUID,
    request: Request,
    service: ResultsService = Depends(get_results_service),
) -> PhaseResultResponse | Response:
    try:
        result = await service.get_latest_result(instance_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    if result is None:
        return Response(status_code=204)
    return PhaseResultResponse.from_domain(result)


@router.get(
    "/ranked",
    response_model=list[SelectionResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_ranked_results(
    instance_id: UUID,
    request: Request,
    service: ResultsService = Depends(get_results_service),
) -> list[SelectionResponse]:
    try:
        selections = await service.list_results(instance_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return [SelectionResponse.from_domain(s) for s in selections]
