"""Manual scheduler tick, for operators and tests.

The hourly tick normally runs in the phase transition worker; this endpoint
runs the same idempotent tick on demand and returns its summary.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from decision_engine.api.dependencies.engine import (
    get_actor,
    get_phase_transition_service,
)
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    ErrorResponse,
    TransitionSummaryResponse,
)
from decision_engine.application.services.phase_transition_service import (
    PhaseTransitionService,
)
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.actor import ActorContext

router = APIRouter(prefix="/v1/scheduler", tags=["scheduler"])


@router.post(
    "/tick",
    response_model=TransitionSummaryResponse,
    responses={403: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def run_tick(
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: PhaseTransitionService = Depends(get_phase_transition_service),
) -> TransitionSummaryResponse:
    if not actor.is_admin:
        raise HTTPException(
            status_code=403,
            detail={
                "type": "urn:decision-engine:error:permission-denied",
                "title": "Permission Denied",
                "status": 403,
                "detail": "Only platform admins may trigger a scheduler tick",
                "instance": str(request.url),
                "error_kind": "permission_denied",
            },
        )
    try:
        summary = await service.process_due_transitions()
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return TransitionSummaryResponse.from_domain(summary)
