"""Process instance endpoints.

Creating an instance announces it on the global channel so listing views
refresh. Admin edits are compare-and-swap on `expected_revision` and
return 409 when another write got there first.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from decision_engine.api.dependencies.engine import (
    get_actor,
    get_instance_service,
    get_invalidation,
)
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    CreateInstanceRequest,
    ErrorResponse,
    InstanceResponse,
    InstanceStatusEnum,
    UpdateInstanceRequest,
)
from decision_engine.application.services.instance_service import InstanceService
from decision_engine.application.services.invalidation_service import (
    InvalidationPublisher,
)
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.actor import ActorContext
from decision_engine.domain.models.instance import ProcessStatus
from decision_engine.domain.models.realtime import Channels

router = APIRouter(prefix="/v1/instances", tags=["instances"])


@router.get("", response_model=list[InstanceResponse])
async def list_instances(
    status: InstanceStatusEnum | None = Query(default=None),
    service: InstanceService = Depends(get_instance_service),
) -> list[InstanceResponse]:
    instances = await service.list_instances(
        ProcessStatus(status.value) if status else None
    )
    return [InstanceResponse.from_domain(i) for i in instances]


@router.post(
    "",
    response_model=InstanceResponse,
    status_code=201,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_instance(
    request_data: CreateInstanceRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InstanceService = Depends(get_instance_service),
    invalidation: InvalidationPublisher = Depends(get_invalidation),
) -> InstanceResponse:
    try:
        instance = await service.create_instance_from_template(
            template_id=request_data.template_id,
            name=request_data.name,
            budget=request_data.budget,
            phase_schedule=[p.to_dto() for p in request_data.phase_schedule],
            categories=request_data.categories,
            field_values=request_data.field_values,
            owner_profile_id=actor.profile_id,
            status=ProcessStatus(request_data.status.value),
            invite_only=request_data.invite_only,
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None

    await invalidation.publish(
        [Channels.global_decisions()],
        {"reason": "instance_created", "instanceId": str(instance.id)},
    )
    return InstanceResponse.from_domain(instance)


@router.get(
    "/{instance_id}",
    response_model=InstanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_instance(
    instance_id: UUID,
    request: Request,
    service: InstanceService = Depends(get_instance_service),
) -> InstanceResponse:
    try:
        instance = await service.get_instance(instance_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return InstanceResponse.from_domain(instance)


@router.patch(
    "/{instance_id}",
    response_model=InstanceResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Revision conflict"},
        422: {"model": ErrorResponse},
    },
)
async def update_instance(
    instance_id: UUID,
    request_data: UpdateInstanceRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InstanceService = Depends(get_instance_service),
) -> InstanceResponse:
    budget_change = (
        {"budget": request_data.budget}
        if "budget" in request_data.model_fields_set
        else {}
    )
    phase_schedule = (
        [p.to_dto() for p in request_data.phase_schedule]
        if request_data.phase_schedule is not None
        else None
    )

    try:
        instance = await service.update_instance(
            instance_id,
            actor,
            request_data.expected_revision,
            name=request_data.name,
            categories=request_data.categories,
            phase_schedule=phase_schedule,
            field_values=request_data.field_values,
            **budget_change,
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return InstanceResponse.from_domain(instance)
