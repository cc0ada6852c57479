"""Invite endpoints: create, accept, change role, list."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request

from decision_engine.api.dependencies.engine import get_actor, get_invite_service
from decision_engine.api.errors import problem_from_error
from decision_engine.api.models.decision import (
    ChangeInviteRoleRequest,
    CreateInviteRequest,
    ErrorResponse,
    InviteResponse,
)
from decision_engine.application.services.invite_service import InviteService
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.actor import ActorContext
from decision_engine.domain.models.invite import InviteRole
from decision_engine.domain.models.proposal import ProfileEntityType

router = APIRouter(prefix="/v1", tags=["invites"])

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/instances/{instance_id}/invites",
    response_model=InviteResponse,
    status_code=201,
    responses=_ERRORS,
)
async def create_invite(
    instance_id: UUID,
    request_data: CreateInviteRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InviteService = Depends(get_invite_service),
) -> InviteResponse:
    try:
        invite = await service.create_invite(
            instance_id,
            actor,
            request_data.email,
            role=InviteRole(request_data.role.value),
            profile_entity_type=ProfileEntityType(
                request_data.profile_entity_type.value
            ),
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return InviteResponse.from_domain(invite)


@router.get(
    "/instances/{instance_id}/invites",
    response_model=list[InviteResponse],
    responses=_ERRORS,
)
async def list_invites(
    instance_id: UUID,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InviteService = Depends(get_invite_service),
) -> list[InviteResponse]:
    try:
        invites = await service.list_invites(instance_id, actor)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return [InviteResponse.from_domain(i) for i in invites]


@router.post(
    "/invites/{invite_id}/accept",
    response_model=InviteResponse,
    responses=_ERRORS,
)
async def accept_invite(
    invite_id: UUID,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InviteService = Depends(get_invite_service),
) -> InviteResponse:
    try:
        invite = await service.accept_invite(invite_id, actor.profile_id)
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return InviteResponse.from_domain(invite)


@router.put(
    "/invites/{invite_id}/role",
    response_model=InviteResponse,
    responses=_ERRORS,
)
async def change_invite_role(
    invite_id: UUID,
    request_data: ChangeInviteRoleRequest,
    request: Request,
    actor: ActorContext = Depends(get_actor),
    service: InviteService = Depends(get_invite_service),
) -> InviteResponse:
    try:
        invite = await service.change_role(
            invite_id, actor, InviteRole(request_data.role.value)
        )
    except DecisionEngineError as e:
        raise problem_from_error(e, request) from None
    return InviteResponse.from_domain(invite)
