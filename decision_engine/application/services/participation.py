"""Shared guards for operations on a process instance.

Loads the instance and its current template phase, and checks the
instance status, invite-only participation and admin rights.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from decision_engine.domain.errors.not_found import InstanceNotFoundError
from decision_engine.domain.errors.permission import PermissionDeniedError
from decision_engine.domain.errors.phase_rule import InstanceNotActiveError
from decision_engine.domain.errors.validation import InvalidTemplateError
from decision_engine.domain.models.invite import InviteRole

if TYPE_CHECKING:
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
    )
    from decision_engine.application.ports.invite_repository import (
        InviteRepositoryProtocol,
    )
    from decision_engine.application.ports.template_catalog import (
        TemplateCatalogProtocol,
    )
    from decision_engine.domain.models.actor import ActorContext
    from decision_engine.domain.models.instance import ProcessInstance
    from decision_engine.domain.models.template import (
        PhaseDefinition,
        ProcessTemplate,
    )


async def load_instance(
    instance_repo: InstanceRepositoryProtocol, instance_id: UUID
) -> ProcessInstance:
    """Fetch an instance or raise InstanceNotFoundError."""
    instance = await instance_repo.get(instance_id)
    if instance is None:
        raise InstanceNotFoundError(instance_id)
    return instance


async def load_current_phase(
    template_catalog: TemplateCatalogProtocol, instance: ProcessInstance
) -> tuple[ProcessTemplate, PhaseDefinition]:
    """Resolve the instance's template and its current phase definition.

    Raises:
        TemplateNotFoundError: If the template is no longer deployed.
        InvalidTemplateError: If the template lost the instance's phase.
    """
    template = await template_catalog.get_template(instance.template_id)
    phase = template.get_phase(instance.current_phase_id)
    if phase is None:
        raise InvalidTemplateError(
            template.id,
            f"phase '{instance.current_phase_id}' of instance {instance.id} "
            "is not defined",
        )
    return template, phase


def require_active(instance: ProcessInstance) -> None:
    """Raise InstanceNotActiveError unless the instance is published."""
    if not instance.is_active:
        raise InstanceNotActiveError(
            instance.id, instance.current_phase_id, instance.status.value
        )


async def require_participant(
    invite_repo: InviteRepositoryProtocol | None,
    instance: ProcessInstance,
    profile_id: UUID,
) -> None:
    """For invite-only instances, require an accepted invite."""
    if not instance.invite_only or invite_repo is None:
        return
    if profile_id == instance.owner_profile_id:
        return
    invite = await invite_repo.find_accepted(instance.id, profile_id)
    if invite is None:
        raise PermissionDeniedError(profile_id, f"participate in instance {instance.id}")


async def require_admin(
    invite_repo: InviteRepositoryProtocol | None,
    instance: ProcessInstance,
    actor: ActorContext,
) -> None:
    """Require the actor to administer the instance.

    Platform admins, the instance owner and holders of an accepted admin
    invite qualify.
    """
    if actor.is_admin or actor.profile_id == instance.owner_profile_id:
        return
    if invite_repo is not None:
        invite = await invite_repo.find_accepted(instance.id, actor.profile_id)
        if invite is not None and invite.role is InviteRole.ADMIN:
            return
    raise PermissionDeniedError(actor.profile_id, f"administer instance {instance.id}")
