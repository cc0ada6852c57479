"""Invite service: invitations, acceptance and role changes.

Creating an invite or changing its role emits a notification payload
through the dispatch port; email delivery and retry happen elsewhere.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from structlog import get_logger

from decision_engine.application.services.participation import (
    load_instance,
    require_admin,
)
from decision_engine.domain.errors.not_found import InviteNotFoundError
from decision_engine.domain.errors.permission import PermissionDeniedError
from decision_engine.domain.errors.validation import ValidationError
from decision_engine.domain.events.invite import InviteNotificationEvent
from decision_engine.domain.models.invite import Invite, InviteRole
from decision_engine.domain.models.proposal import ProfileEntityType

if TYPE_CHECKING:
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
    )
    from decision_engine.application.ports.invite_repository import (
        InviteRepositoryProtocol,
    )
    from decision_engine.application.ports.notification_dispatch import (
        NotificationDispatchProtocol,
    )
    from decision_engine.application.ports.time_authority import (
        TimeAuthorityProtocol,
    )
    from decision_engine.domain.models.actor import ActorContext

logger = get_logger(__name__)


class InviteService:
    """Manages participation invites for process instances."""

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        invite_repo: InviteRepositoryProtocol,
        notification_dispatch: NotificationDispatchProtocol,
        time_authority: TimeAuthorityProtocol,
    ) -> None:
        self._instance_repo = instance_repo
        self._invite_repo = invite_repo
        self._dispatch = notification_dispatch
        self._time = time_authority

    async def create_invite(
        self,
        instance_id: UUID,
        actor: ActorContext,
        email: str,
        role: InviteRole = InviteRole.PARTICIPANT,
        profile_entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL,
    ) -> Invite:
        """Invite an email address to the instance and emit the notification.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            PermissionDeniedError: If the actor does not administer the instance.
            ValidationError: If the email is blank.
        """
        instance = await load_instance(self._instance_repo, instance_id)
        await require_admin(self._invite_repo, instance, actor)
        if not email or "@" not in email:
            raise ValidationError(f"Invalid invite email: {email!r}")

        invite = Invite(
            id=uuid4(),
            instance_id=instance.id,
            email=email.strip().lower(),
            invited_by=actor.profile_id,
            role=role,
            profile_entity_type=profile_entity_type,
            created_at=self._time.utcnow(),
        )
        await self._invite_repo.save(invite)
        logger.info(
            "invite_created",
            invite_id=str(invite.id),
            instance_id=str(instance.id),
            role=role.value,
        )
        await self._dispatch.dispatch(
            InviteNotificationEvent.for_invite_created(invite, instance)
        )
        return invite

    async def accept_invite(self, invite_id: UUID, profile_id: UUID) -> Invite:
        """Accept a pending invite on behalf of a profile.

        Accepting an invite that this profile already accepted is a no-op.

        Raises:
            InviteNotFoundError: If the invite does not exist.
            PermissionDeniedError: If another profile already accepted it.
        """
        invite = await self._invite_repo.get(invite_id)
        if invite is None:
            raise InviteNotFoundError(invite_id)
        if not invite.is_pending:
            if invite.profile_id == profile_id:
                return invite
            raise PermissionDeniedError(profile_id, f"accept invite {invite_id}")

        accepted = invite.with_accepted(profile_id, self._time.utcnow())
        await self._invite_repo.save(accepted)
        logger.info(
            "invite_accepted", invite_id=str(invite_id), profile_id=str(profile_id)
        )
        return accepted

    async def change_role(
        self, invite_id: UUID, actor: ActorContext, role: InviteRole
    ) -> Invite:
        """Change the role an invite grants and notify the recipient.

        Raises:
            InviteNotFoundError: If the invite does not exist.
            PermissionDeniedError: If the actor does not administer the instance.
        """
        invite = await self._invite_repo.get(invite_id)
        if invite is None:
            raise InviteNotFoundError(invite_id)
        instance = await load_instance(self._instance_repo, invite.instance_id)
        await require_admin(self._invite_repo, instance, actor)
        if invite.role is role:
            return invite

        previous = invite.role
        updated = invite.with_role(role)
        await self._invite_repo.save(updated)
        logger.info(
            "invite_role_changed",
            invite_id=str(invite_id),
            previous_role=previous.value,
            role=role.value,
        )
        await self._dispatch.dispatch(
            InviteNotificationEvent.for_role_changed(updated, instance, previous.value)
        )
        return updated

    async def list_invites(self, instance_id: UUID, actor: ActorContext) -> list[Invite]:
        instance = await load_instance(self._instance_repo, instance_id)
        await require_admin(self._invite_repo, instance, actor)
        return await self._invite_repo.list_by_instance(instance_id)
