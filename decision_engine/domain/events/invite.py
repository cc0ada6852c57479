"""Invite notification events.

Emitted when an invite is created or its role changes. The notification
dispatch collaborator turns these payloads into emails; delivery and retry
are not handled here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from decision_engine.domain.models.instance import ProcessInstance
    from decision_engine.domain.models.invite import Invite


# Event type constants
INVITE_CREATED_EVENT_TYPE: str = "decision.invite.created"
INVITE_ROLE_CHANGED_EVENT_TYPE: str = "decision.invite.role_changed"

INVITE_EVENT_SCHEMA_VERSION: str = "1.0.0"

# Email template identifiers understood by the dispatch service
INVITE_EMAIL_TEMPLATE: str = "decision_invite"
ROLE_CHANGED_EMAIL_TEMPLATE: str = "decision_role_changed"


@dataclass(frozen=True, eq=True)
class InviteNotificationEvent:
    """Notification payload for one invite recipient.

    Attributes:
        event_id: Unique identifier for this event.
        event_type: INVITE_CREATED_EVENT_TYPE or INVITE_ROLE_CHANGED_EVENT_TYPE.
        recipient_email: Where the notification goes.
        email_template: Template the dispatch service renders.
        template_data: Values substituted into the template.
        emitted_at: When this event was emitted (UTC).
    """

    event_type: str
    recipient_email: str
    email_template: str
    template_data: dict[str, Any]
    event_id: UUID = field(default_factory=uuid4)
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    schema_version: str = field(default=INVITE_EVENT_SCHEMA_VERSION, init=False)

    @classmethod
    def for_invite_created(
        cls, invite: Invite, instance: ProcessInstance
    ) -> InviteNotificationEvent:
        return cls(
            event_type=INVITE_CREATED_EVENT_TYPE,
            recipient_email=invite.email,
            email_template=INVITE_EMAIL_TEMPLATE,
            template_data={
                "invite_id": str(invite.id),
                "instance_id": str(instance.id),
                "instance_name": instance.name,
                "role": invite.role.value,
                "invited_by": str(invite.invited_by),
            },
        )

    @classmethod
    def for_role_changed(
        cls, invite: Invite, instance: ProcessInstance, previous_role: str
    ) -> InviteNotificationEvent:
        return cls(
            event_type=INVITE_ROLE_CHANGED_EVENT_TYPE,
            recipient_email=invite.email,
            email_template=ROLE_CHANGED_EMAIL_TEMPLATE,
            template_data={
                "invite_id": str(invite.id),
                "instance_id": str(instance.id),
                "instance_name": instance.name,
                "previous_role": previous_role,
                "role": invite.role.value,
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "recipient_email": self.recipient_email,
            "email_template": self.email_template,
            "template_data": dict(self.template_data),
            "emitted_at": self.emitted_at.isoformat(),
            "schema_version": self.schema_version,
        }
