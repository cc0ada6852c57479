"""Errors raised when a referenced entity cannot be resolved."""

from __future__ import annotations

from uuid import UUID

from decision_engine.domain.exceptions import DecisionEngineError


class NotFoundError(DecisionEngineError):
    """Base class for unresolved template/instance/proposal lookups.

    Attributes:
        entity: Kind of entity that was looked up.
        entity_id: Identifier that failed to resolve.
    """

    error_kind = "not_found"

    def __init__(self, entity: str, entity_id: str | UUID) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class TemplateNotFoundError(NotFoundError):
    """Raised when a template id is not present in the catalog."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__("Template", template_id)


class InstanceNotFoundError(NotFoundError):
    """Raised when a process instance does not exist."""

    def __init__(self, instance_id: UUID) -> None:
        self.instance_id = instance_id
        super().__init__("Process instance", instance_id)


class ProposalNotFoundError(NotFoundError):
    """Raised when a proposal does not exist."""

    def __init__(self, proposal_id: UUID) -> None:
        self.proposal_id = proposal_id
        super().__init__("Proposal", proposal_id)


class InviteNotFoundError(NotFoundError):
    """Raised when an invite does not exist."""

    def __init__(self, invite_id: UUID) -> None:
        self.invite_id = invite_id
        super().__init__("Invite", invite_id)
