"""User-correctable validation errors.

These errors mean "fix your input": budget above the resolved cap, unknown
categories, ballots with too many selections, schema violations in proposal
content, or malformed template and schedule definitions.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from decision_engine.domain.exceptions import DecisionEngineError


class ValidationError(DecisionEngineError):
    """Base class for user-correctable input errors."""

    error_kind = "validation_error"


class InvalidTemplateError(ValidationError):
    """Raised when a template definition cannot be used.

    Attributes:
        template_id: Template that failed validation.
        reason: What is wrong with it.
    """

    def __init__(self, template_id: str, reason: str) -> None:
        self.template_id = template_id
        self.reason = reason
        super().__init__(f"Invalid template '{template_id}': {reason}")


class InvalidPhaseScheduleError(ValidationError):
    """Raised when caller-supplied phase dates do not fit the template."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid phase schedule: {reason}")


class InvalidPhaseSettingsError(ValidationError):
    """Raised when phase settings do not satisfy the phase's settings schema.

    Attributes:
        phase_id: Phase whose effective settings failed.
        path: JSON path of the failing setting.
        reason: Validator message.
    """

    def __init__(self, phase_id: str, path: str, reason: str) -> None:
        self.phase_id = phase_id
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid settings for phase '{phase_id}' at '{path}': {reason}")


class InvalidSelectionPipelineError(ValidationError):
    """Raised when a selection pipeline step is malformed or cannot run.

    Attributes:
        step_type: The step type that failed, if known.
        reason: Description of the problem.
    """

    def __init__(self, step_type: str | None, reason: str) -> None:
        self.step_type = step_type
        self.reason = reason
        label = f"step '{step_type}'" if step_type else "pipeline"
        super().__init__(f"Invalid selection {label}: {reason}")


class BudgetExceedsCapError(ValidationError):
    """Raised when a proposal budget is above the effective budget cap.

    Attributes:
        budget: Requested budget.
        cap: Resolved effective cap.
        source: Name of the cascade tier that produced the cap.
    """

    def __init__(self, budget: Decimal, cap: Decimal, source: str) -> None:
        self.budget = budget
        self.cap = cap
        self.source = source
        super().__init__(
            f"Budget {budget} exceeds the effective cap of {cap} (from {source})"
        )


class NegativeBudgetError(ValidationError):
    """Raised when a proposal budget is below zero."""

    def __init__(self, budget: Decimal) -> None:
        self.budget = budget
        super().__init__(f"Budget must not be negative, got {budget}")


class UnknownCategoryError(ValidationError):
    """Raised when proposal categories are not configured on the instance."""

    def __init__(self, unknown: Sequence[str], allowed: Sequence[str]) -> None:
        self.unknown = tuple(unknown)
        self.allowed = tuple(allowed)
        super().__init__(
            f"Unknown categories {sorted(self.unknown)}; "
            f"allowed: {sorted(self.allowed)}"
        )


class ProposalSchemaError(ValidationError):
    """Raised when proposal content fails the template's JSON Schema.

    Attributes:
        path: JSON path of the failing element.
        reason: Validator message.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Proposal content invalid at '{path}': {reason}")


class ProposalNotDraftError(ValidationError):
    """Raised when submitting a proposal that was already submitted."""

    def __init__(self, proposal_id: UUID) -> None:
        self.proposal_id = proposal_id
        super().__init__(f"Proposal {proposal_id} has already been submitted")


class EmptyBallotError(ValidationError):
    """Raised when a ballot selects no proposals."""

    def __init__(self) -> None:
        super().__init__("At least one proposal must be selected")


class DuplicateSelectionError(ValidationError):
    """Raised when a ballot selects the same proposal more than once."""

    def __init__(self, duplicates: Sequence[UUID]) -> None:
        self.duplicates = tuple(duplicates)
        super().__init__(
            f"Duplicate proposal selections: {sorted(str(d) for d in self.duplicates)}"
        )


class TooManySelectionsError(ValidationError):
    """Raised when a ballot selects more proposals than the phase allows.

    Attributes:
        selected: Number of selections on the ballot.
        max_votes: The phase's maxVotesPerMember.
    """

    def __init__(self, selected: int, max_votes: int) -> None:
        self.selected = selected
        self.max_votes = max_votes
        super().__init__(
            f"Ballot selects {selected} proposals; at most {max_votes} allowed"
        )


class UnknownProposalError(ValidationError):
    """Raised when selected proposals do not belong to the instance."""

    def __init__(self, instance_id: UUID, proposal_ids: Sequence[UUID]) -> None:
        self.instance_id = instance_id
        self.proposal_ids = tuple(proposal_ids)
        super().__init__(
            f"Proposals {sorted(str(p) for p in self.proposal_ids)} "
            f"do not belong to instance {instance_id}"
        )


class IneligibleProposalError(ValidationError):
    """Raised when selected proposals may not receive votes (draft, rejected or unreviewed)."""

    def __init__(self, proposal_ids: Sequence[UUID]) -> None:
        self.proposal_ids = tuple(proposal_ids)
        super().__init__(
            f"Proposals {sorted(str(p) for p in self.proposal_ids)} "
            "are not eligible for voting"
        )
