"""Domain errors for the decision engine."""

from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.infrastructure import (
    InfrastructureFailureError,
    RealtimePublishError,
)
from decision_engine.domain.errors.not_found import (
    InstanceNotFoundError,
    InviteNotFoundError,
    NotFoundError,
    ProposalNotFoundError,
    TemplateNotFoundError,
)
from decision_engine.domain.errors.permission import PermissionDeniedError
from decision_engine.domain.errors.phase_rule import (
    InstanceNotActiveError,
    PhaseDoesNotAllowSubmissionError,
    PhaseDoesNotAllowVotingError,
    PhaseRuleViolationError,
)
from decision_engine.domain.errors.validation import (
    BudgetExceedsCapError,
    DuplicateSelectionError,
    EmptyBallotError,
    IneligibleProposalError,
    InvalidPhaseScheduleError,
    InvalidPhaseSettingsError,
    InvalidSelectionPipelineError,
    InvalidTemplateError,
    NegativeBudgetError,
    ProposalNotDraftError,
    ProposalSchemaError,
    TooManySelectionsError,
    UnknownCategoryError,
    UnknownProposalError,
    ValidationError,
)

__all__ = [
    "BudgetExceedsCapError",
    "ConcurrencyConflictError",
    "DuplicateSelectionError",
    "EmptyBallotError",
    "IneligibleProposalError",
    "InfrastructureFailureError",
    "InstanceNotActiveError",
    "InstanceNotFoundError",
    "InvalidPhaseScheduleError",
    "InvalidPhaseSettingsError",
    "InvalidSelectionPipelineError",
    "InvalidTemplateError",
    "InviteNotFoundError",
    "NegativeBudgetError",
    "NotFoundError",
    "PermissionDeniedError",
    "PhaseDoesNotAllowSubmissionError",
    "PhaseDoesNotAllowVotingError",
    "PhaseRuleViolationError",
    "ProposalNotDraftError",
    "ProposalNotFoundError",
    "ProposalSchemaError",
    "RealtimePublishError",
    "TemplateNotFoundError",
    "TooManySelectionsError",
    "UnknownCategoryError",
    "UnknownProposalError",
    "ValidationError",
]
