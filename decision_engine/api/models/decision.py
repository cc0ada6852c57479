"""Decision engine API request/response models (Pydantic v2).

Request models validate shape only; domain rules (phase permissions, budget
caps, ballot cardinality) are enforced by the services and surface as
RFC 7807 problem details.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, PlainSerializer

from decision_engine.application.dtos.instance import PhaseDatesDTO
from decision_engine.application.services.proposal_service import ProposalView
from decision_engine.domain.models.ballot import Ballot
from decision_engine.domain.models.instance import PhaseSchedule, ProcessInstance
from decision_engine.domain.models.invite import Invite
from decision_engine.domain.models.results import ResultsStats, VotingStatus
from decision_engine.domain.models.selection import (
    PhaseSelectionResult,
    ProposalSelection,
)
from decision_engine.domain.models.template import PhaseDefinition, ProcessTemplate
from decision_engine.domain.models.transition import TransitionSummary

# ISO 8601 with Z suffix
DateTimeWithZ = Annotated[
    datetime,
    PlainSerializer(
        lambda v: v.isoformat().replace("+00:00", "Z") if v else None, return_type=str
    ),
]


class InstanceStatusEnum(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProposalStatusEnum(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReviewDecisionEnum(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class EntityTypeEnum(str, Enum):
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class InviteRoleEnum(str, Enum):
    PARTICIPANT = "participant"
    ADMIN = "admin"


# =============================================================================
# Errors / health
# =============================================================================


class ErrorResponse(BaseModel):
    """RFC 7807 problem details."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
    error_kind: str


class HealthResponse(BaseModel):
    status: str
    version: str


# =============================================================================
# Templates
# =============================================================================


class PhaseResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    proposals_submit: bool
    voting_submit: bool
    review_required: bool
    advancement: str
    has_selection_pipeline: bool
    default_settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, phase: PhaseDefinition) -> "PhaseResponse":
        return cls(
            id=phase.id,
            name=phase.name,
            description=phase.description,
            proposals_submit=phase.rules.proposals_submit,
            voting_submit=phase.rules.voting_submit,
            review_required=phase.rules.review_required,
            advancement=phase.rules.advancement.value,
            has_selection_pipeline=phase.selection_pipeline is not None,
            default_settings=dict(phase.default_settings),
        )


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    phases: list[PhaseResponse]
    proposal_schema: dict[str, Any]

    @classmethod
    def from_domain(cls, template: ProcessTemplate) -> "TemplateResponse":
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            phases=[PhaseResponse.from_domain(p) for p in template.phases],
            proposal_schema=dict(template.proposal_schema),
        )


# =============================================================================
# Instances
# =============================================================================


class PhaseDatesRequest(BaseModel):
    """Dates and setting overrides for one phase, in template phase order."""

    planned_start_date: AwareDatetime | None = None
    planned_end_date: AwareDatetime | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    def to_dto(self) -> PhaseDatesDTO:
        return PhaseDatesDTO(
            planned_start_date=self.planned_start_date,
            planned_end_date=self.planned_end_date,
            settings=self.settings,
        )


class CreateInstanceRequest(BaseModel):
    template_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    budget: Decimal | None = Field(default=None, ge=0)
    phase_schedule: list[PhaseDatesRequest] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    field_values: dict[str, Any] = Field(default_factory=dict)
    status: InstanceStatusEnum = InstanceStatusEnum.PUBLISHED
    invite_only: bool = False


class UpdateInstanceRequest(BaseModel):
    """Admin edit. Omitted fields are left unchanged; `budget: null` clears it."""

    expected_revision: int = Field(..., ge=0)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    budget: Decimal | None = Field(default=None, ge=0)
    categories: list[str] | None = None
    phase_schedule: list[PhaseDatesRequest] | None = None
    field_values: dict[str, Any] | None = None


class PhaseScheduleResponse(BaseModel):
    phase_id: str
    planned_start_date: DateTimeWithZ | None = None
    planned_end_date: DateTimeWithZ | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, entry: PhaseSchedule) -> "PhaseScheduleResponse":
        return cls(
            phase_id=entry.phase_id,
            planned_start_date=entry.planned_start_date,
            planned_end_date=entry.planned_end_date,
            settings=dict(entry.settings),
        )


class InstanceResponse(BaseModel):
    id: UUID
    template_id: str
    name: str
    current_phase_id: str
    status: InstanceStatusEnum
    budget: Decimal | None = None
    categories: list[str]
    field_values: dict[str, Any]
    owner_profile_id: UUID | None = None
    invite_only: bool
    phases: list[PhaseScheduleResponse]
    revision: int
    created_at: DateTimeWithZ
    updated_at: DateTimeWithZ
    completed_at: DateTimeWithZ | None = None

    @classmethod
    def from_domain(cls, instance: ProcessInstance) -> "InstanceResponse":
        return cls(
            id=instance.id,
            template_id=instance.template_id,
            name=instance.name,
            current_phase_id=instance.current_phase_id,
            status=InstanceStatusEnum(instance.status.value),
            budget=instance.budget,
            categories=list(instance.categories),
            field_values=dict(instance.field_values),
            owner_profile_id=instance.owner_profile_id,
            invite_only=instance.invite_only,
            phases=[PhaseScheduleResponse.from_domain(p) for p in instance.phases],
            revision=instance.revision,
            created_at=instance.created_at,
            updated_at=instance.updated_at,
            completed_at=instance.completed_at,
        )


# =============================================================================
# Proposals
# =============================================================================


class SubmitProposalRequest(BaseModel):
    content: dict[str, Any] = Field(default_factory=dict)
    title: str | None = Field(default=None, max_length=300)
    category_ids: list[str] = Field(default_factory=list)
    budget: Decimal | None = None
    document_id: str | None = None
    author_entity_type: EntityTypeEnum = EntityTypeEnum.INDIVIDUAL


class ReviewProposalRequest(BaseModel):
    decision: ReviewDecisionEnum


class ProposalResponse(BaseModel):
    id: UUID
    instance_id: UUID
    author_profile_id: UUID
    title: str
    content: dict[str, Any]
    document_id: str | None = None
    author_entity_type: EntityTypeEnum
    category_ids: list[str]
    budget: Decimal | None = None
    status: ProposalStatusEnum
    submitted_at: DateTimeWithZ | None = None
    submitted_phase_id: str | None = None
    created_at: DateTimeWithZ

    @classmethod
    def from_view(cls, view: ProposalView) -> "ProposalResponse":
        proposal = view.proposal
        return cls(
            id=proposal.id,
            instance_id=proposal.instance_id,
            author_profile_id=proposal.author_profile_id,
            title=proposal.title,
            content=dict(proposal.content),
            document_id=proposal.document_id,
            author_entity_type=EntityTypeEnum(proposal.author_entity_type.value),
            category_ids=list(proposal.category_ids),
            budget=proposal.budget,
            status=ProposalStatusEnum(view.status.value),
            submitted_at=proposal.submitted_at,
            submitted_phase_id=proposal.submitted_phase_id,
            created_at=proposal.created_at,
        )


# =============================================================================
# Voting
# =============================================================================


class CastBallotRequest(BaseModel):
    selected_proposal_ids: list[UUID]


class BallotResponse(BaseModel):
    id: UUID
    instance_id: UUID
    phase_id: str
    member_profile_id: UUID
    selected_proposal_ids: list[UUID]
    signature: str
    submitted_at: DateTimeWithZ

    @classmethod
    def from_domain(cls, ballot: Ballot) -> "BallotResponse":
        return cls(
            id=ballot.id,
            instance_id=ballot.instance_id,
            phase_id=ballot.phase_id,
            member_profile_id=ballot.member_profile_id,
            selected_proposal_ids=list(ballot.selected_proposal_ids),
            signature=ballot.signature,
            submitted_at=ballot.submitted_at,
        )


class VotingStatusResponse(BaseModel):
    instance_id: UUID
    phase_id: str
    voting_open: bool
    read_only: bool
    has_voted: bool
    max_votes_per_member: int
    selected_proposal_ids: list[UUID]
    submitted_at: DateTimeWithZ | None = None

    @classmethod
    def from_domain(cls, status: VotingStatus) -> "VotingStatusResponse":
        return cls(
            instance_id=status.instance_id,
            phase_id=status.phase_id,
            voting_open=status.voting_open,
            read_only=status.is_read_only,
            has_voted=status.has_voted,
            max_votes_per_member=status.max_votes_per_member,
            selected_proposal_ids=list(status.selected_proposal_ids),
            submitted_at=status.submitted_at,
        )


# =============================================================================
# Results
# =============================================================================


class ResultsStatsResponse(BaseModel):
    instance_id: UUID
    mode: str
    phase_id: str
    members_voted: int
    proposals_funded: int
    total_allocated: Decimal
    vote_tallies: dict[str, int]

    @classmethod
    def from_domain(cls, stats: ResultsStats) -> "ResultsStatsResponse":
        return cls(
            instance_id=stats.instance_id,
            mode=stats.mode.value,
            phase_id=stats.phase_id,
            members_voted=stats.members_voted,
            proposals_funded=stats.proposals_funded,
            total_allocated=stats.total_allocated,
            vote_tallies={str(k): v for k, v in stats.vote_tallies.items()},
        )


class SelectionResponse(BaseModel):
    proposal_id: UUID
    outcome: str
    vote_count: int
    rank: int | None = None
    allocated: Decimal

    @classmethod
    def from_domain(cls, selection: ProposalSelection) -> "SelectionResponse":
        return cls(
            proposal_id=selection.proposal_id,
            outcome=selection.outcome.value,
            vote_count=selection.vote_count,
            rank=selection.rank,
            allocated=selection.allocated,
        )


class PhaseResultResponse(BaseModel):
    phase_id: str
    executed_at: DateTimeWithZ
    members_voted: int
    voting_phase: bool
    total_allocated: Decimal
    ranked: list[SelectionResponse]

    @classmethod
    def from_domain(cls, result: PhaseSelectionResult) -> "PhaseResultResponse":
        return cls(
            phase_id=result.phase_id,
            executed_at=result.executed_at,
            members_voted=result.members_voted,
            voting_phase=result.voting_phase,
            total_allocated=result.total_allocated,
            ranked=[SelectionResponse.from_domain(s) for s in result.ranked()],
        )


# =============================================================================
# Scheduler
# =============================================================================


class TransitionSummaryResponse(BaseModel):
    processed: int
    failed: int
    skipped: int
    errors: list[str]

    @classmethod
    def from_domain(cls, summary: TransitionSummary) -> "TransitionSummaryResponse":
        return cls(**summary.to_dict())


# =============================================================================
# Invites
# =============================================================================


class CreateInviteRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    role: InviteRoleEnum = InviteRoleEnum.PARTICIPANT
    profile_entity_type: EntityTypeEnum = EntityTypeEnum.INDIVIDUAL


class ChangeInviteRoleRequest(BaseModel):
    role: InviteRoleEnum


class InviteResponse(BaseModel):
    id: UUID
    instance_id: UUID
    email: str
    role: InviteRoleEnum
    profile_id: UUID | None = None
    accepted: bool
    created_at: DateTimeWithZ
    accepted_on: DateTimeWithZ | None = None

    @classmethod
    def from_domain(cls, invite: Invite) -> "InviteResponse":
        return cls(
            id=invite.id,
            instance_id=invite.instance_id,
            email=invite.email,
            role=InviteRoleEnum(invite.role.value),
            profile_id=invite.profile_id,
            accepted=not invite.is_pending,
            created_at=invite.created_at,
            accepted_on=invite.accepted_on,
        )
