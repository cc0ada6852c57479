"""Proposal domain model and status projection.

Proposal status is never stored. It is a projection of the proposal's own
submission/review facts and the instance's current phase rules:

    review decision ACCEPTED           -> ACCEPTED
    review decision REJECTED           -> REJECTED
    not yet submitted                  -> DRAFT
    current phase requires review      -> UNDER_REVIEW
    otherwise                          -> SUBMITTED
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from decision_engine.domain.models.template import PhaseRules


class ProposalStatus(Enum):
    """Projected proposal status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReviewDecision(Enum):
    """Explicit admin review flag on a proposal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ProfileEntityType(Enum):
    """Whether a profile acts as an individual or on behalf of an organization."""

    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def document_reference(proposal_id: UUID) -> str:
    """Collaborative document id used when the caller supplies none."""
    return f"proposal-{proposal_id}"


@dataclass(frozen=True, eq=True)
class Proposal:
    """A proposal submitted to a process instance.

    The rich-text body lives in an external collaborative document service;
    only its reference is stored here. `content` holds the structured fields
    validated against the template's proposal schema.

    Attributes:
        id: Proposal identifier.
        instance_id: Owning instance.
        author_profile_id: Authoring profile (weak reference).
        title: Proposal title.
        content: Structured proposal fields.
        document_id: Collaborative document reference.
        author_entity_type: Individual or organization author.
        category_ids: Categories from the instance's category list.
        budget: Requested budget.
        submitted_at: When the proposal left draft, None while draft.
        submitted_phase_id: Phase in which it was submitted.
        review_decision: Admin review flag.
    """

    id: UUID
    instance_id: UUID
    author_profile_id: UUID
    title: str
    content: Mapping[str, Any] = field(default_factory=dict)
    document_id: str | None = None
    author_entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL
    category_ids: tuple[str, ...] = ()
    budget: Decimal | None = None
    submitted_at: datetime | None = None
    submitted_phase_id: str | None = None
    review_decision: ReviewDecision = ReviewDecision.PENDING
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def is_draft(self) -> bool:
        return self.submitted_at is None

    @property
    def is_eligible_for_selection(self) -> bool:
        """Submitted and not rejected by an administrator."""
        return not self.is_draft and self.review_decision is not ReviewDecision.REJECTED

    def is_eligible_for_voting(self, review_gated: bool) -> bool:
        """Eligible for selection; behind a review phase it must also be accepted."""
        if review_gated:
            return (
                self.is_eligible_for_selection
                and self.review_decision is ReviewDecision.ACCEPTED
            )
        return self.is_eligible_for_selection

    def project_status(self, rules: PhaseRules | None) -> ProposalStatus:
        """Compute the status for the instance's current phase rules."""
        if self.review_decision is ReviewDecision.ACCEPTED:
            return ProposalStatus.ACCEPTED
        if self.review_decision is ReviewDecision.REJECTED:
            return ProposalStatus.REJECTED
        if self.is_draft:
            return ProposalStatus.DRAFT
        if rules is not None and rules.review_required:
            return ProposalStatus.UNDER_REVIEW
        return ProposalStatus.SUBMITTED

    def with_submitted(self, phase_id: str, now: datetime) -> Proposal:
        return replace(self, submitted_at=now, submitted_phase_id=phase_id, updated_at=now)

    def with_review(self, decision: ReviewDecision, now: datetime) -> Proposal:
        return replace(self, review_decision=decision, updated_at=now)
