"""Proposal service: drafts, submission, admin review and listing.

Submission checks run in this order, each with its own typed error:
1. the instance is published and its current phase enables submission,
2. the budget is non-negative and within the effective budget cap,
3. every category is configured on the instance,
4. the content satisfies the template's proposal JSON Schema.

Required fields come only from the schema's `required` array. The budget
property of the schema is not validated here; the effective budget cap
cascade is the single source for budget limits.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from jsonschema import exceptions as jsonschema_exceptions
from jsonschema import validators
from structlog import get_logger

from decision_engine.application.services.participation import (
    load_current_phase,
    load_instance,
    require_admin,
    require_participant,
)
from decision_engine.domain.errors.not_found import ProposalNotFoundError
from decision_engine.domain.errors.phase_rule import PhaseDoesNotAllowSubmissionError
from decision_engine.domain.errors.validation import (
    BudgetExceedsCapError,
    InvalidTemplateError,
    NegativeBudgetError,
    ProposalNotDraftError,
    ProposalSchemaError,
    UnknownCategoryError,
    ValidationError,
)
from decision_engine.domain.models.budget import (
    LegacyFieldCap,
    NoBudgetCap,
    parse_amount,
    resolve_effective_budget_cap,
)
from decision_engine.domain.models.proposal import (
    ProfileEntityType,
    Proposal,
    ProposalStatus,
    ReviewDecision,
    document_reference,
)
from decision_engine.domain.models.realtime import Channels

if TYPE_CHECKING:
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
    )
    from decision_engine.application.ports.invite_repository import (
        InviteRepositoryProtocol,
    )
    from decision_engine.application.ports.proposal_repository import (
        ProposalRepositoryProtocol,
    )
    from decision_engine.application.ports.template_catalog import (
        TemplateCatalogProtocol,
    )
    from decision_engine.application.ports.time_authority import (
        TimeAuthorityProtocol,
    )
    from decision_engine.application.services.invalidation_service import (
        InvalidationPublisher,
    )
    from decision_engine.domain.models.actor import ActorContext
    from decision_engine.domain.models.instance import ProcessInstance
    from decision_engine.domain.models.template import ProcessTemplate

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProposalView:
    """A proposal with its status projected for the instance's current phase."""

    proposal: Proposal
    status: ProposalStatus


def _content_schema(proposal_schema: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of the proposal schema with the budget property left unconstrained."""
    schema = copy.deepcopy(dict(proposal_schema))
    properties = schema.get("properties")
    if isinstance(properties, dict) and "budget" in properties:
        properties["budget"] = {}
    return schema


def validate_proposal_content(
    template: ProcessTemplate,
    content: Mapping[str, Any],
    budget: Decimal | None,
) -> None:
    """Validate proposal content against the template's JSON Schema.

    Raises:
        ProposalSchemaError: On the most relevant schema violation.
        InvalidTemplateError: If the template's schema is itself invalid.
    """
    if not template.proposal_schema:
        return
    schema = _content_schema(template.proposal_schema)
    document = dict(content)
    if budget is not None:
        document.setdefault("budget", budget)

    validator_cls = validators.validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except jsonschema_exceptions.SchemaError as e:
        raise InvalidTemplateError(template.id, f"proposal schema: {e.message}") from None

    error = jsonschema_exceptions.best_match(validator_cls(schema).iter_errors(document))
    if error is not None:
        path = "/".join(str(part) for part in error.absolute_path) or "$"
        raise ProposalSchemaError(path=path, reason=error.message)


class ProposalService:
    """Validates and records proposals for process instances."""

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        proposal_repo: ProposalRepositoryProtocol,
        template_catalog: TemplateCatalogProtocol,
        time_authority: TimeAuthorityProtocol,
        invalidation: InvalidationPublisher,
        invite_repo: InviteRepositoryProtocol | None = None,
    ) -> None:
        """Initialize the proposal service.

        Args:
            instance_repo: Instance persistence.
            proposal_repo: Proposal persistence.
            template_catalog: Read-only template lookup.
            time_authority: Clock for timestamps.
            invalidation: Publisher for realtime invalidations.
            invite_repo: Invite persistence for invite-only instances.
        """
        self._instance_repo = instance_repo
        self._proposal_repo = proposal_repo
        self._template_catalog = template_catalog
        self._time = time_authority
        self._invalidation = invalidation
        self._invite_repo = invite_repo

    async def submit_proposal(
        self,
        instance_id: UUID,
        author_profile_id: UUID,
        content: Mapping[str, Any],
        category_ids: Sequence[str] = (),
        budget: Any = None,
        *,
        title: str | None = None,
        document_id: str | None = None,
        author_entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL,
    ) -> ProposalView:
        """Validate and record a submitted proposal.

        Returns:
            The stored proposal with its projected status.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            PhaseDoesNotAllowSubmissionError: If the current phase forbids it.
            BudgetExceedsCapError: If the budget is above the effective cap.
            UnknownCategoryError: If a category is not configured.
            ProposalSchemaError: If the content fails the proposal schema.
            PermissionDeniedError: If the instance is invite-only and the
                author holds no accepted invite.
        """
        return await self._record(
            instance_id,
            author_profile_id,
            content,
            category_ids,
            budget,
            title=title,
            document_id=document_id,
            author_entity_type=author_entity_type,
            as_draft=False,
        )

    async def create_draft(
        self,
        instance_id: UUID,
        author_profile_id: UUID,
        content: Mapping[str, Any],
        category_ids: Sequence[str] = (),
        budget: Any = None,
        *,
        title: str | None = None,
        document_id: str | None = None,
        author_entity_type: ProfileEntityType = ProfileEntityType.INDIVIDUAL,
    ) -> ProposalView:
        """Record a draft; the schema is only enforced on submission."""
        return await self._record(
            instance_id,
            author_profile_id,
            content,
            category_ids,
            budget,
            title=title,
            document_id=document_id,
            author_entity_type=author_entity_type,
            as_draft=True,
        )

    async def submit_draft(
        self, proposal_id: UUID, author_profile_id: UUID
    ) -> ProposalView:
        """Submit a previously saved draft, re-running every submission check.

        Raises:
            ProposalNotFoundError: If the proposal does not exist or belongs
                to another author.
            ProposalNotDraftError: If it was already submitted.
        """
        proposal = await self._proposal_repo.get(proposal_id)
        if proposal is None or proposal.author_profile_id != author_profile_id:
            raise ProposalNotFoundError(proposal_id)
        if not proposal.is_draft:
            raise ProposalNotDraftError(proposal_id)

        instance = await load_instance(self._instance_repo, proposal.instance_id)
        template = await self._check_submission(
            instance,
            author_profile_id,
            proposal.category_ids,
            proposal.budget,
        )
        validate_proposal_content(template, proposal.content, proposal.budget)

        submitted = proposal.with_submitted(
            instance.current_phase_id, self._time.utcnow()
        )
        await self._proposal_repo.save(submitted)
        logger.info(
            "proposal_submitted",
            proposal_id=str(proposal_id),
            instance_id=str(instance.id),
            from_draft=True,
        )
        await self._invalidation.publish(
            [Channels.instance_proposals(instance.id), Channels.instance(instance.id)],
            payload={"type": "proposal_submitted", "proposalId": str(proposal_id)},
        )
        return await self._view(submitted, instance)

    async def review_proposal(
        self, proposal_id: UUID, actor: ActorContext, decision: ReviewDecision
    ) -> ProposalView:
        """Set the admin review flag on a submitted proposal.

        Raises:
            ProposalNotFoundError: If the proposal does not exist.
            PermissionDeniedError: If the actor does not administer the instance.
            ValidationError: If the proposal is still a draft.
        """
        proposal = await self._proposal_repo.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        instance = await load_instance(self._instance_repo, proposal.instance_id)
        await require_admin(self._invite_repo, instance, actor)
        if proposal.is_draft:
            raise ValidationError(f"Proposal {proposal_id} is a draft and cannot be reviewed")

        reviewed = proposal.with_review(decision, self._time.utcnow())
        await self._proposal_repo.save(reviewed)
        logger.info(
            "proposal_reviewed",
            proposal_id=str(proposal_id),
            decision=decision.value,
            actor=str(actor.profile_id),
        )
        await self._invalidation.publish(
            [Channels.proposal(proposal_id), Channels.instance_proposals(instance.id)],
            payload={"type": "proposal_reviewed", "proposalId": str(proposal_id)},
        )
        return await self._view(reviewed, instance)

    async def get_proposal(self, proposal_id: UUID) -> ProposalView:
        proposal = await self._proposal_repo.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        instance = await load_instance(self._instance_repo, proposal.instance_id)
        return await self._view(proposal, instance)

    async def list_proposals(
        self, instance_id: UUID, include_drafts_of: UUID | None = None
    ) -> list[ProposalView]:
        """List an instance's proposals with projected status.

        Drafts are only included for their author (`include_drafts_of`).
        """
        instance = await load_instance(self._instance_repo, instance_id)
        _, phase = await load_current_phase(self._template_catalog, instance)
        proposals = await self._proposal_repo.list_by_instance(instance_id)
        return [
            ProposalView(proposal=p, status=p.project_status(phase.rules))
            for p in proposals
            if not p.is_draft or p.author_profile_id == include_drafts_of
        ]

    # ------------------------------------------------------------------

    async def _record(
        self,
        instance_id: UUID,
        author_profile_id: UUID,
        content: Mapping[str, Any],
        category_ids: Sequence[str],
        budget: Any,
        *,
        title: str | None,
        document_id: str | None,
        author_entity_type: ProfileEntityType,
        as_draft: bool,
    ) -> ProposalView:
        log = logger.bind(
            instance_id=str(instance_id),
            author_profile_id=str(author_profile_id),
            as_draft=as_draft,
        )
        instance = await load_instance(self._instance_repo, instance_id)

        parsed_budget: Decimal | None = None
        if budget is not None:
            parsed_budget = parse_amount(budget)
            if parsed_budget is None:
                raise ValidationError(f"Budget must be numeric, got {budget!r}")

        categories = tuple(dict.fromkeys(category_ids))
        template = await self._check_submission(
            instance, author_profile_id, categories, parsed_budget
        )
        if not as_draft:
            validate_proposal_content(template, content, parsed_budget)

        now = self._time.utcnow()
        proposal_id = uuid4()
        proposal = Proposal(
            id=proposal_id,
            instance_id=instance.id,
            author_profile_id=author_profile_id,
            title=title or str(content.get("title", "")),
            content=dict(content),
            document_id=document_id or document_reference(proposal_id),
            author_entity_type=author_entity_type,
            category_ids=categories,
            budget=parsed_budget,
            submitted_at=None if as_draft else now,
            submitted_phase_id=None if as_draft else instance.current_phase_id,
            created_at=now,
            updated_at=now,
        )
        await self._proposal_repo.save(proposal)
        log.info(
            "proposal_created" if as_draft else "proposal_submitted",
            proposal_id=str(proposal.id),
            phase_id=instance.current_phase_id,
        )

        if not as_draft:
            await self._invalidation.publish(
                [Channels.instance_proposals(instance.id), Channels.instance(instance.id)],
                payload={"type": "proposal_submitted", "proposalId": str(proposal.id)},
            )
        return await self._view(proposal, instance)

    async def _check_submission(
        self,
        instance: ProcessInstance,
        author_profile_id: UUID,
        category_ids: Sequence[str],
        budget: Decimal | None,
    ) -> ProcessTemplate:
        """Phase, budget and category checks shared by every submission path."""
        if not instance.is_active:
            raise PhaseDoesNotAllowSubmissionError(
                instance.id, instance.current_phase_id, status=instance.status.value
            )
        template, phase = await load_current_phase(self._template_catalog, instance)
        if not phase.rules.proposals_submit:
            raise PhaseDoesNotAllowSubmissionError(instance.id, phase.id)
        await require_participant(self._invite_repo, instance, author_profile_id)

        if budget is not None:
            if budget < 0:
                raise NegativeBudgetError(budget)
            cap = resolve_effective_budget_cap(template, instance)
            if isinstance(cap, LegacyFieldCap):
                logger.warning(
                    "legacy_budget_cap_used",
                    instance_id=str(instance.id),
                    field=cap.field_name,
                )
            if not isinstance(cap, NoBudgetCap) and budget > cap.amount:
                raise BudgetExceedsCapError(budget, cap.amount, cap.source)

        unknown = [c for c in category_ids if c not in instance.categories]
        if unknown:
            raise UnknownCategoryError(unknown, instance.categories)
        return template

    async def _view(self, proposal: Proposal, instance: ProcessInstance) -> ProposalView:
        _, phase = await load_current_phase(self._template_catalog, instance)
        return ProposalView(proposal=proposal, status=proposal.project_status(phase.rules))
