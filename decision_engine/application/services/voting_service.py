"""Voting service: ballot casting and per-member voting status.

A ballot is upserted per (instance, current phase, member); casting again
in the same phase replaces the previous selections. Every validation runs
before the write, so a rejected ballot leaves no persisted change.

Concurrency note: a ballot racing a scheduler phase advance may be
accepted under the old phase or rejected by the phase check. Exactly-once
is guaranteed for the transition, not for the last ballot before close.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from structlog import get_logger

from decision_engine.application.services.participation import (
    load_current_phase,
    load_instance,
    require_active,
    require_participant,
)
from decision_engine.domain.errors.phase_rule import PhaseDoesNotAllowVotingError
from decision_engine.domain.errors.validation import (
    DuplicateSelectionError,
    EmptyBallotError,
    IneligibleProposalError,
    TooManySelectionsError,
    UnknownProposalError,
)
from decision_engine.domain.models.ballot import Ballot
from decision_engine.domain.models.realtime import Channels
from decision_engine.domain.models.results import VotingStatus

if TYPE_CHECKING:
    from decision_engine.application.ports.ballot_repository import (
        BallotRepositoryProtocol,
    )
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
    from decision_engine.domain.models.instance import ProcessInstance
    from decision_engine.domain.models.template import PhaseDefinition

logger = get_logger(__name__)

MAX_VOTES_SETTING = "maxVotesPerMember"
DEFAULT_MAX_VOTES_PER_MEMBER = 3


def _positive_int(value: Any, allow_text: bool = False) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    # Legacy form answers arrive as text.
    if allow_text and isinstance(value, str) and value.isdigit() and int(value) > 0:
        return int(value)
    return None


def resolve_max_votes_per_member(
    phase: PhaseDefinition,
    instance: ProcessInstance,
    default: int = DEFAULT_MAX_VOTES_PER_MEMBER,
) -> int:
    """Phase effective settings, then the legacy field value, then `default`.

    Only legacy field values may be numeric text; settings must be integers.
    """
    schedule = instance.schedule_for(phase.id)
    settings: Mapping[str, Any] = phase.effective_settings(
        schedule.settings if schedule else None
    )
    for candidate, allow_text in (
        (settings.get(MAX_VOTES_SETTING), False),
        (instance.field_values.get(MAX_VOTES_SETTING), True),
    ):
        resolved = _positive_int(candidate, allow_text)
        if resolved is not None:
            return resolved
    return default


class VotingService:
    """Casts ballots and reports voting status for members."""

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        proposal_repo: ProposalRepositoryProtocol,
        ballot_repo: BallotRepositoryProtocol,
        template_catalog: TemplateCatalogProtocol,
        time_authority: TimeAuthorityProtocol,
        invalidation: InvalidationPublisher,
        invite_repo: InviteRepositoryProtocol | None = None,
        default_max_votes_per_member: int = DEFAULT_MAX_VOTES_PER_MEMBER,
    ) -> None:
        """Initialize the voting service.

        Args:
            instance_repo: Instance persistence.
            proposal_repo: Proposal persistence.
            ballot_repo: Ballot persistence (upsert by instance/phase/member).
            template_catalog: Read-only template lookup.
            time_authority: Clock for timestamps.
            invalidation: Publisher for realtime invalidations.
            invite_repo: Invite persistence for invite-only instances.
            default_max_votes_per_member: Fallback when neither the phase
                settings nor legacy field values set maxVotesPerMember.
        """
        self._instance_repo = instance_repo
        self._proposal_repo = proposal_repo
        self._ballot_repo = ballot_repo
        self._template_catalog = template_catalog
        self._time = time_authority
        self._invalidation = invalidation
        self._invite_repo = invite_repo
        self._default_max_votes = default_max_votes_per_member

    async def cast_ballot(
        self,
        instance_id: UUID,
        member_profile_id: UUID,
        selected_proposal_ids: Sequence[UUID],
    ) -> Ballot:
        """Validate and upsert the member's ballot for the current phase.

        Returns:
            The stored ballot.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            PhaseDoesNotAllowVotingError: If the current phase has no voting.
            EmptyBallotError: If nothing is selected.
            DuplicateSelectionError: If a proposal is selected twice.
            TooManySelectionsError: If selections exceed maxVotesPerMember.
            UnknownProposalError: If a proposal is not part of the instance.
            IneligibleProposalError: If a proposal is a draft or was rejected,
                or was not accepted when a review phase precedes this one.
        """
        log = logger.bind(
            instance_id=str(instance_id), member_profile_id=str(member_profile_id)
        )
        instance = await load_instance(self._instance_repo, instance_id)
        require_active(instance)
        template, phase = await load_current_phase(self._template_catalog, instance)
        if not phase.rules.voting_submit:
            raise PhaseDoesNotAllowVotingError(instance.id, phase.id)
        await require_participant(self._invite_repo, instance, member_profile_id)

        selections = tuple(selected_proposal_ids)
        if not selections:
            raise EmptyBallotError()
        duplicates = [p for p, n in Counter(selections).items() if n > 1]
        if duplicates:
            raise DuplicateSelectionError(duplicates)

        max_votes = resolve_max_votes_per_member(
            phase, instance, self._default_max_votes
        )
        if len(selections) > max_votes:
            log.info(
                "ballot_rejected",
                reason="too_many_selections",
                selected=len(selections),
                max_votes=max_votes,
            )
            raise TooManySelectionsError(len(selections), max_votes)

        proposals = await self._proposal_repo.get_many(list(selections))
        by_id = {p.id: p for p in proposals if p.instance_id == instance.id}
        unknown = [p for p in selections if p not in by_id]
        if unknown:
            raise UnknownProposalError(instance.id, unknown)
        review_gated = template.review_precedes(phase.id)
        ineligible = [
            p for p in selections if not by_id[p].is_eligible_for_voting(review_gated)
        ]
        if ineligible:
            raise IneligibleProposalError(ineligible)

        ballot = Ballot.create(
            ballot_id=uuid4(),
            instance_id=instance.id,
            phase_id=phase.id,
            member_profile_id=member_profile_id,
            selected_proposal_ids=selections,
            submitted_at=self._time.utcnow(),
        )
        stored = await self._ballot_repo.upsert(ballot)
        log.info(
            "ballot_cast",
            ballot_id=str(stored.id),
            phase_id=phase.id,
            selections=len(selections),
        )

        await self._invalidation.publish(
            [Channels.instance_results(instance.id)],
            payload={"type": "ballot_cast"},
        )
        return stored

    async def get_voting_status(
        self, instance_id: UUID, member_profile_id: UUID
    ) -> VotingStatus:
        """Return the member's ballot and the voting configuration of the phase."""
        instance = await load_instance(self._instance_repo, instance_id)
        _, phase = await load_current_phase(self._template_catalog, instance)
        ballot = await self._ballot_repo.get(instance.id, phase.id, member_profile_id)
        return VotingStatus(
            instance_id=instance.id,
            phase_id=phase.id,
            member_profile_id=member_profile_id,
            voting_open=instance.is_active and phase.rules.voting_submit,
            max_votes_per_member=resolve_max_votes_per_member(
                phase, instance, self._default_max_votes
            ),
            selected_proposal_ids=ballot.selected_proposal_ids if ballot else (),
            submitted_at=ballot.submitted_at if ballot else None,
        )
