"""Results aggregation service.

Results come from one of two sources, reported explicitly as the mode:

- OPEN: the current phase accepts ballots, so figures are live tallies of
  the phase's ballots and nothing is funded yet.
- CLOSED: voting has closed, so figures come from the persisted selection
  outcome of the last completed voting phase.

When neither applies (voting has not started) there are no results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

from decision_engine.application.services.participation import (
    load_current_phase,
    load_instance,
)
from decision_engine.domain.models.results import ResultsMode, ResultsStats
from decision_engine.domain.services.vote_tally import count_members, tally_votes

if TYPE_CHECKING:
    from decision_engine.application.ports.ballot_repository import (
        BallotRepositoryProtocol,
    )
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
    )
    from decision_engine.application.ports.template_catalog import (
        TemplateCatalogProtocol,
    )
    from decision_engine.domain.models.selection import (
        PhaseSelectionResult,
        ProposalSelection,
    )

logger = get_logger(__name__)


class ResultsService:
    """Read-only projections over ballots and persisted phase outcomes."""

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        ballot_repo: BallotRepositoryProtocol,
        template_catalog: TemplateCatalogProtocol,
    ) -> None:
        self._instance_repo = instance_repo
        self._ballot_repo = ballot_repo
        self._template_catalog = template_catalog

    async def get_results_stats(self, instance_id: UUID) -> ResultsStats | None:
        """Return results statistics, or None when voting has not started.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
        """
        instance = await load_instance(self._instance_repo, instance_id)
        _, phase = await load_current_phase(self._template_catalog, instance)

        if instance.is_active and phase.rules.voting_submit:
            ballots = await self._ballot_repo.list_for_phase(instance.id, phase.id)
            return ResultsStats(
                instance_id=instance.id,
                mode=ResultsMode.OPEN,
                phase_id=phase.id,
                members_voted=count_members(ballots),
                vote_tallies=tally_votes(ballots),
            )

        result = instance.latest_result(voting_only=True)
        if result is None:
            logger.debug("results_unavailable", instance_id=str(instance_id))
            return None
        return ResultsStats(
            instance_id=instance.id,
            mode=ResultsMode.CLOSED,
            phase_id=result.phase_id,
            members_voted=result.members_voted,
            proposals_funded=len(result.funded),
            total_allocated=result.total_allocated,
            vote_tallies={s.proposal_id: s.vote_count for s in result.selections},
        )

    async def get_latest_result(self, instance_id: UUID) -> PhaseSelectionResult | None:
        """Return the most recent persisted phase outcome, if any."""
        instance = await load_instance(self._instance_repo, instance_id)
        return instance.latest_result()

    async def list_results(self, instance_id: UUID) -> list[ProposalSelection]:
        """Ranked selections of the latest phase outcome, best rank first.

        Empty when no phase has produced a result yet.
        """
        result = await self.get_latest_result(instance_id)
        if result is None:
            return []
        return list(result.ranked())
