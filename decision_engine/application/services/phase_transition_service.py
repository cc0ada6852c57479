"""Phase transition scheduler service.

Runs one scheduler tick: finds published instances whose current phase's
planned end date has passed and advances each of them by one phase.

Per tick:
1. Query candidates. Failure to query at all is the only fatal error.
2. For each candidate, independently and with bounded concurrency:
   resolve the template, compute the next phase, run the completing
   phase's selection pipeline (voting phases always record tallies), and
   persist with a compare-and-swap keyed on the expired phase id and the
   observed revision. The last phase completes the instance instead.
3. Failures are isolated per instance and aggregated in the summary.
4. A CAS conflict where the stored instance already left the expired phase
   means another tick won the race; it is counted as skipped, so running
   the same tick twice never advances an instance twice.
5. Every successful advance publishes one invalidation to the instance
   channel (and the results channel when an outcome was recorded).

A tick that dies mid-batch leaves the remaining instances for the next
tick. Several missed deadlines on one instance are caught up one phase per
tick.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import UUID

from structlog import get_logger

from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.domain.exceptions import DecisionEngineError
from decision_engine.domain.models.realtime import Channels
from decision_engine.domain.models.selection import (
    PhaseSelectionResult,
    SelectionContext,
)
from decision_engine.domain.models.transition import (
    InstanceTransitionResult,
    TransitionAction,
    TransitionSummary,
)
from decision_engine.domain.services.vote_tally import (
    build_candidates,
    count_members,
    tally_votes,
)

if TYPE_CHECKING:
    from datetime import datetime

    from decision_engine.application.ports.ballot_repository import (
        BallotRepositoryProtocol,
    )
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
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
    from decision_engine.infrastructure.monitoring.decision_metrics import (
        DecisionMetricsCollector,
    )

logger = get_logger(__name__)

DEFAULT_TRANSITION_CONCURRENCY = 5


class PhaseTransitionService:
    """Advances expired process instances, one phase per instance per tick.

    Example:
        >>> service = PhaseTransitionService(
        ...     instance_repo=instance_repo,
        ...     proposal_repo=proposal_repo,
        ...     ballot_repo=ballot_repo,
        ...     template_catalog=catalog,
        ...     time_authority=clock,
        ...     invalidation=invalidation,
        ... )
        >>> summary = await service.process_due_transitions()
        >>> summary.to_dict()
        {'processed': 1, 'failed': 0, 'skipped': 0, 'errors': []}
    """

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        proposal_repo: ProposalRepositoryProtocol,
        ballot_repo: BallotRepositoryProtocol,
        template_catalog: TemplateCatalogProtocol,
        time_authority: TimeAuthorityProtocol,
        invalidation: InvalidationPublisher,
        metrics: DecisionMetricsCollector | None = None,
        concurrency: int = DEFAULT_TRANSITION_CONCURRENCY,
    ) -> None:
        """Initialize the phase transition service.

        Args:
            instance_repo: Instance persistence with CAS phase advance.
            proposal_repo: Proposal persistence (pipeline input).
            ballot_repo: Ballot persistence (vote tallies).
            template_catalog: Read-only template lookup.
            time_authority: Clock deciding which deadlines have passed.
            invalidation: Publisher for realtime invalidations.
            metrics: Optional metrics collector.
            concurrency: Maximum instances processed at once.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self._instance_repo = instance_repo
        self._proposal_repo = proposal_repo
        self._ballot_repo = ballot_repo
        self._template_catalog = template_catalog
        self._time = time_authority
        self._invalidation = invalidation
        self._metrics = metrics
        self._concurrency = concurrency

    async def process_due_transitions(self) -> TransitionSummary:
        """Run one scheduler tick.

        Returns:
            TransitionSummary with processed/failed/skipped counts and errors.

        Raises:
            InfrastructureFailureError: If candidate instances cannot be queried.
        """
        started = self._time.monotonic()
        now = self._time.utcnow()
        log = logger.bind(tick_at=now.isoformat())

        try:
            candidates = await self._instance_repo.list_due_for_transition(now)
        except InfrastructureFailureError:
            log.error("transition_tick_query_failed")
            if self._metrics:
                self._metrics.record_fatal_tick()
            raise
        except Exception as e:
            log.error("transition_tick_query_failed", error=str(e))
            if self._metrics:
                self._metrics.record_fatal_tick()
            raise InfrastructureFailureError("list_due_for_transition", str(e)) from e

        log.info("transition_tick_started", candidates=len(candidates))

        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(instance: ProcessInstance) -> InstanceTransitionResult:
            async with semaphore:
                return await self._process_instance(instance, now)

        results = list(await asyncio.gather(*(run(i) for i in candidates)))
        summary = TransitionSummary.from_results(results)

        if self._metrics:
            self._metrics.record_tick(summary, self._time.monotonic() - started)
        log.info(
            "transition_tick_completed",
            processed=summary.processed,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary

    async def _process_instance(
        self, instance: ProcessInstance, now: datetime
    ) -> InstanceTransitionResult:
        """Advance one instance, converting every failure into a result."""
        expired_phase_id = instance.current_phase_id
        log = logger.bind(
            instance_id=str(instance.id),
            phase_id=expired_phase_id,
            revision=instance.revision,
        )
        try:
            return await self._advance(instance, now)
        except ConcurrencyConflictError:
            return await self._resolve_conflict(instance.id, expired_phase_id)
        except DecisionEngineError as e:
            log.warning("phase_transition_failed", error=str(e))
            return InstanceTransitionResult(
                instance_id=instance.id,
                action=TransitionAction.FAILED,
                from_phase_id=expired_phase_id,
                error=str(e),
            )
        except Exception as e:
            # Unexpected adapter errors must not abort the rest of the batch.
            log.exception("phase_transition_failed_unexpectedly")
            return InstanceTransitionResult(
                instance_id=instance.id,
                action=TransitionAction.FAILED,
                from_phase_id=expired_phase_id,
                error=f"{type(e).__name__}: {e}",
            )

    async def _advance(
        self, instance: ProcessInstance, now: datetime
    ) -> InstanceTransitionResult:
        template = await self._template_catalog.get_template(instance.template_id)
        next_phase_id = template.next_phase_id(instance.current_phase_id)
        phase = template.get_phase(instance.current_phase_id)
        assert phase is not None  # next_phase_id() rejects unknown phases

        result = await self._compute_result(instance, phase, now)
        updated = await self._instance_repo.advance_phase_cas(
            instance_id=instance.id,
            expected_phase_id=instance.current_phase_id,
            expected_revision=instance.revision,
            next_phase_id=next_phase_id,
            result=result,
            now=now,
        )

        action = (
            TransitionAction.ADVANCED
            if next_phase_id is not None
            else TransitionAction.COMPLETED
        )
        logger.info(
            "phase_transition_succeeded",
            instance_id=str(instance.id),
            from_phase_id=instance.current_phase_id,
            to_phase_id=next_phase_id,
            action=action.value,
            revision=updated.revision,
            result_recorded=result is not None,
        )

        channels = [Channels.instance(instance.id)]
        if result is not None:
            channels.append(Channels.instance_results(instance.id))
        await self._invalidation.publish(
            channels,
            payload={
                "type": "phase_transition",
                "fromPhaseId": instance.current_phase_id,
                "toPhaseId": next_phase_id,
            },
        )
        return InstanceTransitionResult(
            instance_id=instance.id,
            action=action,
            from_phase_id=instance.current_phase_id,
            to_phase_id=next_phase_id,
        )

    async def _compute_result(
        self, instance: ProcessInstance, phase: PhaseDefinition, now: datetime
    ) -> PhaseSelectionResult | None:
        """Outcome recorded for the completing phase, if it has one.

        Deterministic for identical proposals and ballots, so a retried
        transition records the same outcome.
        """
        if phase.selection_pipeline is None and not phase.rules.voting_submit:
            return None

        ballots = await self._ballot_repo.list_for_phase(instance.id, phase.id)
        tallies = tally_votes(ballots)
        members_voted = count_members(ballots)

        if phase.selection_pipeline is None:
            return PhaseSelectionResult(
                phase_id=phase.id,
                executed_at=now,
                members_voted=members_voted,
                voting_phase=True,
            )

        proposals = await self._proposal_repo.list_by_instance(instance.id)
        candidates = build_candidates(
            proposals, tallies, instance.carried_forward_ids()
        )
        schedule = instance.schedule_for(phase.id)
        settings = phase.effective_settings(schedule.settings if schedule else None)
        context = SelectionContext(
            phase_id=phase.id,
            aggregate_budget=instance.aggregate_budget_for(settings),
            variables=settings,
        )
        return PhaseSelectionResult(
            phase_id=phase.id,
            executed_at=now,
            selections=phase.selection_pipeline.run(candidates, context),
            members_voted=members_voted,
            voting_phase=phase.rules.voting_submit,
            pipeline_applied=True,
        )

    async def _resolve_conflict(
        self, instance_id: UUID, expired_phase_id: str
    ) -> InstanceTransitionResult:
        """Classify a CAS conflict as an already-applied advance or a failure."""
        log = logger.bind(instance_id=str(instance_id), phase_id=expired_phase_id)
        try:
            current = await self._instance_repo.get(instance_id)
        except Exception as e:
            log.warning("phase_transition_conflict_reread_failed", error=str(e))
            current = None
        if current is not None and (
            current.current_phase_id != expired_phase_id or not current.is_active
        ):
            log.info(
                "phase_transition_already_applied",
                current_phase_id=current.current_phase_id,
                status=current.status.value,
            )
            return InstanceTransitionResult(
                instance_id=instance_id,
                action=TransitionAction.SKIPPED,
                from_phase_id=expired_phase_id,
                to_phase_id=current.current_phase_id,
            )

        log.warning("phase_transition_conflict")
        return InstanceTransitionResult(
            instance_id=instance_id,
            action=TransitionAction.FAILED,
            from_phase_id=expired_phase_id,
            error=(
                "concurrent modification of the instance; "
                "it will be retried on the next tick"
            ),
        )
