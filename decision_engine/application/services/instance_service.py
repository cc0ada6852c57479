"""Process instance service: creation from templates and admin edits.

Instance creation seeds the first phase and one schedule entry per template
phase. Effective phase settings are checked against each phase's settings
schema. Creation does not publish an invalidation; callers decide whether
the new instance is broadcast. Admin edits (budget, categories, phase
schedule, field values) are compare-and-swap writes on the instance
revision and publish an invalidation on the instance and global channels.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from jsonschema import exceptions as jsonschema_exceptions
from jsonschema import validators
from structlog import get_logger

from decision_engine.application.services.participation import (
    load_instance,
    require_admin,
)
from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.validation import (
    InvalidPhaseScheduleError,
    InvalidPhaseSettingsError,
    InvalidTemplateError,
    NegativeBudgetError,
    ValidationError,
)
from decision_engine.domain.models.budget import PHASE_BUDGET_SETTING, parse_amount
from decision_engine.domain.models.instance import (
    PhaseSchedule,
    ProcessInstance,
    ProcessStatus,
)
from decision_engine.domain.models.realtime import Channels

if TYPE_CHECKING:
    from decision_engine.application.dtos.instance import PhaseDatesDTO
    from decision_engine.application.ports.instance_repository import (
        InstanceRepositoryProtocol,
    )
    from decision_engine.application.ports.invite_repository import (
        InviteRepositoryProtocol,
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
    from decision_engine.domain.models.template import ProcessTemplate

logger = get_logger(__name__)

_UNSET: Any = object()


def _parse_budget(value: Any) -> Decimal | None:
    if value is None:
        return None
    amount = parse_amount(value)
    if amount is None:
        raise ValidationError(f"Budget must be numeric, got {value!r}")
    if amount < 0:
        raise NegativeBudgetError(amount)
    return amount


def _seed_budget(
    settings: Mapping[str, Any], budget: Decimal | None
) -> dict[str, Any]:
    seeded = dict(settings)
    if budget is not None:
        seeded[PHASE_BUDGET_SETTING] = budget
    else:
        seeded.pop(PHASE_BUDGET_SETTING, None)
    return seeded


def build_phase_schedule(
    template: ProcessTemplate,
    phase_schedule: Sequence[PhaseDatesDTO] | None,
    budget: Decimal | None,
) -> tuple[PhaseSchedule, ...]:
    """One schedule entry per template phase, dates applied by position.

    Raises:
        InvalidPhaseScheduleError: If more entries than phases are supplied,
            or an entry starts after it ends.
    """
    supplied = list(phase_schedule or ())
    if len(supplied) > len(template.phases):
        raise InvalidPhaseScheduleError(
            f"{len(supplied)} schedule entries for {len(template.phases)} phases"
        )

    entries = []
    for index, phase in enumerate(template.phases):
        dates = supplied[index] if index < len(supplied) else None
        settings: Mapping[str, Any] = dates.settings if dates is not None else {}
        if budget is not None:
            settings = _seed_budget(settings, budget)
        entries.append(
            PhaseSchedule(
                phase_id=phase.id,
                planned_start_date=dates.planned_start_date if dates else None,
                planned_end_date=dates.planned_end_date if dates else None,
                settings=dict(settings),
            )
        )
    return tuple(entries)


def validate_phase_settings(
    template: ProcessTemplate, phases: Sequence[PhaseSchedule]
) -> None:
    """Check each phase's effective settings against its settings schema.

    Raises:
        InvalidPhaseSettingsError: On the most relevant violation.
        InvalidTemplateError: If a settings schema is itself invalid.
    """
    for entry in phases:
        phase = template.get_phase(entry.phase_id)
        if phase is None or not phase.settings_schema:
            continue
        schema = dict(phase.settings_schema)
        validator_cls = validators.validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except jsonschema_exceptions.SchemaError as e:
            raise InvalidTemplateError(
                template.id, f"phase '{phase.id}' settings schema: {e.message}"
            ) from None

        settings = phase.effective_settings(entry.settings)
        error = jsonschema_exceptions.best_match(
            validator_cls(schema).iter_errors(settings)
        )
        if error is not None:
            path = "/".join(str(part) for part in error.absolute_path) or "$"
            raise InvalidPhaseSettingsError(phase.id, path, error.message)


class InstanceService:
    """Creates, reads and edits process instances.

    Example:
        >>> service = InstanceService(
        ...     instance_repo=instance_repo,
        ...     template_catalog=catalog,
        ...     time_authority=clock,
        ...     invalidation=invalidation,
        ... )
        >>> instance = await service.create_instance_from_template(
        ...     "simple_voting", "Neighbourhood budget 2026", budget=Decimal("50000")
        ... )
    """

    def __init__(
        self,
        instance_repo: InstanceRepositoryProtocol,
        template_catalog: TemplateCatalogProtocol,
        time_authority: TimeAuthorityProtocol,
        invalidation: InvalidationPublisher,
        invite_repo: InviteRepositoryProtocol | None = None,
    ) -> None:
        """Initialize the instance service.

        Args:
            instance_repo: Instance persistence.
            template_catalog: Read-only template lookup.
            time_authority: Clock for timestamps.
            invalidation: Publisher for realtime invalidations.
            invite_repo: Invite persistence, used for admin-role checks.
        """
        self._instance_repo = instance_repo
        self._template_catalog = template_catalog
        self._time = time_authority
        self._invalidation = invalidation
        self._invite_repo = invite_repo

    async def create_instance_from_template(
        self,
        template_id: str,
        name: str,
        budget: Any = None,
        phase_schedule: Sequence[PhaseDatesDTO] | None = None,
        categories: Sequence[str] = (),
        field_values: Mapping[str, Any] | None = None,
        owner_profile_id: UUID | None = None,
        status: ProcessStatus = ProcessStatus.PUBLISHED,
        invite_only: bool = False,
    ) -> ProcessInstance:
        """Create and persist an instance positioned on the template's first phase.

        Args:
            template_id: Template to instantiate.
            name: Instance display name.
            budget: Aggregate budget, seeded into every phase's settings.
            phase_schedule: Planned dates per phase, applied by position.
            categories: Categories proposals may use.
            field_values: Legacy free-form values.
            owner_profile_id: Creating profile.
            status: Initial status; PUBLISHED unless created as a draft.
            invite_only: Require accepted invites for participation.

        Returns:
            The persisted instance.

        Raises:
            TemplateNotFoundError: If the template id is unresolved.
            InvalidTemplateError: If the template has no phases.
            InvalidPhaseScheduleError: If the schedule does not fit the template.
            InvalidPhaseSettingsError: If phase settings break a settings schema.
        """
        log = logger.bind(template_id=template_id)
        if status.is_terminal():
            raise ValidationError(f"Cannot create an instance as {status.value}")

        template = await self._template_catalog.get_template(template_id)
        first_phase_id = template.first_phase_id
        if first_phase_id is None:
            log.warning("instance_creation_rejected", reason="template_has_no_phases")
            raise InvalidTemplateError(template_id, "template has no phases")

        parsed_budget = _parse_budget(budget)
        phases = build_phase_schedule(template, phase_schedule, parsed_budget)
        validate_phase_settings(template, phases)
        now = self._time.utcnow()
        instance = ProcessInstance(
            id=uuid4(),
            template_id=template.id,
            name=name,
            current_phase_id=first_phase_id,
            phases=phases,
            status=status,
            budget=parsed_budget,
            categories=tuple(dict.fromkeys(categories)),
            field_values=dict(field_values or {}),
            owner_profile_id=owner_profile_id,
            invite_only=invite_only,
            created_at=now,
            updated_at=now,
        )
        created = await self._instance_repo.create(instance)
        log.info(
            "instance_created",
            instance_id=str(created.id),
            current_phase_id=created.current_phase_id,
            phase_count=len(created.phases),
        )
        return created

    async def get_instance(self, instance_id: UUID) -> ProcessInstance:
        """Return the instance.

        Raises:
            InstanceNotFoundError: If it does not exist.
        """
        return await load_instance(self._instance_repo, instance_id)

    async def list_instances(
        self, status: ProcessStatus | None = None
    ) -> list[ProcessInstance]:
        return await self._instance_repo.list_instances(status)

    async def update_instance(
        self,
        instance_id: UUID,
        actor: ActorContext,
        expected_revision: int,
        *,
        name: str | None = None,
        budget: Any = _UNSET,
        categories: Sequence[str] | None = None,
        phase_schedule: Sequence[PhaseDatesDTO] | None = None,
        field_values: Mapping[str, Any] | None = None,
    ) -> ProcessInstance:
        """Apply an admin edit with compare-and-swap on the revision.

        The current phase and recorded phase results are never edited here;
        only the transition scheduler moves phases.

        Args:
            instance_id: Instance to edit.
            actor: The acting profile; must administer the instance.
            expected_revision: Revision the caller last read.
            name: New display name.
            budget: New aggregate budget (None clears it); also reseeded
                into every phase's settings.
            categories: Replacement category list.
            phase_schedule: Replacement planned dates/settings by position.
            field_values: Replacement legacy field values.

        Returns:
            The updated instance.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
            PermissionDeniedError: If the actor is not an admin.
            ConcurrencyConflictError: If the instance changed since it was read.
            InvalidPhaseSettingsError: If phase settings break a settings schema.
        """
        log = logger.bind(
            instance_id=str(instance_id),
            actor=str(actor.profile_id),
            expected_revision=expected_revision,
        )
        instance = await load_instance(self._instance_repo, instance_id)
        await require_admin(self._invite_repo, instance, actor)
        if instance.revision != expected_revision:
            log.info("instance_update_conflict", stored_revision=instance.revision)
            raise ConcurrencyConflictError(
                instance_id=instance_id,
                expected_revision=expected_revision,
                operation="instance_update",
            )

        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if categories is not None:
            changes["categories"] = tuple(dict.fromkeys(categories))
        if field_values is not None:
            changes["field_values"] = dict(field_values)

        phases = instance.phases
        settings_changed = phase_schedule is not None or budget is not _UNSET
        if settings_changed:
            template = await self._template_catalog.get_template(instance.template_id)
        if phase_schedule is not None:
            phases = build_phase_schedule(template, phase_schedule, None)
        if budget is not _UNSET:
            parsed_budget = _parse_budget(budget)
            changes["budget"] = parsed_budget
            phases = tuple(
                replace(entry, settings=_seed_budget(entry.settings, parsed_budget))
                for entry in phases
            )
        elif phase_schedule is not None and instance.budget is not None:
            phases = tuple(
                replace(entry, settings=_seed_budget(entry.settings, instance.budget))
                for entry in phases
            )
        if settings_changed:
            validate_phase_settings(template, phases)
        changes["phases"] = phases

        edited = instance.with_edits(self._time.utcnow(), **changes)
        updated = await self._instance_repo.update_cas(edited, expected_revision)
        log.info("instance_updated", fields=sorted(changes), revision=updated.revision)

        await self._invalidation.publish(
            [Channels.instance(instance_id), Channels.global_decisions()],
            payload={"type": "instance_updated"},
        )
        return updated
