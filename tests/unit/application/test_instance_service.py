"""Unit tests for InstanceService: creation from templates and admin edits."""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from decision_engine.application.dtos.instance import PhaseDatesDTO
from decision_engine.bootstrap.container import EngineContainer
from decision_engine.domain.errors.concurrency import ConcurrencyConflictError
from decision_engine.domain.errors.not_found import (
    InstanceNotFoundError,
    TemplateNotFoundError,
)
from decision_engine.domain.errors.permission import PermissionDeniedError
from decision_engine.domain.errors.validation import (
    InvalidPhaseScheduleError,
    InvalidPhaseSettingsError,
    InvalidTemplateError,
    NegativeBudgetError,
    ValidationError,
)
from decision_engine.domain.models.actor import ActorContext
from decision_engine.domain.models.instance import ProcessStatus
from decision_engine.domain.models.realtime import Channels
from tests.helpers.decision_builders import NO_PHASE_TEMPLATE, T0, make_template, phase_dates


@pytest.fixture
def owner():
    return ActorContext(profile_id=uuid4())


@pytest.fixture
def service(container):
    """Instance service wired to in-memory stubs."""
    return container.instance_service


@pytest.fixture
async def instance(service, owner):
    """A published propose/vote instance with budget 1000."""
    return await service.create_instance_from_template(
        "propose_vote",
        "Parks 2026",
        budget=1000,
        phase_schedule=phase_dates(2),
        categories=["parks", "roads"],
        owner_profile_id=owner.profile_id,
    )


class TestCreateInstance:
    """Tests for create_instance_from_template."""

    @pytest.mark.asyncio
    async def test_positioned_on_first_phase(self, instance) -> None:
        """Test that a new instance starts on the template's first phase."""
        assert instance.current_phase_id == "propose"
        assert instance.status is ProcessStatus.PUBLISHED
        assert instance.revision == 0

    @pytest.mark.asyncio
    async def test_one_schedule_entry_per_phase(self, instance) -> None:
        """Test that every template phase gets a schedule entry with its dates."""
        assert [p.phase_id for p in instance.phases] == ["propose", "vote"]
        assert instance.phases[0].planned_end_date == T0 + timedelta(days=7)
        assert instance.phases[1].planned_end_date == T0 + timedelta(days=14)

    @pytest.mark.asyncio
    async def test_budget_seeded_into_phase_settings(self, instance) -> None:
        """Test that the aggregate budget is copied into every phase's settings."""
        assert instance.budget == Decimal("1000")
        assert all(p.settings["budget"] == Decimal("1000") for p in instance.phases)

    @pytest.mark.asyncio
    async def test_missing_dates_left_open(self, service) -> None:
        """Test that phases without supplied dates are open-ended."""
        instance = await service.create_instance_from_template(
            "propose_vote", "No dates"
        )

        assert all(p.planned_end_date is None for p in instance.phases)
        assert instance.budget is None

    @pytest.mark.asyncio
    async def test_persisted(self, service, instance) -> None:
        """Test that the created instance can be read back."""
        assert await service.get_instance(instance.id) == instance

    @pytest.mark.asyncio
    async def test_creation_does_not_publish(self, container, instance) -> None:
        """Test that the service leaves announcing new instances to callers."""
        assert container.realtime_publisher.messages == []

    @pytest.mark.asyncio
    async def test_unknown_template(self, service) -> None:
        """Test that an unresolved template id is a not-found error."""
        with pytest.raises(TemplateNotFoundError):
            await service.create_instance_from_template("nope", "x")

    @pytest.mark.asyncio
    async def test_template_without_phases_rejected(
        self, service, template_catalog
    ) -> None:
        """Test that a zero-phase template cannot be instantiated."""
        template_catalog.add(make_template(NO_PHASE_TEMPLATE))

        with pytest.raises(InvalidTemplateError, match="no phases"):
            await service.create_instance_from_template("empty", "x")

    @pytest.mark.asyncio
    async def test_too_many_schedule_entries(self, service) -> None:
        """Test that more schedule entries than phases are rejected."""
        with pytest.raises(InvalidPhaseScheduleError):
            await service.create_instance_from_template(
                "propose_vote", "x", phase_schedule=phase_dates(3)
            )

    @pytest.mark.asyncio
    async def test_dates_without_timezone_rejected(self, service) -> None:
        """Test that a deadline without a timezone is a schedule error."""
        schedule = [
            PhaseDatesDTO(planned_start_date=T0, planned_end_date=datetime(2026, 1, 8))
        ]

        with pytest.raises(InvalidPhaseScheduleError, match="no timezone"):
            await service.create_instance_from_template(
                "propose_vote", "x", phase_schedule=schedule
            )

    @pytest.mark.asyncio
    async def test_negative_budget(self, service) -> None:
        """Test that a negative aggregate budget is rejected."""
        with pytest.raises(NegativeBudgetError):
            await service.create_instance_from_template("propose_vote", "x", budget=-1)

    @pytest.mark.asyncio
    async def test_cannot_create_completed(self, service) -> None:
        """Test that instances cannot be created in a terminal status."""
        with pytest.raises(ValidationError):
            await service.create_instance_from_template(
                "propose_vote", "x", status=ProcessStatus.COMPLETED
            )

    @pytest.mark.asyncio
    async def test_settings_checked_against_schema(self, container, service) -> None:
        """Test that a text vote limit is refused before the instance exists."""
        schedule = [PhaseDatesDTO(), PhaseDatesDTO(settings={"maxVotesPerMember": "2"})]

        with pytest.raises(InvalidPhaseSettingsError) as exc_info:
            await service.create_instance_from_template(
                "propose_vote", "x", phase_schedule=schedule
            )

        assert exc_info.value.phase_id == "vote"
        assert exc_info.value.path == "maxVotesPerMember"
        assert await container.repositories.instances.list_instances() == []

    @pytest.mark.asyncio
    async def test_packaged_template_settings(self, fake_time_authority) -> None:
        """Test that the seeded budget and integer overrides pass the packaged schemas."""
        engine = EngineContainer.in_memory(time_authority=fake_time_authority)

        created = await engine.instance_service.create_instance_from_template(
            "simple_voting",
            "x",
            budget=5000,
            phase_schedule=[
                PhaseDatesDTO(),
                PhaseDatesDTO(),
                PhaseDatesDTO(settings={"maxVotesPerMember": 2}),
            ],
        )
        assert created.phases[2].settings["maxVotesPerMember"] == 2

        with pytest.raises(InvalidPhaseSettingsError):
            await engine.instance_service.create_instance_from_template(
                "single_round",
                "x",
                phase_schedule=[
                    PhaseDatesDTO(),
                    PhaseDatesDTO(settings={"maxVotesPerMember": 0}),
                ],
            )


class TestGetAndList:
    """Tests for get_instance and list_instances."""

    @pytest.mark.asyncio
    async def test_get_missing(self, service) -> None:
        """Test that reading an unknown instance raises not found."""
        with pytest.raises(InstanceNotFoundError):
            await service.get_instance(uuid4())

    @pytest.mark.asyncio
    async def test_list_by_status(self, service, instance) -> None:
        """Test that listing filters on status."""
        draft = await service.create_instance_from_template(
            "propose_vote", "Draft", status=ProcessStatus.DRAFT
        )

        published = await service.list_instances(ProcessStatus.PUBLISHED)
        everything = await service.list_instances()

        assert [i.id for i in published] == [instance.id]
        assert {i.id for i in everything} == {instance.id, draft.id}


class TestUpdateInstance:
    """Tests for compare-and-swap admin edits."""

    @pytest.mark.asyncio
    async def test_owner_edit_bumps_revision(self, service, instance, owner) -> None:
        """Test that an edit by the owner is applied and bumps the revision."""
        updated = await service.update_instance(
            instance.id, owner, 0, name="Parks 2027", categories=["parks"]
        )

        assert updated.name == "Parks 2027"
        assert updated.categories == ("parks",)
        assert updated.revision == 1
        assert updated.current_phase_id == instance.current_phase_id

    @pytest.mark.asyncio
    async def test_stale_revision_conflicts(self, service, instance, owner) -> None:
        """Test that editing from a stale read raises a concurrency conflict."""
        await service.update_instance(instance.id, owner, 0, name="First")

        with pytest.raises(ConcurrencyConflictError):
            await service.update_instance(instance.id, owner, 0, name="Second")

        assert (await service.get_instance(instance.id)).name == "First"

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, service, instance) -> None:
        """Test that members without the admin role cannot edit."""
        stranger = ActorContext(profile_id=uuid4())

        with pytest.raises(PermissionDeniedError):
            await service.update_instance(instance.id, stranger, 0, name="Mine")

    @pytest.mark.asyncio
    async def test_platform_admin_allowed(self, service, instance) -> None:
        """Test that platform admins may edit any instance."""
        admin = ActorContext(profile_id=uuid4(), is_admin=True)

        updated = await service.update_instance(instance.id, admin, 0, name="Admin edit")

        assert updated.name == "Admin edit"

    @pytest.mark.asyncio
    async def test_budget_change_reseeds_settings(self, service, instance, owner) -> None:
        """Test that a new budget is written to every phase's settings."""
        updated = await service.update_instance(instance.id, owner, 0, budget=2500)

        assert updated.budget == Decimal("2500")
        assert all(p.settings["budget"] == Decimal("2500") for p in updated.phases)

    @pytest.mark.asyncio
    async def test_budget_cleared(self, service, instance, owner) -> None:
        """Test that budget=None clears the budget and the seeded settings."""
        updated = await service.update_instance(instance.id, owner, 0, budget=None)

        assert updated.budget is None
        assert all("budget" not in p.settings for p in updated.phases)

    @pytest.mark.asyncio
    async def test_omitted_budget_unchanged(self, service, instance, owner) -> None:
        """Test that omitting the budget leaves it as it was."""
        updated = await service.update_instance(instance.id, owner, 0, name="Renamed")

        assert updated.budget == Decimal("1000")

    @pytest.mark.asyncio
    async def test_new_schedule_keeps_budget(self, service, instance, owner) -> None:
        """Test that replacing the schedule keeps the seeded budget."""
        updated = await service.update_instance(
            instance.id, owner, 0, phase_schedule=phase_dates(2, days_per_phase=3)
        )

        assert updated.phases[0].planned_end_date == T0 + timedelta(days=3)
        assert updated.phases[0].settings["budget"] == Decimal("1000")

    @pytest.mark.asyncio
    async def test_edit_publishes_with_one_mutation_id(
        self, container, service, instance, owner
    ) -> None:
        """Test that one edit reaches the instance and global channels with one id."""
        await service.update_instance(instance.id, owner, 0, name="Renamed")

        messages = container.realtime_publisher.messages
        assert [m.channel for m in messages] == [
            Channels.instance(instance.id),
            Channels.global_decisions(),
        ]
        assert len({m.mutation_id for m in messages}) == 1

    @pytest.mark.asyncio
    async def test_invalid_settings_edit_rejected(
        self, container, service, instance, owner
    ) -> None:
        """Test that an edit breaking the settings schema leaves the instance alone."""
        schedule = [PhaseDatesDTO(), PhaseDatesDTO(settings={"maxVotesPerMember": "2"})]

        with pytest.raises(InvalidPhaseSettingsError):
            await service.update_instance(instance.id, owner, 0, phase_schedule=schedule)

        stored = await container.repositories.instances.get(instance.id)
        assert stored.revision == 0
        assert container.realtime_publisher.messages == []
