"""Builders for decision engine domain objects used across tests."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from decision_engine.application.dtos.instance import PhaseDatesDTO
from decision_engine.domain.models.ballot import Ballot
from decision_engine.domain.models.instance import (
    PhaseSchedule,
    ProcessInstance,
    ProcessStatus,
)
from decision_engine.domain.models.proposal import Proposal, ReviewDecision
from decision_engine.domain.models.template import ProcessTemplate

T0 = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

PROPOSE_VOTE_TEMPLATE: dict[str, Any] = {
    "id": "propose_vote",
    "name": "Propose and Vote",
    "proposal_schema": {
        "type": "object",
        "required": ["title"],
        "properties": {
            "title": {"type": "string", "minLength": 1},
            "summary": {"type": "string"},
            "budget": {"type": "number", "minimum": 0, "maximum": 50000},
        },
    },
    "phases": [
        {
            "id": "propose",
            "name": "Propose",
            "rules": {"proposals": {"submit": True}},
        },
        {
            "id": "vote",
            "name": "Vote",
            "rules": {"voting": {"submit": True}},
            "settings_schema": {
                "type": "object",
                "properties": {
                    "maxVotesPerMember": {"type": "integer", "default": 3},
                },
            },
            "selection_pipeline": {
                "outcome": "funded",
                "steps": [
                    {"type": "filter", "min_votes": 1},
                    {"type": "rank", "by": "votes", "order": "desc"},
                    {"type": "budget_cap"},
                ],
            },
        },
    ],
}

NO_PHASE_TEMPLATE: dict[str, Any] = {"id": "empty", "name": "Empty", "phases": []}


def template_data(**overrides: Any) -> dict[str, Any]:
    """Deep copy of the propose/vote template definition with top-level overrides."""
    data = copy.deepcopy(PROPOSE_VOTE_TEMPLATE)
    data.update(overrides)
    return data


def reviewed_template_data() -> dict[str, Any]:
    """Propose, admin review, then vote."""
    data = template_data(id="propose_review_vote")
    data["phases"].insert(
        1, {"id": "review", "name": "Review", "rules": {"review": {"required": True}}}
    )
    return data


def make_template(data: dict[str, Any] | None = None) -> ProcessTemplate:
    return ProcessTemplate.from_dict(data if data is not None else template_data())


def phase_dates(
    count: int,
    start: datetime = T0,
    days_per_phase: int = 7,
    last_open_ended: bool = False,
) -> list[PhaseDatesDTO]:
    """Back-to-back phase dates starting at `start`."""
    dates = []
    for index in range(count):
        phase_start = start + timedelta(days=days_per_phase * index)
        phase_end = phase_start + timedelta(days=days_per_phase)
        if last_open_ended and index == count - 1:
            phase_end = None
        dates.append(
            PhaseDatesDTO(planned_start_date=phase_start, planned_end_date=phase_end)
        )
    return dates


def make_instance(
    template: ProcessTemplate,
    *,
    current_phase_id: str | None = None,
    end_dates: dict[str, datetime | None] | None = None,
    settings: dict[str, dict[str, Any]] | None = None,
    status: ProcessStatus = ProcessStatus.PUBLISHED,
    budget: Decimal | None = None,
    categories: tuple[str, ...] = (),
    field_values: dict[str, Any] | None = None,
    owner_profile_id: UUID | None = None,
    invite_only: bool = False,
    revision: int = 0,
) -> ProcessInstance:
    """Build an instance of `template` directly, bypassing the service."""
    end_dates = end_dates or {}
    settings = settings or {}
    return ProcessInstance(
        id=uuid4(),
        template_id=template.id,
        name="Test instance",
        current_phase_id=current_phase_id or template.phases[0].id,
        phases=tuple(
            PhaseSchedule(
                phase_id=phase.id,
                planned_end_date=end_dates.get(phase.id),
                settings=settings.get(phase.id, {}),
            )
            for phase in template.phases
        ),
        status=status,
        budget=budget,
        categories=categories,
        field_values=field_values or {},
        owner_profile_id=owner_profile_id,
        invite_only=invite_only,
        revision=revision,
        created_at=T0,
        updated_at=T0,
    )


def make_proposal(
    instance_id: UUID,
    *,
    budget: Decimal | int | None = None,
    created_at: datetime = T0,
    submitted: bool = True,
    review_decision: ReviewDecision = ReviewDecision.PENDING,
    category_ids: tuple[str, ...] = (),
    proposal_id: UUID | None = None,
    author_profile_id: UUID | None = None,
) -> Proposal:
    return Proposal(
        id=proposal_id or uuid4(),
        instance_id=instance_id,
        author_profile_id=author_profile_id or uuid4(),
        title="Proposal",
        content={"title": "Proposal"},
        category_ids=category_ids,
        budget=Decimal(budget) if budget is not None else None,
        submitted_at=created_at if submitted else None,
        submitted_phase_id="propose" if submitted else None,
        review_decision=review_decision,
        created_at=created_at,
        updated_at=created_at,
    )


def make_ballot(
    instance_id: UUID,
    phase_id: str,
    selections: list[UUID],
    member_profile_id: UUID | None = None,
) -> Ballot:
    return Ballot.create(
        ballot_id=uuid4(),
        instance_id=instance_id,
        phase_id=phase_id,
        member_profile_id=member_profile_id or uuid4(),
        selected_proposal_ids=tuple(selections),
        submitted_at=T0,
    )
