"""Process instance domain models.

A process instance is one running decision process created from a
template. It is the aggregate root for proposals, ballots and invites.

State rules:
- `current_phase_id` always references a phase of the owning template and is
  changed only by the transition scheduler.
- When the last phase's deadline passes the instance becomes COMPLETED and
  `current_phase_id` stays on the last phase.
- Every persisted write increments `revision`, which together with the
  observed phase id keys compare-and-swap updates.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from decision_engine.domain.errors.validation import InvalidPhaseScheduleError
from decision_engine.domain.models.budget import parse_amount
from decision_engine.domain.models.selection import PhaseSelectionResult


class ProcessStatus(Enum):
    """Lifecycle status of a process instance.

    Only PUBLISHED instances accept participation and are advanced by the
    transition scheduler.
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self in (ProcessStatus.COMPLETED, ProcessStatus.CANCELLED)


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Stored legacy values without an offset are read as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value))
    return _as_utc(value)


@dataclass(frozen=True, eq=True)
class PhaseSchedule:
    """Per-instance schedule entry for one template phase.

    Attributes:
        phase_id: Template phase this entry belongs to.
        planned_start_date: Planned start, informational.
        planned_end_date: Deadline; None means the phase is open-ended.
        settings: Instance overrides of the template's phase settings.
    """

    phase_id: str
    planned_start_date: datetime | None = None
    planned_end_date: datetime | None = None
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Deadlines are compared with an aware clock.
        for label, value in (
            ("start", self.planned_start_date),
            ("end", self.planned_end_date),
        ):
            if value is not None and value.tzinfo is None:
                raise InvalidPhaseScheduleError(
                    f"phase '{self.phase_id}' planned {label} date has no timezone"
                )
        if (
            self.planned_start_date is not None
            and self.planned_end_date is not None
            and self.planned_start_date > self.planned_end_date
        ):
            raise InvalidPhaseScheduleError(
                f"phase '{self.phase_id}' starts after it ends"
            )

    def is_expired(self, now: datetime) -> bool:
        if self.planned_end_date is None:
            return False
        return _as_utc(now) >= self.planned_end_date

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase_id": self.phase_id,
            "planned_start_date": (
                self.planned_start_date.isoformat() if self.planned_start_date else None
            ),
            "planned_end_date": (
                self.planned_end_date.isoformat() if self.planned_end_date else None
            ),
            "settings": dict(self.settings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PhaseSchedule:
        return cls(
            phase_id=str(data["phase_id"]),
            planned_start_date=_parse_datetime(data.get("planned_start_date")),
            planned_end_date=_parse_datetime(data.get("planned_end_date")),
            settings=dict(data.get("settings") or {}),
        )


@dataclass(frozen=True, eq=True)
class ProcessInstance:
    """One running decision process.

    Attributes:
        id: Instance identifier.
        template_id: Owning template.
        name: Display name.
        current_phase_id: The active phase.
        phases: One schedule entry per template phase, in template order.
        status: Lifecycle status.
        budget: Optional aggregate budget for the process.
        categories: Categories proposals may be tagged with.
        field_values: Free-form legacy answers not otherwise modeled.
        owner_profile_id: Profile that created the instance.
        invite_only: Whether participation requires an accepted invite.
        phase_results: Persisted outcomes of completed phases, oldest first.
        revision: Incremented on every persisted write.
    """

    id: UUID
    template_id: str
    name: str
    current_phase_id: str
    phases: tuple[PhaseSchedule, ...]
    status: ProcessStatus = ProcessStatus.PUBLISHED
    budget: Decimal | None = None
    categories: tuple[str, ...] = ()
    field_values: Mapping[str, Any] = field(default_factory=dict)
    owner_profile_id: UUID | None = None
    invite_only: bool = False
    phase_results: tuple[PhaseSelectionResult, ...] = ()
    revision: int = 0
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        phase_ids = [entry.phase_id for entry in self.phases]
        if self.current_phase_id not in phase_ids:
            raise InvalidPhaseScheduleError(
                f"current phase '{self.current_phase_id}' has no schedule entry"
            )
        if len(set(phase_ids)) != len(phase_ids):
            raise InvalidPhaseScheduleError("duplicate phase schedule entries")

    def schedule_for(self, phase_id: str) -> PhaseSchedule | None:
        for entry in self.phases:
            if entry.phase_id == phase_id:
                return entry
        return None

    @property
    def current_schedule(self) -> PhaseSchedule:
        entry = self.schedule_for(self.current_phase_id)
        assert entry is not None  # guaranteed by __post_init__
        return entry

    @property
    def is_active(self) -> bool:
        return self.status is ProcessStatus.PUBLISHED

    def is_due_for_transition(self, now: datetime) -> bool:
        """Whether the scheduler should advance this instance at `now`."""
        return self.is_active and self.current_schedule.is_expired(now)

    def latest_result(self, voting_only: bool = False) -> PhaseSelectionResult | None:
        for result in reversed(self.phase_results):
            if not voting_only or result.voting_phase:
                return result
        return None

    def carried_forward_ids(self) -> frozenset[UUID] | None:
        """Proposals carried forward by the most recent carrying result, if any."""
        for result in reversed(self.phase_results):
            if result.pipeline_applied and not result.voting_phase:
                return result.carried_forward_ids
        return None

    def aggregate_budget_for(self, settings: Mapping[str, Any]) -> Decimal | None:
        """Phase settings budget if present, otherwise the instance budget."""
        amount = parse_amount(settings.get("budget"))
        return amount if amount is not None else self.budget

    def with_phase_advanced(
        self,
        next_phase_id: str | None,
        result: PhaseSelectionResult | None,
        now: datetime,
    ) -> ProcessInstance:
        """Return the instance after its current phase completes.

        Args:
            next_phase_id: The following phase, or None when the current
                phase is the last one (the instance completes).
            result: Selection outcome recorded for the completing phase.
            now: Transition time.
        """
        results = self.phase_results + ((result,) if result is not None else ())
        if next_phase_id is None:
            return replace(
                self,
                status=ProcessStatus.COMPLETED,
                phase_results=results,
                revision=self.revision + 1,
                updated_at=now,
                completed_at=now,
            )
        return replace(
            self,
            current_phase_id=next_phase_id,
            phase_results=results,
            revision=self.revision + 1,
            updated_at=now,
        )

    def with_edits(self, now: datetime, **changes: Any) -> ProcessInstance:
        """Return a copy with admin edits applied and the revision bumped."""
        return replace(self, revision=self.revision + 1, updated_at=now, **changes)
