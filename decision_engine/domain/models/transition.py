"""Transition scheduler result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID


class TransitionAction(Enum):
    """Outcome of processing one candidate instance.

    ADVANCED: moved to the following phase.
    COMPLETED: last phase expired; instance is now completed.
    SKIPPED: another writer already moved the instance off the expired phase.
    FAILED: the instance could not be advanced this tick.
    """

    ADVANCED = "advanced"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class InstanceTransitionResult:
    """Result of processing one candidate instance."""

    instance_id: UUID
    action: TransitionAction
    from_phase_id: str
    to_phase_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TransitionSummary:
    """Aggregate outcome of one scheduler tick.

    Attributes:
        processed: Instances advanced or completed.
        failed: Instances whose advancement failed.
        skipped: Candidates another writer had already advanced.
        errors: One message per failure, prefixed with the instance id.
        results: Per-instance details.
    """

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()
    results: tuple[InstanceTransitionResult, ...] = field(default=(), repr=False)

    @classmethod
    def from_results(cls, results: list[InstanceTransitionResult]) -> TransitionSummary:
        processed = sum(
            1
            for r in results
            if r.action in (TransitionAction.ADVANCED, TransitionAction.COMPLETED)
        )
        failures = [r for r in results if r.action is TransitionAction.FAILED]
        return cls(
            processed=processed,
            failed=len(failures),
            skipped=sum(1 for r in results if r.action is TransitionAction.SKIPPED),
            errors=tuple(f"{r.instance_id}: {r.error}" for r in failures),
            results=tuple(results),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }
