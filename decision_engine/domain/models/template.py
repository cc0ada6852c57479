"""Process template domain models.

A template is an immutable, ordered list of phases deployed as
configuration. Each phase carries a rule set (which capabilities are
active), a JSON Schema for its settings whose `default` values are the
template defaults, and an optional selection pipeline compiled when the
template is loaded.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from decision_engine.domain.errors.validation import (
    InvalidSelectionPipelineError,
    InvalidTemplateError,
)
from decision_engine.domain.models.selection import SelectionOutcome
from decision_engine.domain.services.selection_pipeline import (
    SelectionPipeline,
    compile_selection_pipeline,
)


class AdvancementMethod(Enum):
    """How a phase ends.

    DATE: advanced by the transition scheduler once planned_end_date passes.
    MANUAL: advanced by an administrator (outside this engine).
    """

    DATE = "date"
    MANUAL = "manual"


@dataclass(frozen=True, eq=True)
class PhaseRules:
    """Capabilities active while a phase is current."""

    proposals_submit: bool = False
    voting_submit: bool = False
    review_required: bool = False
    advancement: AdvancementMethod = AdvancementMethod.DATE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PhaseRules:
        """Build rules from the nested `{proposals: {submit}, voting: {submit}}` shape."""
        proposals = data.get("proposals") or {}
        voting = data.get("voting") or {}
        review = data.get("review") or {}
        advancement = data.get("advancement") or {}
        return cls(
            proposals_submit=bool(proposals.get("submit", False)),
            voting_submit=bool(voting.get("submit", False)),
            review_required=bool(review.get("required", False)),
            advancement=AdvancementMethod(advancement.get("method", "date")),
        )


@dataclass(frozen=True, eq=True)
class PhaseDefinition:
    """One phase of a template.

    Attributes:
        id: Phase identifier, unique within the template.
        name: Display name.
        rules: Capabilities active during the phase.
        settings_schema: JSON Schema for phase settings.
        description: Optional description.
        selection_pipeline: Compiled pipeline run when the phase completes.
    """

    id: str
    name: str
    rules: PhaseRules = field(default_factory=PhaseRules)
    settings_schema: Mapping[str, Any] = field(default_factory=dict)
    description: str | None = None
    selection_pipeline: SelectionPipeline | None = field(default=None, compare=False)

    @property
    def default_settings(self) -> dict[str, Any]:
        """Template default settings taken from the schema's `default` values."""
        properties = self.settings_schema.get("properties") or {}
        return {
            name: prop["default"]
            for name, prop in properties.items()
            if isinstance(prop, Mapping) and "default" in prop
        }

    def effective_settings(self, overrides: Mapping[str, Any] | None) -> dict[str, Any]:
        """Template defaults overlaid with instance-specific settings."""
        settings = self.default_settings
        if overrides:
            settings.update(overrides)
        return settings


@dataclass(frozen=True, eq=True)
class ProcessTemplate:
    """An immutable multi-phase process definition.

    A template may declare zero phases; such a template is rejected when an
    instance is created from it, not when it is loaded.
    """

    id: str
    name: str
    phases: tuple[PhaseDefinition, ...] = ()
    proposal_schema: Mapping[str, Any] = field(default_factory=dict)
    description: str | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for phase in self.phases:
            if phase.id in seen:
                raise InvalidTemplateError(self.id, f"duplicate phase id '{phase.id}'")
            seen.add(phase.id)

    @property
    def phase_ids(self) -> tuple[str, ...]:
        return tuple(phase.id for phase in self.phases)

    @property
    def first_phase_id(self) -> str | None:
        return self.phases[0].id if self.phases else None

    @property
    def terminal_phase_id(self) -> str | None:
        return self.phases[-1].id if self.phases else None

    def get_phase(self, phase_id: str) -> PhaseDefinition | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def review_precedes(self, phase_id: str) -> bool:
        """Whether a review phase comes at or before `phase_id`."""
        for phase in self.phases:
            if phase.rules.review_required:
                return True
            if phase.id == phase_id:
                return False
        return False

    def next_phase_id(self, phase_id: str) -> str | None:
        """Return the phase immediately following `phase_id`, None for the last.

        Raises:
            InvalidTemplateError: If `phase_id` is not a phase of this template.
        """
        ids = self.phase_ids
        if phase_id not in ids:
            raise InvalidTemplateError(self.id, f"unknown phase '{phase_id}'")
        index = ids.index(phase_id)
        return ids[index + 1] if index + 1 < len(ids) else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProcessTemplate:
        """Parse a template definition, compiling every selection pipeline.

        Raises:
            InvalidTemplateError: If the definition is malformed.
        """
        template_id = data.get("id")
        if not template_id or not isinstance(template_id, str):
            raise InvalidTemplateError(str(template_id), "template id is required")

        raw_phases = data.get("phases") or []
        if not isinstance(raw_phases, list):
            raise InvalidTemplateError(template_id, "phases must be a list")

        phases = []
        for raw in raw_phases:
            if not isinstance(raw, Mapping) or not raw.get("id"):
                raise InvalidTemplateError(template_id, f"phase without id: {raw!r}")
            try:
                rules = PhaseRules.from_dict(raw.get("rules") or {})
            except ValueError as e:
                raise InvalidTemplateError(
                    template_id, f"phase '{raw['id']}' rules: {e}"
                ) from None

            pipeline = None
            if raw.get("selection_pipeline") is not None:
                default_outcome = (
                    SelectionOutcome.FUNDED
                    if rules.voting_submit
                    else SelectionOutcome.CARRIED_FORWARD
                )
                try:
                    pipeline = compile_selection_pipeline(
                        raw["selection_pipeline"], default_outcome
                    )
                except InvalidSelectionPipelineError as e:
                    raise InvalidTemplateError(
                        template_id, f"phase '{raw['id']}': {e}"
                    ) from None

            phases.append(
                PhaseDefinition(
                    id=str(raw["id"]),
                    name=str(raw.get("name", raw["id"])),
                    rules=rules,
                    settings_schema=dict(raw.get("settings_schema") or {}),
                    description=raw.get("description"),
                    selection_pipeline=pipeline,
                )
            )

        return cls(
            id=template_id,
            name=str(data.get("name", template_id)),
            phases=tuple(phases),
            proposal_schema=dict(data.get("proposal_schema") or {}),
            description=data.get("description"),
        )
