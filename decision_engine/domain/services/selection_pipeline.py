"""Selection pipeline: filter, rank, limit and budget-cap steps.

A pipeline is declared per phase in a template and compiled once when the
template is loaded. Every step is a pure function

    (candidates, context) -> candidates

and a compiled pipeline is simply the ordered tuple of those functions.
Running the same pipeline on the same candidates always yields the same
selections, which is what makes a failed transition safe to retry.

Step definitions (YAML/JSON mappings):

    {type: filter, min_votes: 1}
    {type: filter, categories: [parks, transit]}
    {type: filter, max_budget: 5000}
    {type: rank, by: votes | budget_normalized | budget | created_at, order: desc}
    {type: limit, count: 5}                       # or {variable: maxVotesPerMember}
    {type: budget_cap}                            # phase aggregate budget
    {type: budget_cap, budget: {variable: budget}, skip_oversized: true}

Ties are always broken by creation time, then proposal id.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Any

from decision_engine.domain.errors.validation import InvalidSelectionPipelineError
from decision_engine.domain.models.selection import (
    ProposalCandidate,
    ProposalSelection,
    SelectionContext,
    SelectionOutcome,
)

Candidates = tuple[ProposalCandidate, ...]
SelectionStep = Callable[[Candidates, SelectionContext], Candidates]

PIPELINE_OUTCOMES = {
    SelectionOutcome.FUNDED.value: SelectionOutcome.FUNDED,
    SelectionOutcome.CARRIED_FORWARD.value: SelectionOutcome.CARRIED_FORWARD,
}


def _tie_break_key(candidate: ProposalCandidate) -> tuple[Any, str]:
    return (candidate.created_at, str(candidate.proposal_id))


def _resolve_value(
    value: Any, context: SelectionContext, step_type: str, name: str
) -> Any:
    """Resolve a literal or a `{variable: name}` reference against phase settings."""
    if isinstance(value, Mapping):
        variable = value.get("variable")
        if variable not in context.variables:
            raise InvalidSelectionPipelineError(
                step_type,
                f"{name} refers to unknown variable '{variable}' "
                f"in phase '{context.phase_id}'",
            )
        return context.variables[variable]
    return value


def _as_decimal(value: Any, step_type: str, name: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidSelectionPipelineError(step_type, f"{name} must be numeric")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidSelectionPipelineError(
            step_type, f"{name} must be numeric, got {value!r}"
        ) from None


# =============================================================================
# Steps
# =============================================================================


def filter_min_votes(
    candidates: Candidates, context: SelectionContext, *, min_votes: Any
) -> Candidates:
    threshold = int(_resolve_value(min_votes, context, "filter", "min_votes"))
    return tuple(c for c in candidates if c.vote_count >= threshold)


def filter_categories(
    candidates: Candidates, context: SelectionContext, *, categories: frozenset[str]
) -> Candidates:
    return tuple(c for c in candidates if categories.intersection(c.category_ids))


def filter_max_budget(
    candidates: Candidates, context: SelectionContext, *, max_budget: Any
) -> Candidates:
    ceiling = _as_decimal(
        _resolve_value(max_budget, context, "filter", "max_budget"),
        "filter",
        "max_budget",
    )
    return tuple(c for c in candidates if c.budget_or_zero <= ceiling)


def _budget_normalized_score(candidate: ProposalCandidate) -> Decimal:
    """Votes per unit of requested budget; unbudgeted proposals score raw votes."""
    if candidate.budget is None or candidate.budget <= 0:
        return Decimal(candidate.vote_count)
    return Decimal(candidate.vote_count) / candidate.budget


RANK_KEY_FUNCTIONS: dict[str, Callable[[ProposalCandidate], Any]] = {
    "votes": lambda c: c.vote_count,
    "budget_normalized": _budget_normalized_score,
    "budget": lambda c: c.budget_or_zero,
    "created_at": lambda c: c.created_at,
}
RANK_KEYS = frozenset(RANK_KEY_FUNCTIONS)


def rank_candidates(
    candidates: Candidates,
    context: SelectionContext,
    *,
    by: str,
    descending: bool,
) -> Candidates:
    ordered = sorted(candidates, key=_tie_break_key)
    primary = RANK_KEY_FUNCTIONS[by]
    # sorted() is stable, so equal primaries keep the tie-break order.
    return tuple(sorted(ordered, key=primary, reverse=descending))


def limit_candidates(
    candidates: Candidates, context: SelectionContext, *, count: Any
) -> Candidates:
    resolved = _resolve_value(count, context, "limit", "count")
    if isinstance(resolved, bool) or not isinstance(resolved, int) or resolved < 0:
        raise InvalidSelectionPipelineError(
            "limit", f"count must be a non-negative integer, got {resolved!r}"
        )
    return candidates[:resolved]


def cap_by_budget(
    candidates: Candidates,
    context: SelectionContext,
    *,
    budget: Any,
    skip_oversized: bool,
) -> Candidates:
    """Greedy cumulative-budget cutoff in rank order (not an optimal subset)."""
    if budget is None:
        if context.aggregate_budget is None:
            return candidates
        available = context.aggregate_budget
    else:
        available = _as_decimal(
            _resolve_value(budget, context, "budget_cap", "budget"),
            "budget_cap",
            "budget",
        )

    kept: list[ProposalCandidate] = []
    spent = Decimal("0")
    for candidate in candidates:
        if spent + candidate.budget_or_zero <= available:
            kept.append(candidate)
            spent += candidate.budget_or_zero
        elif not skip_oversized:
            break
    return tuple(kept)


# =============================================================================
# Compilation
# =============================================================================


def _build_filter(definition: Mapping[str, Any]) -> SelectionStep:
    if "min_votes" in definition:
        return partial(filter_min_votes, min_votes=definition["min_votes"])
    if "categories" in definition:
        categories = definition["categories"]
        if not isinstance(categories, Sequence) or isinstance(categories, str):
            raise InvalidSelectionPipelineError("filter", "categories must be a list")
        return partial(filter_categories, categories=frozenset(map(str, categories)))
    if "max_budget" in definition:
        return partial(filter_max_budget, max_budget=definition["max_budget"])
    raise InvalidSelectionPipelineError(
        "filter", "expected one of min_votes, categories, max_budget"
    )


def _build_rank(definition: Mapping[str, Any]) -> SelectionStep:
    by = definition.get("by", "votes")
    if by not in RANK_KEYS:
        raise InvalidSelectionPipelineError(
            "rank", f"unknown rank key '{by}', expected one of {sorted(RANK_KEYS)}"
        )
    order = definition.get("order", "desc")
    if order not in ("asc", "desc"):
        raise InvalidSelectionPipelineError("rank", f"unknown order '{order}'")
    return partial(rank_candidates, by=by, descending=order == "desc")


def _build_limit(definition: Mapping[str, Any]) -> SelectionStep:
    if "count" not in definition:
        raise InvalidSelectionPipelineError("limit", "count is required")
    return partial(limit_candidates, count=definition["count"])


def _build_budget_cap(definition: Mapping[str, Any]) -> SelectionStep:
    return partial(
        cap_by_budget,
        budget=definition.get("budget"),
        skip_oversized=bool(definition.get("skip_oversized", False)),
    )


STEP_BUILDERS: dict[str, Callable[[Mapping[str, Any]], SelectionStep]] = {
    "filter": _build_filter,
    "rank": _build_rank,
    "limit": _build_limit,
    "budget_cap": _build_budget_cap,
}


@dataclass(frozen=True)
class SelectionPipeline:
    """A compiled, ordered sequence of pure selection steps.

    Attributes:
        steps: The compiled step functions, applied in order.
        outcome: Outcome given to candidates that survive every step.
        definition: The raw step definitions, kept for introspection.
    """

    steps: tuple[SelectionStep, ...]
    outcome: SelectionOutcome = SelectionOutcome.FUNDED
    definition: tuple[Mapping[str, Any], ...] = ()

    def select(
        self, candidates: Sequence[ProposalCandidate], context: SelectionContext
    ) -> Candidates:
        """Apply every step and return the surviving candidates in rank order."""
        current: Candidates = tuple(sorted(candidates, key=_tie_break_key))
        for step in self.steps:
            current = step(current, context)
        return current

    def run(
        self, candidates: Sequence[ProposalCandidate], context: SelectionContext
    ) -> tuple[ProposalSelection, ...]:
        """Run the pipeline and assign an outcome to every candidate.

        Survivors receive `outcome` and a 1-based rank; funded survivors are
        allocated their requested budget. Every other candidate is rejected.

        Raises:
            InvalidSelectionPipelineError: If a step cannot resolve its inputs.
        """
        selected = self.select(candidates, context)
        selected_ids = {c.proposal_id for c in selected}

        selections = [
            ProposalSelection(
                proposal_id=candidate.proposal_id,
                outcome=self.outcome,
                vote_count=candidate.vote_count,
                rank=rank,
                allocated=(
                    candidate.budget_or_zero
                    if self.outcome is SelectionOutcome.FUNDED
                    else Decimal("0")
                ),
            )
            for rank, candidate in enumerate(selected, start=1)
        ]
        selections.extend(
            ProposalSelection(
                proposal_id=candidate.proposal_id,
                outcome=SelectionOutcome.REJECTED,
                vote_count=candidate.vote_count,
            )
            for candidate in sorted(candidates, key=_tie_break_key)
            if candidate.proposal_id not in selected_ids
        )
        return tuple(selections)


def compile_selection_pipeline(
    definition: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    default_outcome: SelectionOutcome = SelectionOutcome.FUNDED,
) -> SelectionPipeline:
    """Compile a pipeline definition into a `SelectionPipeline`.

    Accepts either a bare list of steps or a mapping with `steps` and an
    optional `outcome` (`funded` or `carried_forward`).

    Raises:
        InvalidSelectionPipelineError: If any step is malformed.
    """
    outcome = default_outcome
    if isinstance(definition, Mapping):
        raw_outcome = definition.get("outcome")
        if raw_outcome is not None:
            if raw_outcome not in PIPELINE_OUTCOMES:
                raise InvalidSelectionPipelineError(
                    None, f"unknown outcome '{raw_outcome}'"
                )
            outcome = PIPELINE_OUTCOMES[raw_outcome]
        raw_steps = definition.get("steps", ())
    else:
        raw_steps = definition

    if isinstance(raw_steps, (str, bytes)) or not isinstance(raw_steps, Sequence):
        raise InvalidSelectionPipelineError(None, "steps must be a list")

    steps: list[SelectionStep] = []
    for raw in raw_steps:
        if not isinstance(raw, Mapping):
            raise InvalidSelectionPipelineError(None, f"step must be a mapping: {raw!r}")
        step_type = raw.get("type")
        builder = STEP_BUILDERS.get(step_type) if isinstance(step_type, str) else None
        if builder is None:
            raise InvalidSelectionPipelineError(
                str(step_type), f"expected one of {sorted(STEP_BUILDERS)}"
            )
        steps.append(builder(raw))

    return SelectionPipeline(
        steps=tuple(steps),
        outcome=outcome,
        definition=tuple(dict(raw) for raw in raw_steps),
    )
