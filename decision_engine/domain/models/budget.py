"""Effective budget cap resolution.

The effective cap for proposal budgets comes from exactly one of three
sources, checked in order; the first present wins and sources are never
merged or averaged:

1. The current phase's effective settings `budget` (template default
   overlaid with the instance's schedule entry settings).
2. The template proposal schema's declared maximum, either
   `properties.budget.maximum` or, for money-shaped budgets,
   `properties.budget.properties.amount.maximum`.
3. The legacy flat `field_values.budgetCapAmount`.

The third tier is migration debt: instances that still rely on it are
logged so they can be moved onto phase settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from decision_engine.domain.models.instance import ProcessInstance
    from decision_engine.domain.models.template import ProcessTemplate

LEGACY_BUDGET_CAP_FIELD = "budgetCapAmount"
PHASE_BUDGET_SETTING = "budget"


def parse_amount(value: Any) -> Decimal | None:
    """Parse a numeric amount, returning None for absent or non-numeric values.

    Money-shaped values (`{"amount": 100, "currency": "USD"}`) are unwrapped.
    Booleans are not amounts.
    """
    if isinstance(value, Mapping):
        value = value.get("amount")
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    return None


@dataclass(frozen=True, eq=True)
class PhaseSettingsCap:
    """Cap taken from the current phase's settings."""

    amount: Decimal
    phase_id: str
    source: str = "phase_settings"


@dataclass(frozen=True, eq=True)
class TemplateMaximumCap:
    """Cap taken from the template proposal schema's declared maximum."""

    amount: Decimal
    template_id: str
    source: str = "template_maximum"


@dataclass(frozen=True, eq=True)
class LegacyFieldCap:
    """Cap taken from the legacy `fieldValues.budgetCapAmount` bucket."""

    amount: Decimal
    field_name: str = LEGACY_BUDGET_CAP_FIELD
    source: str = "legacy_field"


@dataclass(frozen=True, eq=True)
class NoBudgetCap:
    """No source declared a cap; budgets are only required to be non-negative."""

    amount: None = None
    source: str = "none"


EffectiveBudgetSource = Union[
    PhaseSettingsCap, TemplateMaximumCap, LegacyFieldCap, NoBudgetCap
]


def template_budget_maximum(proposal_schema: Mapping[str, Any]) -> Decimal | None:
    """Read the declared budget maximum from a proposal JSON Schema."""
    properties = proposal_schema.get("properties")
    if not isinstance(properties, Mapping):
        return None
    budget = properties.get("budget")
    if not isinstance(budget, Mapping):
        return None
    maximum = parse_amount(budget.get("maximum"))
    if maximum is not None:
        return maximum
    nested = budget.get("properties")
    if isinstance(nested, Mapping) and isinstance(nested.get("amount"), Mapping):
        return parse_amount(nested["amount"].get("maximum"))
    return None


def resolve_effective_budget_cap(
    template: ProcessTemplate, instance: ProcessInstance
) -> EffectiveBudgetSource:
    """Resolve the effective budget cap for the instance's current phase.

    Returns:
        The first source present in precedence order, or NoBudgetCap.
    """
    phase = template.get_phase(instance.current_phase_id)
    schedule = instance.schedule_for(instance.current_phase_id)
    if phase is not None:
        settings = phase.effective_settings(schedule.settings if schedule else None)
        amount = parse_amount(settings.get(PHASE_BUDGET_SETTING))
        if amount is not None:
            return PhaseSettingsCap(amount=amount, phase_id=phase.id)

    amount = template_budget_maximum(template.proposal_schema)
    if amount is not None:
        return TemplateMaximumCap(amount=amount, template_id=template.id)

    amount = parse_amount(instance.field_values.get(LEGACY_BUDGET_CAP_FIELD))
    if amount is not None:
        return LegacyFieldCap(amount=amount)

    return NoBudgetCap()
