"""Unit tests for effective budget cap resolution.

The cap comes from exactly one source: phase settings, then the template
proposal schema maximum, then the legacy budgetCapAmount field value.
"""

from decimal import Decimal

import pytest

from decision_engine.domain.models.budget import (
    LegacyFieldCap,
    NoBudgetCap,
    PhaseSettingsCap,
    TemplateMaximumCap,
    parse_amount,
    resolve_effective_budget_cap,
    template_budget_maximum,
)
from tests.helpers.decision_builders import make_instance, make_template, template_data


@pytest.fixture
def schemaless_template():
    """Propose/vote template whose proposal schema declares no budget maximum."""
    data = template_data()
    del data["proposal_schema"]["properties"]["budget"]
    return make_template(data)


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (100, Decimal("100")),
            ("250.50", Decimal("250.50")),
            ({"amount": 75, "currency": "EUR"}, Decimal("75")),
            (Decimal("10"), Decimal("10")),
        ],
    )
    def test_numeric_values(self, value, expected) -> None:
        """Test that numbers, numeric strings and money objects parse."""
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, True, "lots", float("nan"), [1]])
    def test_non_amounts(self, value) -> None:
        """Test that non-numeric values are not amounts."""
        assert parse_amount(value) is None


class TestTemplateMaximum:
    """Tests for template_budget_maximum."""

    def test_flat_budget_maximum(self) -> None:
        """Test a numeric budget property with a maximum."""
        schema = {"properties": {"budget": {"type": "number", "maximum": 900}}}

        assert template_budget_maximum(schema) == Decimal("900")

    def test_money_shaped_maximum(self) -> None:
        """Test a money-shaped budget property with an amount maximum."""
        schema = {
            "properties": {
                "budget": {"properties": {"amount": {"type": "number", "maximum": 25000}}}
            }
        }

        assert template_budget_maximum(schema) == Decimal("25000")

    def test_no_budget_property(self) -> None:
        """Test that a schema without budget declares no maximum."""
        assert template_budget_maximum({"properties": {"title": {}}}) is None


class TestResolveEffectiveBudgetCap:
    """Tests for the three-tier cascade."""

    def test_phase_settings_win(self, propose_vote_template) -> None:
        """Test that a phase budget setting beats every other source."""
        instance = make_instance(
            propose_vote_template,
            settings={"propose": {"budget": 1000}},
            field_values={"budgetCapAmount": 10},
        )

        cap = resolve_effective_budget_cap(propose_vote_template, instance)

        assert cap == PhaseSettingsCap(amount=Decimal("1000"), phase_id="propose")

    def test_template_maximum_second(self, propose_vote_template) -> None:
        """Test that the schema maximum applies when phase settings are silent."""
        instance = make_instance(
            propose_vote_template, field_values={"budgetCapAmount": 10}
        )

        cap = resolve_effective_budget_cap(propose_vote_template, instance)

        assert isinstance(cap, TemplateMaximumCap)
        assert cap.amount == Decimal("50000")

    def test_legacy_field_last(self, schemaless_template) -> None:
        """Test that the legacy field value is the last resort."""
        instance = make_instance(
            schemaless_template, field_values={"budgetCapAmount": "750"}
        )

        cap = resolve_effective_budget_cap(schemaless_template, instance)

        assert cap == LegacyFieldCap(amount=Decimal("750"))

    def test_no_source(self, schemaless_template) -> None:
        """Test that no declared source yields NoBudgetCap."""
        instance = make_instance(schemaless_template)

        cap = resolve_effective_budget_cap(schemaless_template, instance)

        assert isinstance(cap, NoBudgetCap)
        assert cap.amount is None

    def test_sources_never_merged(self, propose_vote_template) -> None:
        """Test that a higher phase cap is not lowered by the schema maximum."""
        instance = make_instance(
            propose_vote_template, settings={"propose": {"budget": 80000}}
        )

        cap = resolve_effective_budget_cap(propose_vote_template, instance)

        assert cap.amount == Decimal("80000")
        assert cap.source == "phase_settings"

    def test_other_phase_settings_ignored(self, schemaless_template) -> None:
        """Test that only the current phase's settings are consulted."""
        instance = make_instance(
            schemaless_template, settings={"vote": {"budget": 500}}
        )

        cap = resolve_effective_budget_cap(schemaless_template, instance)

        assert isinstance(cap, NoBudgetCap)
