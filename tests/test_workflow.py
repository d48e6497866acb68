"""Tests for tasktree/workflow.py

Configuration value objects: dimensions, visibility rules (AND within a
context), transition rules, auto-transition rules, validation and lint.
"""

import pytest

from tasktree.errors import ConfigInvalid
from tasktree.presets import ISSUE_TRACKER_WORKFLOW, PRESETS
from tasktree.workflow import (
    AutoTransitionRule,
    StatusDimension,
    TransitionRule,
    VisibilityRule,
    WorkflowConfig,
    matches_context,
)


def _completion() -> StatusDimension:
    return StatusDimension(name="completion", values=("pending", "done"), default_value="pending")


# ─────────────────────────────────────────────────────────────────────────────
# Visibility rules
# ─────────────────────────────────────────────────────────────────────────────


class TestVisibilityRule:
    """Tests for single-rule matching."""

    def test_include(self):
        rule = VisibilityRule(context="active", dimension="completion", include=("pending",))
        assert rule.matches("active", {"completion": "pending"})
        assert not rule.matches("active", {"completion": "done"})

    def test_wrong_context_never_matches(self):
        rule = VisibilityRule(context="active", dimension="completion", include=("pending",))
        assert not rule.matches("all", {"completion": "pending"})

    def test_missing_dimension_never_matches(self):
        """An item without a value for the rule's dimension is not admitted."""
        rule = VisibilityRule(context="c", dimension="priority", exclude=("low",))
        assert not rule.matches("c", {"completion": "pending"})

    def test_empty_include_admits_non_excluded(self):
        rule = VisibilityRule(context="c", dimension="priority", exclude=("low",))
        assert rule.matches("c", {"priority": "high"})
        assert not rule.matches("c", {"priority": "low"})

    def test_exclude_wins_over_include(self):
        rule = VisibilityRule(context="c", dimension="priority", include=("low", "high"), exclude=("low",))
        assert not rule.matches("c", {"priority": "low"})
        assert rule.matches("c", {"priority": "high"})


class TestMatchesContext:
    """Tests for combining the rules of a context."""

    def test_rules_are_combined_with_and(self):
        """critical_issues should need both an open state and a critical priority."""
        rules = ISSUE_TRACKER_WORKFLOW.rules_for("critical_issues")
        assert matches_context(rules, "critical_issues", {"state": "open", "priority": "critical"})
        assert not matches_context(rules, "critical_issues", {"state": "open", "priority": "minor"})
        assert not matches_context(rules, "critical_issues", {"state": "resolved", "priority": "blocker"})

    def test_no_rules_admits_everything(self):
        assert matches_context((), "anything", {})


# ─────────────────────────────────────────────────────────────────────────────
# Transition rules
# ─────────────────────────────────────────────────────────────────────────────


class TestTransitionRule:
    """Tests for transition rule matching and parsing."""

    def test_can_transition(self):
        rule = TransitionRule(dimension="completion", from_value="pending", to=("done",))
        assert rule.can_transition("pending", "done")
        assert not rule.can_transition("done", "pending")
        assert not rule.can_transition("pending", "pending")

    def test_parses_from_alias(self):
        """JSON configs spell the source value as 'from'."""
        rule = TransitionRule.model_validate({"dimension": "d", "from": "a", "to": ["b", "c"]})
        assert rule.from_value == "a"
        assert rule.to == ("b", "c")
        assert rule.model_dump(by_alias=True)["from"] == "a"

    def test_validator_not_serialized(self):
        rule = TransitionRule(dimension="d", from_value="a", to=("b",), validator=lambda uid, adapter: None)
        assert "validator" not in rule.model_dump()


# ─────────────────────────────────────────────────────────────────────────────
# Config validation
# ─────────────────────────────────────────────────────────────────────────────


class TestValidateRules:
    """Tests for WorkflowConfig.validate_rules."""

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_presets_are_valid(self, name):
        PRESETS[name].validate_rules()

    def test_empty_config_is_valid(self):
        WorkflowConfig().validate_rules()

    @pytest.mark.parametrize("config", [
        WorkflowConfig(dimensions=(StatusDimension(name="", values=("a",)),)),
        WorkflowConfig(dimensions=(StatusDimension(name="d", values=()),)),
        WorkflowConfig(dimensions=(StatusDimension(name="d", values=("a",), default_value="z"),)),
        WorkflowConfig(dimensions=(_completion(), _completion())),
        WorkflowConfig(
            dimensions=(_completion(),),
            visibility={"c": (VisibilityRule(context="c", dimension="nope"),)},
        ),
        WorkflowConfig(
            dimensions=(_completion(),),
            transitions={"nope": ()},
        ),
        WorkflowConfig(
            dimensions=(_completion(),),
            transitions={"completion": (TransitionRule(dimension="completion", from_value="x", to=("done",)),)},
        ),
        WorkflowConfig(
            dimensions=(_completion(),),
            transitions={"completion": (TransitionRule(dimension="completion", from_value="pending", to=("x",)),)},
        ),
        WorkflowConfig(
            dimensions=(_completion(), StatusDimension(name="other", values=("pending", "done"))),
            transitions={"completion": (TransitionRule(dimension="other", from_value="pending", to=("done",)),)},
        ),
        WorkflowConfig(
            dimensions=(_completion(),),
            auto_transitions=(AutoTransitionRule(
                trigger="status_change", condition="all_children_status_equals",
                condition_value="done", target_dimension="nope", action="set_status", action_value="done",
            ),),
        ),
    ], ids=[
        "empty-name", "no-values", "bad-default", "duplicate", "visibility-dimension",
        "transition-dimension", "transition-from", "transition-to", "transition-key-mismatch",
        "auto-transition-dimension",
    ])
    def test_invalid_configs(self, config):
        with pytest.raises(ConfigInvalid):
            config.validate_rules()

    def test_config_is_frozen(self):
        config = WorkflowConfig(dimensions=(_completion(),))
        with pytest.raises(Exception):
            config.dimensions = ()


class TestLint:
    """Tests for unknown rule-name warnings."""

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_presets_are_clean(self, name):
        assert PRESETS[name].lint() == []

    def test_flags_unknown_names(self):
        """Unknown trigger, condition and action should each be reported."""
        config = WorkflowConfig(
            dimensions=(_completion(),),
            auto_transitions=(AutoTransitionRule(
                trigger="on_tuesday", condition="moon_is_full", action="explode",
                target_dimension="completion",
            ),),
        )
        warnings = config.lint()
        assert len(warnings) == 3
        assert any("on_tuesday" in w for w in warnings)
        assert any("moon_is_full" in w for w in warnings)
        assert any("explode" in w for w in warnings)
        # Unknown names are not a validation error
        config.validate_rules()


class TestConfigHelpers:

    def test_defaults_and_contexts(self):
        config = PRESETS["priority"]
        assert config.defaults() == {"completion": "pending", "priority": "medium"}
        assert config.contexts == ["active", "all", "high_priority"]
        assert config.dimension_names == ["completion", "priority"]
        assert config.get_dimension("nope") is None
        assert config.rules_for("nope") == ()
