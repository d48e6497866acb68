"""
TASKTREE - Workflow Configuration
=================================
Declarative description of a workflow:

- status dimensions (named axes with an enumerated set of values)
- visibility rules keyed by context
- transition rules keyed by dimension
- auto-transition rules (reactive status propagation)

All models are frozen once built. `WorkflowConfig.validate_rules()` is run by
the StatusManager at construction and raises ConfigInvalid on any violation.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigInvalid


class Trigger(str, Enum):
    """Events that can fire an auto-transition"""
    STATUS_CHANGE = "status_change"
    CHILD_STATUS_CHANGE = "child_status_change"


class Condition(str, Enum):
    """Auto-transition conditions"""
    ALL_CHILDREN_STATUS_EQUALS = "all_children_status_equals"


class Action(str, Enum):
    """Auto-transition actions"""
    SET_STATUS = "set_status"


class StatusDimension(BaseModel):
    """A named status axis, e.g. completion: pending/done"""
    model_config = ConfigDict(frozen=True)

    name: str
    values: Tuple[str, ...]
    default_value: Optional[str] = None

    def has_value(self, value: str) -> bool:
        return value in self.values

    def validate_dimension(self) -> None:
        if not self.name:
            raise ConfigInvalid("invalid dimension '': dimension name cannot be empty")
        if not self.values:
            raise ConfigInvalid(f"invalid dimension '{self.name}': dimension must have at least one value")
        if self.default_value and not self.has_value(self.default_value):
            raise ConfigInvalid(
                f"invalid dimension '{self.name}': default value '{self.default_value}' "
                f"not found in dimension values"
            )


class VisibilityRule(BaseModel):
    """Which items a context shows, judged on one dimension"""
    model_config = ConfigDict(frozen=True)

    context: str
    dimension: str
    include: Tuple[str, ...] = ()   # empty: admit every non-excluded value
    exclude: Tuple[str, ...] = ()   # wins over include

    def matches(self, context: str, statuses: Mapping[str, str]) -> bool:
        if self.context != context:
            return False
        value = statuses.get(self.dimension)
        if value is None:
            return False
        if value in self.exclude:
            return False
        if not self.include:
            return True
        return value in self.include


def matches_context(rules: Sequence[VisibilityRule], context: str, statuses: Mapping[str, str]) -> bool:
    """
    Visibility of one item in a context.

    Rules of a context are combined with AND; a context without rules admits
    everything.
    """
    return all(rule.matches(context, statuses) for rule in rules)


class TransitionRule(BaseModel):
    """Allowed moves out of one value of a dimension"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dimension: str
    from_value: str = Field(alias="from")
    to: Tuple[str, ...]
    # validator(uid, adapter) raises to veto an otherwise allowed transition
    validator: Optional[Callable[..., Any]] = Field(default=None, exclude=True)

    def can_transition(self, from_value: str, to_value: str) -> bool:
        return self.from_value == from_value and to_value in self.to


class AutoTransitionRule(BaseModel):
    """Reactive rule, e.g. 'when all children are done, mark the parent done'"""
    model_config = ConfigDict(frozen=True)

    trigger: str
    condition: str
    condition_value: str = ""
    target_dimension: str = ""
    action: str
    action_value: str = ""


class WorkflowConfig(BaseModel):
    """Complete workflow description"""
    model_config = ConfigDict(frozen=True)

    dimensions: Tuple[StatusDimension, ...] = ()
    visibility: Dict[str, Tuple[VisibilityRule, ...]] = Field(default_factory=dict)
    transitions: Dict[str, Tuple[TransitionRule, ...]] = Field(default_factory=dict)
    auto_transitions: Tuple[AutoTransitionRule, ...] = ()

    def get_dimension(self, name: str) -> Optional[StatusDimension]:
        for dimension in self.dimensions:
            if dimension.name == name:
                return dimension
        return None

    @property
    def dimension_names(self) -> List[str]:
        return [d.name for d in self.dimensions]

    @property
    def contexts(self) -> List[str]:
        return list(self.visibility)

    def rules_for(self, context: str) -> Tuple[VisibilityRule, ...]:
        return self.visibility.get(context, ())

    def defaults(self) -> Dict[str, str]:
        """dimension -> default value, for dimensions that have one"""
        return {d.name: d.default_value for d in self.dimensions if d.default_value}

    def validate_rules(self) -> None:
        """Raise ConfigInvalid on the first inconsistency"""
        names = set()
        for dimension in self.dimensions:
            dimension.validate_dimension()
            if dimension.name in names:
                raise ConfigInvalid(f"duplicate dimension name: {dimension.name}")
            names.add(dimension.name)

        for context, rules in self.visibility.items():
            for rule in rules:
                if rule.dimension not in names:
                    raise ConfigInvalid(
                        f"visibility rule in context '{context}' references unknown dimension '{rule.dimension}'"
                    )

        for dimension_name, rules in self.transitions.items():
            dimension = self.get_dimension(dimension_name)
            if dimension is None:
                raise ConfigInvalid(f"transition rules reference unknown dimension '{dimension_name}'")
            for rule in rules:
                if rule.dimension != dimension_name:
                    raise ConfigInvalid(
                        f"transition rule for '{rule.dimension}' listed under dimension '{dimension_name}'"
                    )
                if not dimension.has_value(rule.from_value):
                    raise ConfigInvalid(
                        f"transition rule has invalid 'from' value '{rule.from_value}' for dimension '{dimension_name}'"
                    )
                for to_value in rule.to:
                    if not dimension.has_value(to_value):
                        raise ConfigInvalid(
                            f"transition rule has invalid 'to' value '{to_value}' for dimension '{dimension_name}'"
                        )

        for rule in self.auto_transitions:
            if rule.target_dimension and rule.target_dimension not in names:
                raise ConfigInvalid(
                    f"auto-transition rule references unknown dimension '{rule.target_dimension}'"
                )

    def lint(self) -> List[str]:
        """Warnings for auto-transition rules the engine will skip"""
        known_triggers = {t.value for t in Trigger}
        known_conditions = {c.value for c in Condition}
        known_actions = {a.value for a in Action}

        warnings = []
        for i, rule in enumerate(self.auto_transitions):
            if rule.trigger not in known_triggers:
                warnings.append(f"auto-transition #{i + 1}: unknown trigger '{rule.trigger}'")
            if rule.condition not in known_conditions:
                warnings.append(f"auto-transition #{i + 1}: unknown condition '{rule.condition}'")
            if rule.action not in known_actions:
                warnings.append(f"auto-transition #{i + 1}: unknown action '{rule.action}'")
        return warnings
