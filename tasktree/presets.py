"""
TASKTREE - Workflow Presets
===========================
Ready-to-use WorkflowConfigurations:

    todo      pending/done with bottom-up completion
    priority  todo + low/medium/high priority
    cms       publication states draft/review/published/archived
    issues    issue lifecycle with priority and type
    kanban    backlog -> todo -> in_progress -> review -> done
"""

from typing import Dict, List, Sequence

from pydantic import BaseModel

from .errors import ConfigInvalid
from .workflow import (
    Action,
    AutoTransitionRule,
    Condition,
    StatusDimension,
    TransitionRule,
    Trigger,
    VisibilityRule,
    WorkflowConfig,
)


class PresetInfo(BaseModel):
    """Catalogue entry for a preset"""
    name: str
    display_name: str
    description: str


def _visible(context: str, dimension: str, *include: str) -> VisibilityRule:
    return VisibilityRule(context=context, dimension=dimension, include=include)


def _moves(dimension: str, graph: Dict[str, Sequence[str]]) -> tuple:
    return tuple(
        TransitionRule(dimension=dimension, from_value=source, to=tuple(targets))
        for source, targets in graph.items()
    )


def _free_moves(dimension: str, values: Sequence[str]) -> tuple:
    """Any value may change to any other value"""
    return _moves(dimension, {v: [o for o in values if o != v] for v in values})


def _bottom_up(dimension: str, value: str) -> AutoTransitionRule:
    """When every child reaches `value`, the parent follows"""
    return AutoTransitionRule(
        trigger=Trigger.STATUS_CHANGE.value,
        condition=Condition.ALL_CHILDREN_STATUS_EQUALS.value,
        condition_value=value,
        target_dimension=dimension,
        action=Action.SET_STATUS.value,
        action_value=value,
    )


COMPLETION = StatusDimension(name="completion", values=("pending", "done"), default_value="pending")
TODO_PRIORITIES = ("low", "medium", "high")


# ============================================================
# BASIC TODO
# ============================================================

TODO_WORKFLOW = WorkflowConfig(
    dimensions=(COMPLETION,),
    visibility={
        "active": (_visible("active", "completion", "pending"),),
        "all": (_visible("all", "completion", "pending", "done"),),
    },
    transitions={
        "completion": _moves("completion", {"pending": ["done"], "done": ["pending"]}),
    },
    auto_transitions=(_bottom_up("completion", "done"),),
)

TODO_WITH_PRIORITY_WORKFLOW = WorkflowConfig(
    dimensions=(
        COMPLETION,
        StatusDimension(name="priority", values=TODO_PRIORITIES, default_value="medium"),
    ),
    visibility={
        "active": (_visible("active", "completion", "pending"),),
        "all": (_visible("all", "completion", "pending", "done"),),
        "high_priority": (
            _visible("high_priority", "completion", "pending"),
            _visible("high_priority", "priority", "high"),
        ),
    },
    transitions={
        "completion": _moves("completion", {"pending": ["done"], "done": ["pending"]}),
        "priority": _free_moves("priority", TODO_PRIORITIES),
    },
    auto_transitions=(_bottom_up("completion", "done"),),
)


# ============================================================
# CONTENT MANAGEMENT
# ============================================================

CMS_PRIORITIES = ("low", "normal", "high", "urgent")

CMS_WORKFLOW = WorkflowConfig(
    dimensions=(
        StatusDimension(
            name="publication",
            values=("draft", "review", "published", "archived"),
            default_value="draft",
        ),
        StatusDimension(name="priority", values=CMS_PRIORITIES, default_value="normal"),
    ),
    visibility={
        "public": (_visible("public", "publication", "published"),),
        "editorial": (_visible("editorial", "publication", "draft", "review", "published"),),
        "admin": (_visible("admin", "publication", "draft", "review", "published", "archived"),),
        "review_queue": (_visible("review_queue", "publication", "review"),),
    },
    transitions={
        "publication": _moves("publication", {
            "draft": ["review", "archived"],
            "review": ["draft", "published", "archived"],
            "published": ["archived"],
            "archived": ["draft"],
        }),
        "priority": _free_moves("priority", CMS_PRIORITIES),
    },
    # Publication decisions are manual
    auto_transitions=(),
)


# ============================================================
# ISSUE TRACKER
# ============================================================

ISSUE_STATES = ("open", "in_progress", "resolved", "closed", "reopened")
ISSUE_PRIORITIES = ("trivial", "minor", "major", "critical", "blocker")
ISSUE_TYPES = ("bug", "feature", "task", "epic")

ISSUE_TRACKER_WORKFLOW = WorkflowConfig(
    dimensions=(
        StatusDimension(name="state", values=ISSUE_STATES, default_value="open"),
        StatusDimension(name="priority", values=ISSUE_PRIORITIES, default_value="major"),
        StatusDimension(name="type", values=ISSUE_TYPES, default_value="bug"),
    ),
    visibility={
        "active": (_visible("active", "state", "open", "in_progress", "reopened"),),
        "kanban_board": (_visible("kanban_board", "state", "open", "in_progress"),),
        "resolved": (_visible("resolved", "state", "resolved"),),
        "all": (_visible("all", "state", *ISSUE_STATES),),
        "critical_issues": (
            _visible("critical_issues", "state", "open", "in_progress", "reopened"),
            _visible("critical_issues", "priority", "critical", "blocker"),
        ),
    },
    transitions={
        "state": _moves("state", {
            "open": ["in_progress", "resolved", "closed"],
            "in_progress": ["open", "resolved", "closed"],
            "resolved": ["closed", "reopened"],
            "closed": ["reopened"],
            "reopened": ["in_progress", "resolved", "closed"],
        }),
        "priority": _free_moves("priority", ISSUE_PRIORITIES),
        "type": _free_moves("type", ISSUE_TYPES),
    },
    # Resolve an issue once all its sub-issues are resolved
    auto_transitions=(_bottom_up("state", "resolved"),),
)


# ============================================================
# KANBAN
# ============================================================

KANBAN_SIZES = ("xs", "s", "m", "l", "xl")

KANBAN_WORKFLOW = WorkflowConfig(
    dimensions=(
        StatusDimension(
            name="stage",
            values=("backlog", "todo", "in_progress", "review", "done"),
            default_value="backlog",
        ),
        StatusDimension(name="size", values=KANBAN_SIZES, default_value="m"),
    ),
    visibility={
        "board": (_visible("board", "stage", "todo", "in_progress", "review", "done"),),
        "backlog": (_visible("backlog", "stage", "backlog"),),
        "active": (_visible("active", "stage", "todo", "in_progress", "review"),),
        "wip": (_visible("wip", "stage", "in_progress"),),
    },
    transitions={
        "stage": _moves("stage", {
            "backlog": ["todo"],
            "todo": ["in_progress", "backlog"],
            "in_progress": ["review", "todo"],
            "review": ["done", "in_progress"],
            "done": ["review"],
        }),
        "size": _free_moves("size", KANBAN_SIZES),
    },
    auto_transitions=(),
)


PRESETS: Dict[str, WorkflowConfig] = {
    "todo": TODO_WORKFLOW,
    "priority": TODO_WITH_PRIORITY_WORKFLOW,
    "cms": CMS_WORKFLOW,
    "issues": ISSUE_TRACKER_WORKFLOW,
    "kanban": KANBAN_WORKFLOW,
}

PRESET_INFO = [
    PresetInfo(name="todo", display_name="Basic Todo",
               description="Simple pending/done workflow with bottom-up completion"),
    PresetInfo(name="priority", display_name="Todo with Priority",
               description="Todo workflow with priority management (low/medium/high)"),
    PresetInfo(name="cms", display_name="Content Management",
               description="Content workflow with publication states (draft/review/published/archived)"),
    PresetInfo(name="issues", display_name="Issue Tracking",
               description="Issue tracking workflow with state, priority, and type dimensions"),
    PresetInfo(name="kanban", display_name="Kanban Board",
               description="Kanban-style workflow with stage progression (backlog/todo/in_progress/review/done)"),
]


def get_preset(name: str) -> WorkflowConfig:
    try:
        return PRESETS[name]
    except KeyError:
        raise ConfigInvalid(f"unknown workflow preset: {name}. Valid presets are: {sorted(PRESETS)}") from None


def available_presets() -> List[PresetInfo]:
    return list(PRESET_INFO)
