"""Tests for tasktree/presets.py"""

import pytest

from tasktree.adapter import ROOT_SCOPE
from tasktree.adapters import FlatAdapter
from tasktree.errors import ConfigInvalid, TransitionForbidden
from tasktree.presets import (
    KANBAN_WORKFLOW,
    PRESETS,
    TODO_WORKFLOW,
    available_presets,
    get_preset,
)
from tasktree.status import StatusManager


def _manager(config):
    adapter = FlatAdapter()
    return adapter, StatusManager(adapter, config)


class TestCatalogue:
    """Tests for preset lookup."""

    def test_get_preset(self):
        assert get_preset("todo") is TODO_WORKFLOW

    def test_unknown_preset(self):
        """Should name the valid presets in the error."""
        with pytest.raises(ConfigInvalid) as exc:
            get_preset("scrum")
        assert "kanban" in exc.value.message

    def test_every_preset_is_listed(self):
        assert [info.name for info in available_presets()] == list(PRESETS)

    def test_every_preset_has_defaults_for_all_dimensions(self):
        for name, config in PRESETS.items():
            assert set(config.defaults()) == set(config.dimension_names), name


class TestKanban:
    """Tests for stage progression on the kanban board."""

    def test_cards_move_one_stage_at_a_time(self):
        adapter, manager = _manager(KANBAN_WORKFLOW)
        card = adapter.add_item(ROOT_SCOPE)
        manager.initialize_item_with_defaults(card)

        with pytest.raises(TransitionForbidden):
            manager.transition(card, "stage", "done")

        for stage in ("todo", "in_progress", "review", "done"):
            manager.transition(card, "stage", stage)

        assert manager.get_status(card, "stage") == "done"

    def test_board_contexts(self):
        adapter, manager = _manager(KANBAN_WORKFLOW)
        card = adapter.add_item(ROOT_SCOPE)
        manager.initialize_item_with_defaults(card)

        assert manager.get_children_in_context(ROOT_SCOPE, "backlog") == [card]
        assert manager.get_children_in_context(ROOT_SCOPE, "board") == []

        manager.transition(card, "stage", "todo")

        assert manager.get_children_in_context(ROOT_SCOPE, "board") == [card]
        assert manager.get_children_in_context(ROOT_SCOPE, "wip") == []

    def test_no_bottom_up_stage(self):
        """Kanban parents are not moved by their cards."""
        adapter, manager = _manager(KANBAN_WORKFLOW)
        parent = adapter.add_item(ROOT_SCOPE)
        card = adapter.add_item(parent)
        for uid in (parent, card):
            manager.initialize_item_with_defaults(uid)

        manager.transition(card, "stage", "todo")

        assert manager.get_status(parent, "stage") == "backlog"


class TestIssueTracker:

    def test_critical_issues_context(self):
        adapter, manager = _manager(PRESETS["issues"])
        issues = {}
        for name, state, priority in [
            ("crash", "open", "blocker"),
            ("typo", "open", "trivial"),
            ("fixed", "resolved", "critical"),
        ]:
            uid = adapter.add_item(ROOT_SCOPE)
            manager.set_multiple_statuses(uid, {"state": state, "priority": priority, "type": "bug"})
            issues[name] = uid

        assert manager.get_children_in_context(ROOT_SCOPE, "critical_issues") == [issues["crash"]]
        assert manager.get_children_in_context(ROOT_SCOPE, "resolved") == [issues["fixed"]]

    def test_closed_issue_can_only_be_reopened(self):
        adapter, manager = _manager(PRESETS["issues"])
        uid = adapter.add_item(ROOT_SCOPE)
        manager.initialize_item_with_defaults(uid)
        manager.transition(uid, "state", "closed")

        assert not manager.is_transition_allowed(uid, "state", "open")
        assert manager.is_transition_allowed(uid, "state", "reopened")
