"""Tests for tasktree/adapters.py

Both reference adapters must honour the same contract, so every test here
runs once per layout through the parametrized `adapter` fixture.
"""

import logging
from datetime import datetime, timezone

import pytest

from tasktree.adapter import LEGACY_DIMENSION, ROOT_SCOPE, STATUS_ACTIVE, STATUS_DELETED
from tasktree.adapters import FlatAdapter, TreeAdapter
from tasktree.errors import InvalidMove, ItemNotFound, ParentNotFound, ScopeNotFound
from tasktree.presets import TODO_WORKFLOW
from tasktree.schema import Layout, TreeDocument, TreeItem

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def tree(adapter):
    """root -> [A, B], A -> [A1, A2]"""
    a = adapter.add_item(ROOT_SCOPE)
    b = adapter.add_item(ROOT_SCOPE)
    a1 = adapter.add_item(a)
    a2 = adapter.add_item(a)
    return a, b, a1, a2


# ─────────────────────────────────────────────────────────────────────────────
# Read contract
# ─────────────────────────────────────────────────────────────────────────────


class TestReadContract:
    """Tests for the read-only StoreAdapter surface."""

    def test_children_in_insertion_order(self, adapter, tree):
        a, b, a1, a2 = tree
        assert adapter.get_children(ROOT_SCOPE) == [a, b]
        assert adapter.get_children(a) == [a1, a2]
        assert adapter.get_children(b) == []

    def test_scopes_are_root_plus_parents(self, adapter, tree):
        a, b, a1, a2 = tree
        assert adapter.get_scopes() == [ROOT_SCOPE, a]

    def test_all_uids_in_tree_order(self, adapter, tree):
        a, b, a1, a2 = tree
        assert adapter.get_all_uids() == [a, a1, a2, b]

    def test_parents(self, adapter, tree):
        a, b, a1, a2 = tree
        assert adapter.get_parent(a1) == a
        assert adapter.get_parent(a) == ROOT_SCOPE
        assert adapter.get_parent(ROOT_SCOPE) is None

    def test_unknown_uid(self, adapter):
        with pytest.raises(ItemNotFound):
            adapter.get_parent("ghost")
        with pytest.raises(ScopeNotFound):
            adapter.get_children("ghost")

    def test_layout_tag(self, adapter):
        expected = Layout.FLAT if isinstance(adapter, FlatAdapter) else Layout.TREE
        assert adapter.layout == expected


# ─────────────────────────────────────────────────────────────────────────────
# Shape changes
# ─────────────────────────────────────────────────────────────────────────────


class TestShapeChanges:
    """Tests for add / move / remove."""

    def test_add_under_unknown_parent(self, adapter):
        with pytest.raises(ParentNotFound):
            adapter.add_item("ghost")

    def test_new_items_start_with_empty_statuses(self, adapter):
        uid = adapter.add_item(ROOT_SCOPE)
        assert adapter.get_item_statuses(uid) == {}
        assert adapter.item(uid).statuses == {}

    def test_move_appends_at_end(self, adapter, tree):
        """A moved item should become the last child of its new parent."""
        a, b, a1, a2 = tree
        adapter.move_item(b, a)
        assert adapter.get_children(ROOT_SCOPE) == [a]
        assert adapter.get_children(a) == [a1, a2, b]
        assert adapter.get_parent(b) == a

    def test_move_carries_subtree(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.move_item(a, b)
        assert adapter.get_children(b) == [a]
        assert adapter.get_children(a) == [a1, a2]
        assert adapter.get_all_uids() == [b, a, a1, a2]

    def test_move_to_root(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.move_item(a1, ROOT_SCOPE)
        assert adapter.get_children(ROOT_SCOPE) == [a, b, a1]

    @pytest.mark.parametrize("target", ["self", "child"])
    def test_move_into_own_subtree(self, adapter, tree, target):
        a, b, a1, a2 = tree
        with pytest.raises(InvalidMove):
            adapter.move_item(a, a if target == "self" else a1)
        assert adapter.get_children(ROOT_SCOPE) == [a, b]

    def test_move_to_unknown_parent(self, adapter, tree):
        with pytest.raises(ParentNotFound):
            adapter.move_item(tree[0], "ghost")

    def test_remove_drops_descendants(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.remove_item(a)
        assert adapter.get_all_uids() == [b]
        assert a1 not in adapter
        assert len(adapter) == 1


class TestSoftDelete:
    """Tests for the legacy active/deleted status."""

    def test_deleted_subtree_is_hidden(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.set_status(a, STATUS_DELETED)

        assert adapter.get_children(ROOT_SCOPE) == [b]
        assert adapter.get_all_uids() == [b]
        assert adapter.get_scopes() == [ROOT_SCOPE]
        assert adapter.is_hidden(a1)
        # Still present for restore
        assert a in adapter

    def test_restore(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.set_status(a, STATUS_DELETED)
        adapter.set_status(a, STATUS_ACTIVE)
        assert adapter.get_children(ROOT_SCOPE) == [a, b]
        assert adapter.get_item_status(a, LEGACY_DIMENSION) == STATUS_ACTIVE

    def test_include_deleted(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.set_status(a, STATUS_DELETED)
        assert [r.uid for r in adapter.iter_items(include_deleted=True)] == [a, a1, a2, b]

    def test_rejects_other_values(self, adapter, tree):
        with pytest.raises(ValueError):
            adapter.set_status(tree[0], "archived")


# ─────────────────────────────────────────────────────────────────────────────
# Status I/O
# ─────────────────────────────────────────────────────────────────────────────


class TestStatusIO:
    """Tests for per-dimension status storage."""

    def test_set_and_get(self, adapter, tree):
        uid = tree[0]
        adapter.set_item_status(uid, "completion", "done")
        assert adapter.get_item_status(uid, "completion") == "done"
        assert adapter.get_item_status(uid, "priority") is None

    def test_statuses_are_copies(self, adapter, tree):
        """Mutating the returned map must not write through."""
        uid = tree[0]
        adapter.set_item_status(uid, "completion", "pending")
        adapter.get_item_statuses(uid)["completion"] = "done"
        assert adapter.get_item_status(uid, "completion") == "pending"

    def test_writes_touch_modified(self, adapter, tree):
        uid = tree[0]
        adapter.item(uid).modified = LONG_AGO
        adapter.set_multiple_statuses(uid, {"completion": "done"})
        assert adapter.item(uid).modified > LONG_AGO

    def test_set_text_touches_modified(self, adapter, tree):
        uid = tree[0]
        adapter.item(uid).modified = LONG_AGO
        adapter.set_text(uid, "renamed")
        assert adapter.item(uid).text == "renamed"
        assert adapter.item(uid).modified > LONG_AGO

    def test_bulk_read_skips_unknown(self, adapter, tree, caplog):
        a, b, a1, a2 = tree
        adapter.set_item_status(a, "completion", "done")
        with caplog.at_level(logging.WARNING):
            result = adapter.get_statuses_bulk([a, "ghost"])
        assert result == {a: {"completion": "done"}}
        assert "ghost" in caplog.text

    def test_bulk_write(self, adapter, tree):
        a, b, a1, a2 = tree
        adapter.set_statuses_bulk({a: {"completion": "done"}, b: {"completion": "pending"}})
        assert adapter.get_item_status(a, "completion") == "done"
        assert adapter.get_item_status(b, "completion") == "pending"

    def test_validate_hook_rejects_unknown_item(self, adapter):
        with pytest.raises(ItemNotFound):
            adapter.validate_status_change("ghost", "completion", None, "done")


class TestContextQueries:
    """Tests for the adapter's context-aware listings."""

    def test_children_in_context(self, adapter, tree):
        a, b, a1, a2 = tree
        for uid in tree:
            adapter.set_item_status(uid, "completion", "pending")
        adapter.set_item_status(a1, "completion", "done")

        rules = TODO_WORKFLOW.rules_for("active")
        assert adapter.get_children_in_context(a, "active", rules) == [a2]
        assert adapter.get_all_items_in_context("active", rules) == [a, a2, b]


# ─────────────────────────────────────────────────────────────────────────────
# Tree layout specifics
# ─────────────────────────────────────────────────────────────────────────────


class TestTreeAdapter:

    def test_relinks_parent_ids_from_nesting(self):
        """parentId on disk is ignored in favour of the nesting."""
        child = TreeItem(uid="c", parent_id="wrong")
        document = TreeDocument(todos=[TreeItem(uid="p", items=[child])])

        adapter = TreeAdapter(document)

        assert adapter.get_parent("c") == "p"
        assert adapter.get_children("p") == ["c"]

    def test_legacy_record_reads_as_pending(self):
        document = TreeDocument(todos=[TreeItem(uid="old")])
        adapter = TreeAdapter(document)
        rules = TODO_WORKFLOW.rules_for("active")
        assert adapter.get_item_statuses("old") == {"completion": "pending"}
        assert adapter.get_all_items_in_context("active", rules) == ["old"]
