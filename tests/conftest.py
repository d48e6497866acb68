"""Shared test fixtures for tasktree tests.

This module provides common fixtures used across all test modules:
- A minimal in-memory StoreAdapter for registry tests
- Reference adapters of both layouts
- Status managers configured with the bundled presets
- Temporary task files for store / manager / CLI tests

Usage:
    def test_something(adapter, make_item):
        uid = make_item("parent")
        ...
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from tasktree.adapter import ROOT_SCOPE, StoreAdapter
from tasktree.adapters import DocumentAdapter, FlatAdapter, TreeAdapter
from tasktree.errors import ItemNotFound
from tasktree.idm import IDMManager
from tasktree.manager import TaskManager
from tasktree.presets import TODO_WORKFLOW
from tasktree.status import StatusManager


# ─────────────────────────────────────────────────────────────────────────────
# In-memory adapter
# ─────────────────────────────────────────────────────────────────────────────


class DictAdapter(StoreAdapter):
    """Read-only adapter over a {scope: [child uids]} mapping."""

    def __init__(self, children: Dict[str, List[str]]):
        self.children = children

    def get_children(self, scope: str) -> List[str]:
        return list(self.children.get(scope, []))

    def get_scopes(self) -> List[str]:
        return [ROOT_SCOPE] + [s for s, kids in self.children.items() if s != ROOT_SCOPE and kids]

    def get_all_uids(self) -> List[str]:
        return [uid for kids in self.children.values() for uid in kids]

    def get_parent(self, uid: str) -> Optional[str]:
        if uid == ROOT_SCOPE:
            return None
        for scope, kids in self.children.items():
            if uid in kids:
                return scope
        raise ItemNotFound(uid)


@pytest.fixture
def sample_tree() -> DictAdapter:
    """root -> [u1, u2], u1 -> [u11, u12, u13], u12 -> [u121]."""
    return DictAdapter({
        ROOT_SCOPE: ["u1", "u2"],
        "u1": ["u11", "u12", "u13"],
        "u12": ["u121"],
    })


# ─────────────────────────────────────────────────────────────────────────────
# Reference adapters
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(params=["flat", "tree"])
def adapter(request) -> DocumentAdapter:
    """An empty reference adapter, once per layout."""
    if request.param == "flat":
        return FlatAdapter()
    return TreeAdapter()


@pytest.fixture
def idm(adapter) -> IDMManager:
    return IDMManager(adapter)


@pytest.fixture
def status_manager(adapter, idm) -> StatusManager:
    """StatusManager with the todo preset over the parametrized adapter."""
    return StatusManager(adapter, TODO_WORKFLOW, idm_manager=idm)


@pytest.fixture
def make_item(adapter, status_manager) -> Callable[..., str]:
    """Factory: create an item with workflow defaults and return its uid.

    Usage:
        parent = make_item("Parent")
        child = make_item("Child", parent=parent)
    """
    def _make(text: str = "", parent: str = ROOT_SCOPE) -> str:
        uid = adapter.add_item(parent)
        adapter.set_text(uid, text)
        status_manager.initialize_item_with_defaults(uid)
        return uid

    return _make


# ─────────────────────────────────────────────────────────────────────────────
# Task files
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def data_path(tmp_path: Path) -> Path:
    """Path of a (not yet existing) task file in a temporary directory."""
    return tmp_path / "todos.json"


@pytest.fixture
def manager(data_path: Path) -> TaskManager:
    """TaskManager on a temporary task file with default workflow settings."""
    return TaskManager(data_path)
