"""
TASKTREE - Hierarchical Task Manager
====================================

Todo trees addressed by short position paths ("1.2.3") instead of ids,
with a declarative workflow engine on top: multi-dimensional status,
context visibility, guarded transitions and bottom-up auto-transitions.

Usage:
    from tasktree import TaskManager

    manager = TaskManager("~/.todos.json")
    manager.add("Ship release")
    manager.add("Write changelog", parent_ref="1")
    manager.complete(["1.1"])      # parent completes too, all its children are done

    print(manager.get_status_report())

Engine only (any WorkflowStoreAdapter):
    from tasktree import FlatAdapter, IDMManager, StatusManager, TODO_WORKFLOW

    adapter = FlatAdapter()
    idm = IDMManager(adapter)
    status = StatusManager(adapter, TODO_WORKFLOW, idm_manager=idm)
"""

from .adapter import (
    ROOT_SCOPE,
    ManagedStoreAdapter,
    StoreAdapter,
    WorkflowStoreAdapter,
)
from .adapters import FlatAdapter, TreeAdapter
from .errors import TaskTreeError
from .idm import IDMManager
from .manager import ItemView, TaskManager
from .presets import (
    CMS_WORKFLOW,
    ISSUE_TRACKER_WORKFLOW,
    KANBAN_WORKFLOW,
    TODO_WITH_PRIORITY_WORKFLOW,
    TODO_WORKFLOW,
    get_preset,
)
from .registry import Registry
from .schema import Layout
from .status import StatusManager, StatusMetrics
from .storage import DocumentStore
from .workflow import (
    AutoTransitionRule,
    StatusDimension,
    TransitionRule,
    VisibilityRule,
    WorkflowConfig,
)

__version__ = "1.0.0"
__all__ = [
    "TaskManager",
    "ItemView",
    "DocumentStore",
    "Layout",
    "StoreAdapter",
    "ManagedStoreAdapter",
    "WorkflowStoreAdapter",
    "FlatAdapter",
    "TreeAdapter",
    "ROOT_SCOPE",
    "Registry",
    "IDMManager",
    "StatusManager",
    "StatusMetrics",
    "StatusDimension",
    "VisibilityRule",
    "TransitionRule",
    "AutoTransitionRule",
    "WorkflowConfig",
    "TODO_WORKFLOW",
    "TODO_WITH_PRIORITY_WORKFLOW",
    "CMS_WORKFLOW",
    "ISSUE_TRACKER_WORKFLOW",
    "KANBAN_WORKFLOW",
    "get_preset",
    "TaskTreeError",
]
