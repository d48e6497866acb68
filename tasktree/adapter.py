"""
TASKTREE - Store Adapter Contracts
==================================
The only surface through which the Registry, the IDM Manager and the
StatusManager see data. Three layers:

    StoreAdapter          read-only: children, scopes, all UIDs, parent
    ManagedStoreAdapter   + add / remove / move / legacy soft-delete status
    WorkflowStoreAdapter  + per-dimension status I/O, context-aware listings,
                            bulk variants and the two lifecycle hooks
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from .workflow import VisibilityRule

logger = logging.getLogger("tasktree.adapter")

ROOT_SCOPE = "root"

# Legacy single-dimension status used for soft delete / restore
LEGACY_DIMENSION = "legacy"
STATUS_ACTIVE = "active"
STATUS_DELETED = "deleted"


def visible_statuses(statuses: Dict[str, str]) -> Dict[str, str]:
    """Workflow statuses without the reserved soft-delete dimension"""
    return {dim: value for dim, value in statuses.items() if dim != LEGACY_DIMENSION}


class StoreAdapter(ABC):
    """Read-only view of the document"""

    @abstractmethod
    def get_children(self, scope: str) -> List[str]:
        """Ordered child UIDs of a scope. The order is the HID order."""

    @abstractmethod
    def get_scopes(self) -> List[str]:
        """ROOT_SCOPE plus every UID that has at least one child."""

    @abstractmethod
    def get_all_uids(self) -> List[str]:
        """Every item in the document."""

    @abstractmethod
    def get_parent(self, uid: str) -> Optional[str]:
        """Parent scope of an item; ROOT_SCOPE for top-level items, None for the root itself."""


class ManagedStoreAdapter(StoreAdapter):
    """Adapter that can also change the shape of the document"""

    @abstractmethod
    def add_item(self, parent_scope: str) -> str:
        """Create an empty item under parent_scope and return its UID."""

    @abstractmethod
    def remove_item(self, uid: str) -> None:
        """Permanently delete an item and all its descendants."""

    @abstractmethod
    def move_item(self, uid: str, new_parent_scope: str) -> None:
        """Re-parent an item, appending it to its new sibling group."""

    @abstractmethod
    def set_status(self, uid: str, value: str) -> None:
        """Legacy single-dimension status (STATUS_ACTIVE / STATUS_DELETED)."""


class WorkflowStoreAdapter(ManagedStoreAdapter):
    """Adapter with multi-dimensional status support"""

    # Status I/O

    @abstractmethod
    def set_item_status(self, uid: str, dimension: str, value: str) -> None:
        ...

    @abstractmethod
    def get_item_status(self, uid: str, dimension: str) -> Optional[str]:
        """Value of one dimension, or None when the item has no value for it."""

    @abstractmethod
    def get_item_statuses(self, uid: str) -> Dict[str, str]:
        """Copy of every dimension -> value pair of an item."""

    @abstractmethod
    def set_multiple_statuses(self, uid: str, statuses: Dict[str, str]) -> None:
        ...

    # Context-aware queries

    @abstractmethod
    def get_children_in_context(
        self,
        parent_scope: str,
        context: str,
        rules: Sequence[VisibilityRule]
    ) -> List[str]:
        """Children of parent_scope visible under the given context rules."""

    @abstractmethod
    def get_all_items_in_context(self, context: str, rules: Sequence[VisibilityRule]) -> List[str]:
        ...

    # Bulk operations

    def get_statuses_bulk(self, uids: Sequence[str]) -> Dict[str, Dict[str, str]]:
        """Statuses of many items; items that cannot be read are left out."""
        result = {}
        for uid in uids:
            try:
                result[uid] = self.get_item_statuses(uid)
            except Exception as e:
                logger.warning(f"Skipping statuses of {uid}: {e}")
        return result

    def set_statuses_bulk(self, updates: Dict[str, Dict[str, str]]) -> None:
        """Apply uid -> dimension -> value updates, stopping at the first failure."""
        for uid, statuses in updates.items():
            self.set_multiple_statuses(uid, statuses)

    # Lifecycle hooks

    def on_status_change(self, uid: str, dimension: str, old_value: Optional[str], new_value: str) -> None:
        """
        Called after a status write has been applied.

        For side effects outside the workflow (audit logs, notifications).
        Must not change the workflow status of other items; auto-transitions
        are the StatusManager's job.
        """

    def validate_status_change(self, uid: str, dimension: str, old_value: Optional[str], new_value: str) -> None:
        """Called before a status write. Raise to veto the change."""
