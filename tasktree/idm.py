"""
TASKTREE - IDM Manager
======================
Writes through a ManagedStoreAdapter and keeps the Registry in sync by
rebuilding the smallest set of affected scopes.
"""

import logging
from typing import Tuple

from .adapter import STATUS_ACTIVE, STATUS_DELETED, ManagedStoreAdapter
from .registry import Registry

logger = logging.getLogger("tasktree.idm")


class IDMManager:
    """Stateful convenience layer over Registry + ManagedStoreAdapter"""

    def __init__(self, adapter: ManagedStoreAdapter):
        self.adapter = adapter
        self.registry = Registry()

        # First failing scope aborts construction
        for scope in adapter.get_scopes():
            self.registry.rebuild_scope(adapter, scope)

    def add(self, parent_scope: str) -> Tuple[str, int]:
        """Create an item under parent_scope; returns (uid, hid)"""
        uid = self.adapter.add_item(parent_scope)
        hid = self.registry.add(parent_scope, uid)
        logger.debug(f"Added {uid} as HID {hid} in scope {parent_scope}")
        return uid, hid

    def move(self, uid: str, old_parent: str, new_parent: str) -> None:
        """Re-parent uid; both parent scopes are rebuilt from the adapter"""
        self.adapter.move_item(uid, new_parent)
        self.registry.rebuild_scope(self.adapter, old_parent)
        self.registry.rebuild_scope(self.adapter, new_parent)

    def soft_delete(self, uid: str, parent: str) -> None:
        self.adapter.set_status(uid, STATUS_DELETED)
        self.registry.rebuild_scope(self.adapter, parent)

    def restore(self, uid: str, parent: str) -> None:
        self.adapter.set_status(uid, STATUS_ACTIVE)
        self.registry.rebuild_scope(self.adapter, parent)

    def purge(self, uid: str) -> None:
        """Permanent removal. The item is expected to be out of the active scopes already."""
        self.adapter.remove_item(uid)
