"""
TASKTREE - Reference Adapters
=============================
WorkflowStoreAdapter implementations over the two document layouts:

    FlatAdapter   flat list + parent pointer (preferred for new documents)
    TreeAdapter   tree of records (legacy layout)

Both keep a uid -> record index over a pydantic document and share every
contract method through DocumentAdapter; a layout only supplies how sibling
groups are stored.

Soft-deleted items (legacy dimension = deleted) and everything below them are
hidden from the listings, which keeps them out of the HID sequences.
"""

import logging
from abc import abstractmethod
from typing import Dict, Iterator, List, Optional, Sequence, Set

from .adapter import (
    LEGACY_DIMENSION,
    ROOT_SCOPE,
    STATUS_ACTIVE,
    STATUS_DELETED,
    WorkflowStoreAdapter,
)
from .errors import InvalidMove, ItemNotFound, ParentNotFound, ScopeNotFound
from .schema import (
    ROOT_PARENT,
    BaseItem,
    FlatDocument,
    Item,
    Layout,
    TreeDocument,
    TreeItem,
)
from .workflow import VisibilityRule, matches_context

logger = logging.getLogger("tasktree.adapters")


def scope_of(parent_id: str) -> str:
    return ROOT_SCOPE if parent_id == ROOT_PARENT else parent_id


def parent_id_of(scope: str) -> str:
    return ROOT_PARENT if scope == ROOT_SCOPE else scope


class DocumentAdapter(WorkflowStoreAdapter):
    """Shared behaviour of the reference adapters"""

    layout: Layout

    def __init__(self):
        self._index: Dict[str, BaseItem] = {}
        self.reindex()

    # ========================================
    # LAYOUT PRIMITIVES
    # ========================================

    @abstractmethod
    def _records(self) -> Iterator[BaseItem]:
        """Every record in document order"""

    @abstractmethod
    def _siblings(self, scope: str) -> List[BaseItem]:
        """Records of a sibling group in order, hidden ones included"""

    @abstractmethod
    def _new_record(self, parent_id: str) -> BaseItem:
        ...

    @abstractmethod
    def _attach(self, record: BaseItem, scope: str) -> None:
        """Append a record to the end of a sibling group"""

    @abstractmethod
    def _detach(self, record: BaseItem) -> None:
        """Take a record out of its sibling group, keeping its descendants attached to it"""

    @abstractmethod
    def _drop(self, record: BaseItem, uids: Set[str]) -> None:
        """Delete a record together with its descendants (uids)"""

    @property
    @abstractmethod
    def document(self):
        ...

    def reindex(self) -> None:
        self._index = {record.uid: record for record in self._records()}

    # ========================================
    # RECORD ACCESS
    # ========================================

    def item(self, uid: str) -> BaseItem:
        try:
            return self._index[uid]
        except KeyError:
            raise ItemNotFound(uid) from None

    def __contains__(self, uid: str) -> bool:
        return uid in self._index

    def __len__(self) -> int:
        return len(self._index)

    @staticmethod
    def is_deleted(record: BaseItem) -> bool:
        return (record.statuses or {}).get(LEGACY_DIMENSION) == STATUS_DELETED

    def is_hidden(self, uid: str) -> bool:
        """Deleted, or below a deleted ancestor"""
        current = uid
        while current in self._index:
            record = self._index[current]
            if self.is_deleted(record):
                return True
            current = record.parent_id
        return False

    def iter_items(self, include_deleted: bool = False) -> Iterator[BaseItem]:
        """Records in tree order (parents before children, siblings in order)"""
        def walk(scope: str) -> Iterator[BaseItem]:
            for record in self._siblings(scope):
                if not include_deleted and self.is_deleted(record):
                    continue
                yield record
                yield from walk(record.uid)

        yield from walk(ROOT_SCOPE)

    def descendants(self, uid: str) -> List[str]:
        result = []
        for record in self._siblings(uid):
            result.append(record.uid)
            result.extend(self.descendants(record.uid))
        return result

    def set_text(self, uid: str, text: str) -> None:
        record = self.item(uid)
        record.text = text
        record.touch()

    def _check_scope(self, scope: str) -> None:
        if scope != ROOT_SCOPE and scope not in self._index:
            raise ScopeNotFound(scope)

    # ========================================
    # StoreAdapter
    # ========================================

    def get_children(self, scope: str) -> List[str]:
        self._check_scope(scope)
        return [r.uid for r in self._siblings(scope) if not self.is_deleted(r)]

    def get_scopes(self) -> List[str]:
        scopes = [ROOT_SCOPE]
        for record in self.iter_items():
            if any(not self.is_deleted(child) for child in self._siblings(record.uid)):
                scopes.append(record.uid)
        return scopes

    def get_all_uids(self) -> List[str]:
        return [record.uid for record in self.iter_items()]

    def get_parent(self, uid: str) -> Optional[str]:
        if uid == ROOT_SCOPE:
            return None
        return scope_of(self.item(uid).parent_id)

    # ========================================
    # ManagedStoreAdapter
    # ========================================

    def add_item(self, parent_scope: str) -> str:
        if parent_scope != ROOT_SCOPE and parent_scope not in self._index:
            raise ParentNotFound(parent_scope)

        record = self._new_record(parent_id_of(parent_scope))
        self._attach(record, parent_scope)
        self._index[record.uid] = record
        return record.uid

    def remove_item(self, uid: str) -> None:
        record = self.item(uid)
        doomed = {uid, *self.descendants(uid)}
        self._drop(record, doomed)
        for gone in doomed:
            self._index.pop(gone, None)

    def move_item(self, uid: str, new_parent_scope: str) -> None:
        record = self.item(uid)
        if new_parent_scope != ROOT_SCOPE:
            if new_parent_scope not in self._index:
                raise ParentNotFound(new_parent_scope)
            if new_parent_scope == uid or new_parent_scope in self.descendants(uid):
                raise InvalidMove(uid, new_parent_scope)

        self._detach(record)
        record.parent_id = parent_id_of(new_parent_scope)
        self._attach(record, new_parent_scope)
        record.touch()

    def set_status(self, uid: str, value: str) -> None:
        if value not in (STATUS_ACTIVE, STATUS_DELETED):
            raise ValueError(f"invalid legacy status: {value}")
        self.set_item_status(uid, LEGACY_DIMENSION, value)

    # ========================================
    # WorkflowStoreAdapter
    # ========================================

    def set_item_status(self, uid: str, dimension: str, value: str) -> None:
        record = self.item(uid)
        record.ensure_statuses()[dimension] = value
        record.touch()

    def get_item_status(self, uid: str, dimension: str) -> Optional[str]:
        return self.item(uid).read_statuses().get(dimension)

    def get_item_statuses(self, uid: str) -> Dict[str, str]:
        return self.item(uid).read_statuses()

    def set_multiple_statuses(self, uid: str, statuses: Dict[str, str]) -> None:
        record = self.item(uid)
        record.ensure_statuses().update(statuses)
        record.touch()

    def get_children_in_context(
        self,
        parent_scope: str,
        context: str,
        rules: Sequence[VisibilityRule]
    ) -> List[str]:
        visible = []
        for uid in self.get_children(parent_scope):
            try:
                statuses = self.get_item_statuses(uid)
            except Exception as e:
                logger.warning(f"Skipping child {uid} of {parent_scope}: {e}")
                continue
            if matches_context(rules, context, statuses):
                visible.append(uid)
        return visible

    def get_all_items_in_context(self, context: str, rules: Sequence[VisibilityRule]) -> List[str]:
        return [
            record.uid for record in self.iter_items()
            if matches_context(rules, context, record.read_statuses())
        ]

    def validate_status_change(self, uid: str, dimension: str, old_value: Optional[str], new_value: str) -> None:
        self.item(uid)

    def on_status_change(self, uid: str, dimension: str, old_value: Optional[str], new_value: str) -> None:
        logger.debug(f"{uid}: {dimension} {old_value or '-'} -> {new_value}")


# ============================================================
# FLAT LIST + PARENT POINTER
# ============================================================

class FlatAdapter(DocumentAdapter):
    """Items live in one list; sibling order is their order in that list"""

    layout = Layout.FLAT

    def __init__(self, document: Optional[FlatDocument] = None):
        self._document = document or FlatDocument()
        super().__init__()

    @property
    def document(self) -> FlatDocument:
        return self._document

    def _records(self) -> Iterator[BaseItem]:
        return iter(self._document.items)

    def _siblings(self, scope: str) -> List[BaseItem]:
        parent_id = parent_id_of(scope)
        return [item for item in self._document.items if item.parent_id == parent_id]

    def _new_record(self, parent_id: str) -> BaseItem:
        return Item(parent_id=parent_id, statuses={})

    def _attach(self, record: BaseItem, scope: str) -> None:
        self._document.items.append(record)

    def _detach(self, record: BaseItem) -> None:
        self._drop(record, {record.uid})

    def _drop(self, record: BaseItem, uids: Set[str]) -> None:
        self._document.items = [item for item in self._document.items if item.uid not in uids]


# ============================================================
# TREE OF RECORDS
# ============================================================

class TreeAdapter(DocumentAdapter):
    """Items nest inside their parent's `items` list"""

    layout = Layout.TREE

    def __init__(self, document: Optional[TreeDocument] = None):
        self._document = document or TreeDocument()
        self._document.relink()
        super().__init__()

    @property
    def document(self) -> TreeDocument:
        return self._document

    def _records(self) -> Iterator[BaseItem]:
        return self._document.walk()

    def _siblings(self, scope: str) -> List[BaseItem]:
        if scope == ROOT_SCOPE:
            return self._document.todos
        record = self._index.get(scope)
        return record.items if record is not None else []

    def _new_record(self, parent_id: str) -> BaseItem:
        return TreeItem(parent_id=parent_id, statuses={})

    def _attach(self, record: BaseItem, scope: str) -> None:
        self._siblings(scope).append(record)

    def _detach(self, record: BaseItem) -> None:
        siblings = self._siblings(scope_of(record.parent_id))
        siblings[:] = [item for item in siblings if item.uid != record.uid]

    def _drop(self, record: BaseItem, uids: Set[str]) -> None:
        self._detach(record)
