"""
TASKTREE - Document Schema
==========================
pydantic models for the two on-disk layouts and conversions between them.

    flat  {"items": [{"uid", "parentId", "text", "statuses", "modified"}, ...]}
    tree  {"todos": [{"id", "parentId", "text", "statuses", "modified", "items": [...]}, ...]}

A bare JSON list at the top level is a legacy tree (see parse_legacy_tree).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ROOT_PARENT = ""   # parentId of top-level items on disk


class Layout(str, Enum):
    """On-disk document layouts"""
    FLAT = "flat"
    TREE = "tree"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uid() -> str:
    return str(uuid.uuid4())


class BaseItem(BaseModel):
    """Fields shared by both layouts"""
    model_config = ConfigDict(populate_by_name=True)

    parent_id: str = Field(default=ROOT_PARENT, alias="parentId")
    text: str = ""
    statuses: Optional[Dict[str, str]] = None   # None on records written before workflows
    modified: datetime = Field(default_factory=utcnow)

    def ensure_statuses(self) -> Dict[str, str]:
        """Status map, initialised the first time a legacy record is touched"""
        if self.statuses is None:
            self.statuses = {"completion": "pending"}
        return self.statuses

    def read_statuses(self) -> Dict[str, str]:
        """Copy of the status map; legacy records read as pending"""
        if self.statuses is None:
            return {"completion": "pending"}
        return dict(self.statuses)

    @property
    def status(self) -> str:
        """Single-value status for compatibility surfaces, read from completion"""
        return (self.statuses or {}).get("completion", "pending")

    def touch(self) -> None:
        self.modified = utcnow()


class Item(BaseItem):
    """Flat-layout record"""
    uid: str = Field(default_factory=new_uid)


class TreeItem(BaseItem):
    """Tree-layout record; children are nested"""
    uid: str = Field(default_factory=new_uid, alias="id")
    items: List["TreeItem"] = Field(default_factory=list)


class FlatDocument(BaseModel):
    items: List[Item] = Field(default_factory=list)


class TreeDocument(BaseModel):
    todos: List[TreeItem] = Field(default_factory=list)

    def walk(self) -> Iterator[TreeItem]:
        """Depth-first, pre-order"""
        stack = list(reversed(self.todos))
        while stack:
            item = stack.pop()
            yield item
            stack.extend(reversed(item.items))

    def relink(self) -> None:
        """Make every parentId agree with the nesting"""
        stack = [(item, ROOT_PARENT) for item in self.todos]
        while stack:
            item, parent_id = stack.pop()
            item.parent_id = parent_id
            stack.extend((child, item.uid) for child in item.items)


def dump_document(document: BaseModel) -> Dict[str, Any]:
    return document.model_dump(mode='json', by_alias=True, exclude_none=True)


# ============================================================
# LEGACY DOCUMENTS
# ============================================================

def _legacy_record(record: Dict[str, Any], index: int, parent_id: str) -> Tuple[int, TreeItem]:
    """Convert one legacy record; returns (position, item)"""
    raw_id = record.get("id")
    position = record.get("position") or 0

    if isinstance(raw_id, str) and raw_id:
        uid = raw_id
    else:
        uid = new_uid()
        if isinstance(raw_id, int) and not position:
            position = raw_id
    if not position:
        position = index + 1

    statuses = record.get("statuses")
    if statuses is None and record.get("status"):
        statuses = {"completion": record["status"]}

    item = TreeItem(
        uid=uid,
        parent_id=parent_id,
        text=record.get("text", ""),
        statuses=statuses,
        modified=record.get("modified") or utcnow(),
        items=parse_legacy_list(record.get("items") or [], uid),
    )
    return position, item


def parse_legacy_list(records: List[Dict[str, Any]], parent_id: str = ROOT_PARENT) -> List[TreeItem]:
    """
    Parse a legacy list of records.

    Integer ids are replaced with fresh UUIDs and kept as the ordering
    position; a scalar `status` becomes statuses.completion.
    """
    converted = [_legacy_record(record, i, parent_id) for i, record in enumerate(records)]
    converted.sort(key=lambda pair: pair[0])
    return [item for _, item in converted]


def parse_legacy_tree(records: List[Dict[str, Any]]) -> TreeDocument:
    return TreeDocument(todos=parse_legacy_list(records))


# ============================================================
# LAYOUT CONVERSIONS
# ============================================================

def flatten(document: TreeDocument) -> FlatDocument:
    """Tree -> flat, keeping pre-order so sibling order survives"""
    items = [
        Item(
            uid=node.uid,
            parent_id=node.parent_id,
            text=node.text,
            statuses=dict(node.statuses) if node.statuses is not None else None,
            modified=node.modified,
        )
        for node in document.walk()
    ]
    return FlatDocument(items=items)


def unflatten(document: FlatDocument) -> TreeDocument:
    """Flat -> tree; sibling order is the order of appearance in the flat list"""
    nodes: Dict[str, TreeItem] = {}
    for item in document.items:
        nodes[item.uid] = TreeItem(
            uid=item.uid,
            parent_id=item.parent_id,
            text=item.text,
            statuses=dict(item.statuses) if item.statuses is not None else None,
            modified=item.modified,
        )

    roots = []
    for item in document.items:
        node = nodes[item.uid]
        if item.parent_id == ROOT_PARENT:
            roots.append(node)
        else:
            nodes[item.parent_id].items.append(node)
    return TreeDocument(todos=roots)


# ============================================================
# VALIDATION
# ============================================================

def _parent_links(document: BaseModel) -> List[Tuple[str, str]]:
    if isinstance(document, TreeDocument):
        return [(node.uid, node.parent_id) for node in document.walk()]
    return [(item.uid, item.parent_id) for item in document.items]


def validate_document(document: BaseModel) -> List[str]:
    """
    Structural problems of a document: duplicate or empty UIDs, parents that
    do not exist and parent cycles. Empty list when the document is sound.
    """
    problems = []
    links = _parent_links(document)

    parents: Dict[str, str] = {}
    for uid, parent_id in links:
        if not uid:
            problems.append("item with empty id")
            continue
        if uid in parents:
            problems.append(f"duplicate id '{uid}'")
            continue
        parents[uid] = parent_id

    for uid, parent_id in parents.items():
        if parent_id != ROOT_PARENT and parent_id not in parents:
            problems.append(f"item '{uid}' references missing parent '{parent_id}'")

    reported = set()
    for uid in parents:
        seen = []
        current = uid
        while current != ROOT_PARENT and current in parents:
            if current in seen:
                cycle = frozenset(seen[seen.index(current):])
                if cycle not in reported:
                    reported.add(cycle)
                    problems.append(f"parent cycle through '{current}'")
                break
            seen.append(current)
            current = parents[current]

    return problems
