"""
TASKTREE - ID Registry
======================
Maps stable UIDs to ephemeral, 1-based, parent-scoped HIDs.

Each scope (ROOT_SCOPE or a parent UID) owns an ordered list of UIDs; an
item's HID is its index in that list plus one. The order always comes from
the adapter, the registry never reorders.
"""

import logging
import re
from typing import Dict, Iterable, List

from .adapter import StoreAdapter
from .errors import (
    HIDOutOfRange,
    InvalidPathSyntax,
    PathNotResolvable,
    ScopeNotFound,
    UIDNotReachable,
)

logger = logging.getLogger("tasktree.registry")

_POSITION = re.compile(r"^\d+$")


def parse_position_path(path: str) -> List[int]:
    """Split '1.2.3' into [1, 2, 3], rejecting empty, non-integer and non-positive parts."""
    if not path or not path.strip():
        raise InvalidPathSyntax(path)

    positions = []
    for part in path.split("."):
        part = part.strip()
        if not _POSITION.match(part) or int(part) < 1:
            raise InvalidPathSyntax(path, part)
        positions.append(int(part))
    return positions


def is_position_path(ref: str) -> bool:
    """True when ref looks like a dotted position path rather than a UID prefix"""
    return bool(re.match(r"^\s*\d+(\s*\.\s*\d+)*\s*$", ref))


class Registry:
    """In-memory scope -> ordered UID list mapping"""

    def __init__(self):
        self._scopes: Dict[str, List[str]] = {}

    def __contains__(self, scope: str) -> bool:
        return scope in self._scopes

    @property
    def scopes(self) -> List[str]:
        return list(self._scopes)

    # ========================================
    # MAINTENANCE
    # ========================================

    def rebuild_scope(self, adapter: StoreAdapter, scope: str) -> None:
        """Replace a scope's sequence with the adapter's current children"""
        self._scopes[scope] = list(adapter.get_children(scope))

    def rebuild(self, adapter: StoreAdapter) -> None:
        """Rebuild every scope the adapter knows about, dropping stale ones"""
        self._scopes = {}
        for scope in adapter.get_scopes():
            self.rebuild_scope(adapter, scope)
        logger.debug(f"Rebuilt registry: {len(self._scopes)} scopes")

    def add(self, scope: str, uid: str) -> int:
        """Append uid to scope and return its new HID"""
        uids = self._scopes.setdefault(scope, [])
        uids.append(uid)
        return len(uids)

    def remove(self, scope: str, uid: str) -> None:
        """Remove uid from scope, keeping the relative order of the rest"""
        if scope not in self._scopes:
            return
        self._scopes[scope] = [u for u in self._scopes[scope] if u != uid]

    def remove_scope(self, scope: str) -> None:
        self._scopes.pop(scope, None)

    # ========================================
    # LOOKUPS
    # ========================================

    def resolve_hid(self, scope: str, hid: int) -> str:
        if scope not in self._scopes:
            raise ScopeNotFound(scope)
        uids = self._scopes[scope]
        if hid < 1 or hid > len(uids):
            raise HIDOutOfRange(scope, hid, len(uids))
        return uids[hid - 1]

    def get_hid(self, scope: str, uid: str) -> int:
        """HID of uid within scope, or 0 when it is not registered there"""
        try:
            return self._scopes.get(scope, []).index(uid) + 1
        except ValueError:
            return 0

    def get_uids(self, *scopes: str) -> List[str]:
        """Concatenate the sequences of the given scopes; unknown scopes are skipped"""
        result = []
        for scope in scopes:
            result.extend(self._scopes.get(scope, []))
        return result

    # ========================================
    # POSITION PATHS
    # ========================================

    def resolve_position_path(self, start_scope: str, path: str) -> str:
        """
        Resolve a dotted HID path ("1.2.3") to a UID.

        Each HID is resolved in the current scope and the resulting UID becomes
        the scope for the next part.
        """
        positions = parse_position_path(path)

        scope = start_scope
        uid = None
        for i, hid in enumerate(positions):
            try:
                uid = self.resolve_hid(scope, hid)
            except (ScopeNotFound, HIDOutOfRange):
                prefix = ".".join(str(p) for p in positions[:i + 1])
                raise PathNotResolvable(path, prefix) from None
            scope = uid
        return uid

    def resolve_position_paths(self, start_scope: str, paths: Iterable[str]) -> Dict[str, str]:
        """Resolve several paths, stopping at the first failure"""
        return {path: self.resolve_position_path(start_scope, path) for path in paths}

    def get_position_path(self, start_scope: str, uid: str, adapter: StoreAdapter) -> str:
        """
        Inverse of resolve_position_path.

        Walks from uid up to start_scope via adapter.get_parent, collecting the
        HID of each step from the parent's registered sequence.
        """
        hids = []
        current = uid
        seen = set()
        while current != start_scope:
            if current in seen:
                raise UIDNotReachable(uid, start_scope)
            seen.add(current)

            parent = adapter.get_parent(current)
            if parent is None:
                raise UIDNotReachable(uid, start_scope)

            hid = self.get_hid(parent, current)
            if hid == 0:
                raise UIDNotReachable(uid, start_scope)

            hids.append(hid)
            current = parent

        if not hids:
            raise UIDNotReachable(uid, start_scope)

        return ".".join(str(h) for h in reversed(hids))
