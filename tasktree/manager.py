"""
TASKTREE - Task Manager
=======================
Per-command orchestration over the document store and the workflow engine.

Every mutating operation is one transaction:
    load document -> build IDM + StatusManager -> modify -> atomic save
If anything raises, nothing is written.

Items are referenced either by position path ("1.2", resolved among the items
visible in a context) or by a unique prefix of their UID.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .adapter import LEGACY_DIMENSION, ROOT_SCOPE, STATUS_DELETED, visible_statuses
from .adapters import DocumentAdapter
from .config import WorkflowSettings, load_workflow, settings_path
from .errors import (
    AmbiguousReference,
    ItemNotFound,
    NotVisible,
    PathNotResolvable,
    UIDNotReachable,
    UnknownContext,
)
from .idm import IDMManager
from .registry import is_position_path
from .schema import Layout
from .status import StatusManager, StatusMetrics
from .storage import DocumentStore, resolve_data_path
from .workflow import Trigger, WorkflowConfig

logger = logging.getLogger("tasktree")

ACTIVE_CONTEXT = "active"
ALL_CONTEXT = "all"
COMPLETION = "completion"
PENDING = "pending"
DONE = "done"


class ItemView(BaseModel):
    """An item as presented to callers"""
    uid: str
    path: Optional[str] = None   # position path in the requested context, None if hidden there
    text: str
    statuses: Dict[str, str] = Field(default_factory=dict)
    status: str = PENDING
    modified: datetime
    children: List["ItemView"] = Field(default_factory=list)


class Session:
    """Engine objects over one loaded document"""

    def __init__(self, adapter: DocumentAdapter, config: WorkflowConfig):
        self.adapter = adapter
        self.config = config
        self.idm = IDMManager(adapter)
        self.status = StatusManager(adapter, config, idm_manager=self.idm)

    # ========================================
    # CONTEXTS & REFERENCES
    # ========================================

    @property
    def default_context(self) -> str:
        # Workflows without an "active" context fall back to the unfiltered "all"
        return ACTIVE_CONTEXT if ACTIVE_CONTEXT in self.config.contexts else ALL_CONTEXT

    def context(self, name: Optional[str]) -> str:
        if name is None:
            return self.default_context
        if name not in self.config.contexts and name != ALL_CONTEXT:
            raise UnknownContext(name)
        return name

    def resolve(self, ref: str, context: Optional[str] = None) -> str:
        """
        UID for a position path or a UID prefix.

        A bare number that names no position is retried as a UID prefix, so
        ids starting with digits ("4821ab...") stay addressable.
        """
        if not is_position_path(ref):
            return self.find_uid(ref)
        try:
            return self.status.resolve_position_path_in_context(ROOT_SCOPE, ref.strip(), self.context(context))
        except PathNotResolvable:
            if "." in ref or not self._uids_starting_with(ref.strip()):
                raise
            return self.find_uid(ref)

    def resolve_all(self, refs: Sequence[str], context: Optional[str] = None) -> List[str]:
        return [self.resolve(ref, context) for ref in refs]

    def _uids_starting_with(self, prefix: str, include_deleted: bool = False) -> List[str]:
        return [
            record.uid for record in self.adapter.iter_items(include_deleted)
            if record.uid.startswith(prefix)
        ]

    def find_uid(self, prefix: str, include_deleted: bool = False) -> str:
        prefix = prefix.strip()
        if not prefix:
            raise ItemNotFound(prefix)
        matches = self._uids_starting_with(prefix, include_deleted)
        if not matches:
            raise ItemNotFound(prefix)
        if len(matches) > 1 and prefix not in matches:
            raise AmbiguousReference(prefix, len(matches))
        return prefix if prefix in matches else matches[0]

    def path_of(self, uid: str, context: Optional[str] = None) -> Optional[str]:
        try:
            return self.status.get_position_path_in_context(ROOT_SCOPE, uid, self.context(context))
        except (NotVisible, UIDNotReachable):
            return None

    def view(self, uid: str, context: Optional[str] = None, path: Optional[str] = None) -> ItemView:
        record = self.adapter.item(uid)
        return ItemView(
            uid=uid,
            path=path if path is not None else self.path_of(uid, context),
            text=record.text,
            statuses=visible_statuses(record.read_statuses()),
            status=record.status,
            modified=record.modified,
        )

    # ========================================
    # COMPLETION HELPERS
    # ========================================

    @property
    def tracks_completion(self) -> bool:
        return self.config.get_dimension(COMPLETION) is not None

    def reopen_ancestors(self, uid: str) -> None:
        """A finished parent gets new work: mark every done ancestor pending again"""
        if not self.tracks_completion:
            return
        parent = self.adapter.get_parent(uid)
        while parent not in (None, ROOT_SCOPE):
            if self.status.get_status(parent, COMPLETION) == DONE:
                logger.info(f"↩️ Reopened parent: {self.adapter.item(parent).text}")
                self.status.set_status(parent, COMPLETION, PENDING)
            parent = self.adapter.get_parent(parent)

    def recheck_parent(self, scope: Optional[str]) -> None:
        """Re-run bottom-up rules on a parent whose children changed shape"""
        if scope in (None, ROOT_SCOPE):
            return
        self.status.trigger_auto_transitions(Trigger.CHILD_STATUS_CHANGE, scope)


class TaskManager:
    """
    Task document orchestrator.

    Data path: see storage.resolve_data_path. The workflow comes from the
    settings file next to the document unless one is passed in.
    """

    def __init__(
        self,
        data_path: Optional[Union[str, Path]] = None,
        layout: Layout = Layout.FLAT,
        workflow: Optional[WorkflowConfig] = None,
    ):
        self.path = resolve_data_path(data_path)
        self.store = DocumentStore(self.path, default_layout=layout)
        self._workflow = workflow

    @property
    def workflow(self) -> WorkflowConfig:
        if self._workflow is not None:
            return self._workflow
        return load_workflow(self.path)

    @contextmanager
    def _session(self, save: bool = True) -> Iterator[Session]:
        config = self.workflow
        if not save:
            yield Session(self.store.load(), config)
            return
        with self.store.update() as adapter:
            yield Session(adapter, config)

    # ========================================
    # DOCUMENT OPERATIONS
    # ========================================

    def init(self, layout: Optional[Layout] = None) -> bool:
        """Create an empty task file; False when it already exists"""
        return self.store.init(layout)

    def data_path(self) -> Path:
        return self.path

    def migrate(self, layout: Layout) -> int:
        """Rewrite the document in another layout; returns the item count"""
        adapter = self.store.migrate(layout)
        return len(adapter)

    # ========================================
    # ITEM OPERATIONS
    # ========================================

    def add(self, text: str, parent_ref: Optional[str] = None) -> ItemView:
        with self._session() as s:
            parent = ROOT_SCOPE if parent_ref is None else s.resolve(parent_ref)
            uid, _ = s.idm.add(parent)
            s.adapter.set_text(uid, text)
            s.status.initialize_item_with_defaults(uid)
            s.reopen_ancestors(uid)
            view = s.view(uid)

        logger.info(f"➕ Added: {text} ({view.path or view.uid[:8]})")
        return view

    def complete(self, refs: Sequence[str]) -> List[ItemView]:
        """Mark items done. All references are resolved before the first change."""
        with self._session() as s:
            uids = s.resolve_all(refs)
            for uid in uids:
                # An earlier item's cascade may already have completed this one
                if s.status.get_status(uid, COMPLETION) != DONE:
                    s.status.transition(uid, COMPLETION, DONE)
            views = [s.view(uid, ALL_CONTEXT) for uid in uids]

        for view in views:
            logger.info(f"✅ Completed: {view.text}")
        return views

    def reopen(self, refs: Sequence[str]) -> List[ItemView]:
        """Mark items pending again; done items are addressed by their position among all items"""
        with self._session() as s:
            uids = s.resolve_all(refs, ALL_CONTEXT)
            for uid in uids:
                if s.status.get_status(uid, COMPLETION) != PENDING:
                    s.status.transition(uid, COMPLETION, PENDING)
                s.reopen_ancestors(uid)
            views = [s.view(uid) for uid in uids]

        for view in views:
            logger.info(f"🔄 Reopened: {view.text}")
        return views

    def edit(self, ref: str, text: str) -> ItemView:
        with self._session() as s:
            uid = s.resolve(ref)
            s.adapter.set_text(uid, text)
            view = s.view(uid)

        logger.info(f"✏️ Edited: {view.text}")
        return view

    def move(self, ref: str, new_parent_ref: Optional[str] = None) -> ItemView:
        """Re-parent an item; None moves it to the top level"""
        with self._session() as s:
            uid = s.resolve(ref)
            new_parent = ROOT_SCOPE if new_parent_ref is None else s.resolve(new_parent_ref)
            old_parent = s.adapter.get_parent(uid)

            s.idm.move(uid, old_parent, new_parent)
            s.status.clear_visibility_cache()
            if s.tracks_completion and s.status.get_status(uid, COMPLETION) != DONE:
                s.reopen_ancestors(uid)
            s.recheck_parent(old_parent)
            view = s.view(uid, ALL_CONTEXT)

        logger.info(f"📦 Moved: {view.text} -> {view.path}")
        return view

    def set_status(
        self,
        ref: str,
        dimension: str,
        value: str,
        force: bool = False,
        context: Optional[str] = None,
    ) -> ItemView:
        """Validated transition, or a direct write when force is set"""
        with self._session() as s:
            uid = s.resolve(ref, context)
            if force:
                s.status.set_status(uid, dimension, value)
            else:
                s.status.transition(uid, dimension, value)
            view = s.view(uid, ALL_CONTEXT)

        logger.info(f"🔀 {view.text}: {dimension} = {value}")
        return view

    def delete(self, ref: str, purge: bool = False) -> ItemView:
        """Soft delete (restorable) or, with purge, permanent removal with descendants"""
        with self._session() as s:
            uid = s.resolve(ref)
            view = s.view(uid)
            parent = s.adapter.get_parent(uid)
            if purge:
                s.idm.purge(uid)
                s.idm.registry.rebuild_scope(s.adapter, parent)
            else:
                s.idm.soft_delete(uid, parent)
            s.status.clear_visibility_cache()
            s.recheck_parent(parent)

        logger.info(f"🗑️ {'Purged' if purge else 'Deleted'}: {view.text}")
        return view

    def restore(self, uid_prefix: str) -> ItemView:
        with self._session() as s:
            uid = s.find_uid(uid_prefix, include_deleted=True)
            if s.adapter.get_item_status(uid, LEGACY_DIMENSION) != STATUS_DELETED:
                raise ItemNotFound(uid_prefix)
            s.idm.restore(uid, s.adapter.get_parent(uid))
            s.status.clear_visibility_cache()
            view = s.view(uid)

        logger.info(f"♻️ Restored: {view.text}")
        return view

    def clean(self) -> List[ItemView]:
        """Permanently remove every done item together with its descendants"""
        with self._session() as s:
            removed = []
            doomed = set()
            for record in list(s.adapter.iter_items()):
                if record.parent_id in doomed:
                    doomed.add(record.uid)
                    continue
                if (record.statuses or {}).get(COMPLETION) == DONE:
                    removed.append(s.view(record.uid, ALL_CONTEXT))
                    doomed.add(record.uid)

            for view in removed:
                parent = s.adapter.get_parent(view.uid)
                s.idm.purge(view.uid)
                s.idm.registry.rebuild_scope(s.adapter, parent)

        logger.info(f"🧹 Cleaned {len(removed)} finished items")
        return removed

    # ========================================
    # QUERIES
    # ========================================

    def search(self, query: str, case_sensitive: bool = False) -> List[ItemView]:
        """Substring search over item text, in tree order"""
        needle = query if case_sensitive else query.lower()
        with self._session(save=False) as s:
            results = []
            for record in s.adapter.iter_items():
                haystack = record.text if case_sensitive else record.text.lower()
                if needle in haystack:
                    results.append(s.view(record.uid, ALL_CONTEXT))
        return results

    def list(self, context: Optional[str] = None) -> List[ItemView]:
        """Forest of items visible in a context, each with its position path"""
        with self._session(save=False) as s:
            context = s.context(context)

            def build(scope: str, prefix: str) -> List[ItemView]:
                views = []
                for hid, uid in enumerate(s.status.get_children_in_context(scope, context), start=1):
                    path = f"{prefix}{hid}"
                    view = s.view(uid, path=path)
                    view.children = build(uid, f"{path}.")
                    views.append(view)
                return views

            return build(ROOT_SCOPE, "")

    def metrics(self, scope_ref: Optional[str] = None) -> StatusMetrics:
        with self._session(save=False) as s:
            scope = ROOT_SCOPE if scope_ref is None else s.resolve(scope_ref, ALL_CONTEXT)
            return s.status.get_metrics(scope)

    # ========================================
    # WORKFLOW SETTINGS
    # ========================================

    def workflow_settings(self) -> WorkflowSettings:
        return WorkflowSettings.load(settings_path(self.path))

    def enable_workflow(self, preset: str) -> WorkflowSettings:
        settings = self.workflow_settings()
        settings.enable(preset)
        settings.save(settings_path(self.path))
        return settings

    def disable_workflow(self) -> WorkflowSettings:
        settings = self.workflow_settings()
        settings.disable()
        settings.save(settings_path(self.path))
        return settings

    # ========================================
    # REPORTING
    # ========================================

    def get_status_report(self, context: Optional[str] = None) -> str:
        """Human-readable tree with a completion progress bar"""
        forest = self.list(context)
        metrics = self.metrics()
        pct = metrics.progress_pct(COMPLETION, DONE)

        lines = [
            f"📋 {self.path}",
            f"Progress: {'█' * (pct // 10)}{'░' * (10 - pct // 10)} {pct}%",
            "",
        ]

        status_icons = {PENDING: "⬜", DONE: "✅"}

        def render(views: List[ItemView], depth: int) -> None:
            for view in views:
                icon = status_icons.get(view.statuses.get(COMPLETION, ""), "•")
                lines.append(f"{'  ' * depth}{icon} {view.path}. {view.text}")
                render(view.children, depth + 1)

        render(forest, 1)
        if not forest:
            lines.append("  (no items)")
        return "\n".join(lines)
