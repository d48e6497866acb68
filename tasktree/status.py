"""
TASKTREE - Status Manager
=========================
The workflow engine. Sits on a WorkflowStoreAdapter and a Registry and
answers:

- get/set status per dimension (with validation and lifecycle hooks)
- validated transitions
- context-aware visibility and context-aware position paths
- auto-transition propagation (e.g. bottom-up completion)
- aggregated metrics

Order inside one set_status call is fixed:
    validate -> write -> clear visibility cache -> post-hook
    -> self cascade -> parent cascade
"""

import logging
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field

from .adapter import ROOT_SCOPE, StoreAdapter, WorkflowStoreAdapter, visible_statuses
from .errors import (
    HookError,
    InvalidValue,
    NotVisible,
    PostHookFailed,
    TransitionForbidden,
    UnknownDimension,
    ValidatorRejected,
)
from .idm import IDMManager
from .registry import Registry
from .workflow import (
    Action,
    AutoTransitionRule,
    Condition,
    StatusDimension,
    Trigger,
    WorkflowConfig,
    matches_context,
)

logger = logging.getLogger("tasktree.workflow")


class StatusMetrics(BaseModel):
    """Aggregated counts for a subtree"""
    total: int = 0
    by_status: Dict[str, Dict[str, int]] = Field(default_factory=dict)   # dimension -> value -> count
    contexts: Dict[str, int] = Field(default_factory=dict)              # context -> visible items

    def add_item(self, statuses: Dict[str, str]) -> None:
        self.total += 1
        for dimension, value in statuses.items():
            counts = self.by_status.setdefault(dimension, {})
            counts[value] = counts.get(value, 0) + 1

    def get_count(self, dimension: str, value: str) -> int:
        return self.by_status.get(dimension, {}).get(value, 0)

    def get_context_count(self, context: str) -> int:
        return self.contexts.get(context, 0)

    def set_context_count(self, context: str, count: int) -> None:
        self.contexts[context] = count

    def progress_pct(self, dimension: str = "completion", value: str = "done") -> int:
        if not self.total:
            return 0
        return int((self.get_count(dimension, value) / self.total) * 100)


class _ContextView(StoreAdapter):
    """Adapter overlay whose children are those visible in one context"""

    def __init__(self, manager: "StatusManager", context: str):
        self.manager = manager
        self.context = context

    def get_children(self, scope: str) -> List[str]:
        return self.manager.get_children_in_context(scope, self.context)

    def get_scopes(self) -> List[str]:
        return self.manager.adapter.get_scopes()

    def get_all_uids(self) -> List[str]:
        return self.manager.adapter.get_all_uids()

    def get_parent(self, uid: str) -> Optional[str]:
        return self.manager.adapter.get_parent(uid)


class StatusManager:
    """
    Multi-dimensional status with context-aware visibility.

    Owns only the WorkflowConfig and the visibility cache; every status it
    reports is read live from the adapter.
    """

    def __init__(
        self,
        adapter: WorkflowStoreAdapter,
        config: WorkflowConfig,
        registry: Optional[Registry] = None,
        idm_manager: Optional[IDMManager] = None,
    ):
        config.validate_rules()

        self.adapter = adapter
        self.config = config.model_copy(deep=True)
        # Numbers items of contexts without rules; shared with the IDM when given
        if registry is None:
            registry = idm_manager.registry if idm_manager else Registry()
        self.registry = registry

        self._visibility_cache: Dict[str, Dict[str, bool]] = {}
        self._in_progress: Set[str] = set()

        for warning in self.config.lint():
            logger.debug(f"Rule will be skipped: {warning}")

    # ========================================
    # GET / SET
    # ========================================

    def _dimension(self, name: str) -> StatusDimension:
        dimension = self.config.get_dimension(name)
        if dimension is None:
            raise UnknownDimension(name)
        return dimension

    def get_status(self, uid: str, dimension: str) -> Optional[str]:
        """Current value, falling back to the dimension default"""
        dim = self._dimension(dimension)
        value = self.adapter.get_item_status(uid, dimension)
        if value is None:
            return dim.default_value
        return value

    def get_all_statuses(self, uid: str) -> Dict[str, str]:
        return self.adapter.get_item_statuses(uid)

    def set_status(self, uid: str, dimension: str, value: str) -> None:
        """
        Write a status value, bypassing transition rules.

        The value must belong to the dimension and the adapter's
        validate_status_change hook may veto it. Re-entry for a uid already
        being set higher up the call stack is a no-op.
        """
        dim = self._dimension(dimension)
        if not dim.has_value(value):
            raise InvalidValue(dimension, value)

        if uid in self._in_progress:
            logger.debug(f"Skipping re-entrant status change on {uid}")
            return

        self._in_progress.add(uid)
        try:
            old_value = self._read_old_value(uid, dimension)
            self._run_hook(ValidatorRejected, self.adapter.validate_status_change, uid, dimension, old_value, value)

            self.adapter.set_item_status(uid, dimension, value)
            self.clear_visibility_cache()

            # The write has already happened if this fails
            self._run_hook(PostHookFailed, self.adapter.on_status_change, uid, dimension, old_value, value)

            self.trigger_auto_transitions(Trigger.STATUS_CHANGE, uid)
            self._trigger_parent_auto_transitions(uid)
        finally:
            self._in_progress.discard(uid)

    def set_multiple_statuses(self, uid: str, statuses: Dict[str, str]) -> None:
        """Validate every entry, apply them together, then run hooks and cascades once"""
        for dimension, value in statuses.items():
            if not self._dimension(dimension).has_value(value):
                raise InvalidValue(dimension, value)

        if uid in self._in_progress:
            logger.debug(f"Skipping re-entrant status change on {uid}")
            return

        self._in_progress.add(uid)
        try:
            old_statuses = self.adapter.get_item_statuses(uid)
            for dimension, value in statuses.items():
                self._run_hook(
                    ValidatorRejected, self.adapter.validate_status_change,
                    uid, dimension, old_statuses.get(dimension), value
                )

            self.adapter.set_multiple_statuses(uid, statuses)
            self.clear_visibility_cache()

            for dimension, value in statuses.items():
                old_value = old_statuses.get(dimension)
                if old_value != value:
                    self._run_hook(PostHookFailed, self.adapter.on_status_change, uid, dimension, old_value, value)

            self.trigger_auto_transitions(Trigger.STATUS_CHANGE, uid)
            self._trigger_parent_auto_transitions(uid)
        finally:
            self._in_progress.discard(uid)

    def initialize_item_with_defaults(self, uid: str) -> None:
        """Write every dimension default on a freshly created item"""
        defaults = self.config.defaults()
        if defaults:
            self.adapter.set_multiple_statuses(uid, defaults)
            self.clear_visibility_cache()

    def _read_old_value(self, uid: str, dimension: str) -> Optional[str]:
        return self.adapter.get_item_status(uid, dimension)

    @staticmethod
    def _run_hook(error_cls, hook, uid: str, dimension: str, old_value: Optional[str], value: str) -> None:
        try:
            hook(uid, dimension, old_value, value)
        except HookError:
            raise
        except Exception as e:
            raise error_cls(uid, dimension, old_value, value, str(e)) from e

    # ========================================
    # TRANSITIONS
    # ========================================

    def can_transition(self, uid: str, dimension: str, new_value: str) -> None:
        """Raise if moving `dimension` of uid to new_value breaks the transition rules"""
        dim = self._dimension(dimension)
        if not dim.has_value(new_value):
            raise InvalidValue(dimension, new_value)

        current = self.adapter.get_item_status(uid, dimension)
        if current is None:
            if not dim.default_value:
                raise TransitionForbidden("", new_value, dimension)
            current = dim.default_value

        rules = self.config.transitions.get(dimension)
        if not rules:
            return

        for rule in rules:
            if rule.can_transition(current, new_value):
                if rule.validator is not None:
                    rule.validator(uid, self.adapter)
                return

        raise TransitionForbidden(current, new_value, dimension)

    def is_transition_allowed(self, uid: str, dimension: str, new_value: str) -> bool:
        try:
            self.can_transition(uid, dimension, new_value)
        except TransitionForbidden:
            return False
        return True

    def transition(self, uid: str, dimension: str, new_value: str) -> None:
        self.can_transition(uid, dimension, new_value)
        self.set_status(uid, dimension, new_value)

    # ========================================
    # CONTEXT-AWARE VISIBILITY
    # ========================================

    def is_visible_in_context(self, uid: str, context: str) -> bool:
        cached = self._visibility_cache.get(context, {}).get(uid)
        if cached is not None:
            return cached

        rules = self.config.rules_for(context)
        if not rules:
            visible = True
        else:
            visible = matches_context(rules, context, self.adapter.get_item_statuses(uid))

        self._visibility_cache.setdefault(context, {})[uid] = visible
        return visible

    def get_children_in_context(self, parent_scope: str, context: str) -> List[str]:
        rules = self.config.rules_for(context)
        if not rules:
            return self.adapter.get_children(parent_scope)
        return self.adapter.get_children_in_context(parent_scope, context, rules)

    def get_all_items_in_context(self, context: str) -> List[str]:
        rules = self.config.rules_for(context)
        if not rules:
            return self.adapter.get_all_uids()
        return self.adapter.get_all_items_in_context(context, rules)

    def clear_visibility_cache(self) -> None:
        self._visibility_cache = {}

    # ========================================
    # CONTEXT-AWARE POSITION PATHS
    # ========================================

    def context_registry(self, context: str) -> Registry:
        """
        Registry whose HIDs only count items visible in context.

        A context without rules sees every item, so the unfiltered registry is
        refreshed from the adapter and used as is. Filtered contexts get a
        throwaway registry built over a _ContextView.
        """
        if not self.config.rules_for(context):
            self.registry.rebuild(self.adapter)
            return self.registry

        view = _ContextView(self, context)
        registry = Registry()
        for scope in self.adapter.get_scopes():
            try:
                registry.rebuild_scope(view, scope)
            except Exception as e:
                logger.warning(f"Skipping scope {scope} in context '{context}': {e}")
        return registry

    def resolve_position_path_in_context(self, start_scope: str, path: str, context: str) -> str:
        return self.context_registry(context).resolve_position_path(start_scope, path)

    def get_position_path_in_context(self, start_scope: str, uid: str, context: str) -> str:
        if not self.is_visible_in_context(uid, context):
            raise NotVisible(uid, context)
        view = _ContextView(self, context)
        return self.context_registry(context).get_position_path(start_scope, uid, view)

    # ========================================
    # AUTO-TRANSITIONS
    # ========================================

    def trigger_auto_transitions(self, trigger: str, uid: str) -> None:
        """Run every rule listening to `trigger`, in configuration order"""
        for rule in self.config.auto_transitions:
            fires = rule.trigger == trigger or (
                rule.trigger == Trigger.STATUS_CHANGE and trigger == Trigger.CHILD_STATUS_CHANGE
            )
            if fires:
                self._execute_auto_transition(rule, uid)

    def _execute_auto_transition(self, rule: AutoTransitionRule, uid: str) -> None:
        if rule.condition == Condition.ALL_CHILDREN_STATUS_EQUALS:
            self._all_children_status_equals(rule, uid)
        else:
            logger.debug(f"Unknown auto-transition condition '{rule.condition}', skipping")

    def _all_children_status_equals(self, rule: AutoTransitionRule, uid: str) -> None:
        children = self.adapter.get_children(uid)
        if not children:
            return

        for child in children:
            if self.adapter.get_item_status(child, rule.target_dimension) != rule.condition_value:
                return

        if self.adapter.get_item_status(uid, rule.target_dimension) == rule.action_value:
            return

        if rule.action == Action.SET_STATUS:
            logger.debug(f"⚡ Auto-transition: {uid} {rule.target_dimension} -> {rule.action_value}")
            self.set_status(uid, rule.target_dimension, rule.action_value)
        else:
            logger.debug(f"Unknown auto-transition action '{rule.action}', skipping")

    def _trigger_parent_auto_transitions(self, uid: str) -> None:
        parent = self.adapter.get_parent(uid)
        # The root sentinel is not an item and carries no status
        if parent is None or parent == ROOT_SCOPE:
            return
        self.trigger_auto_transitions(Trigger.CHILD_STATUS_CHANGE, parent)

    # ========================================
    # METRICS
    # ========================================

    def get_metrics(self, scope: str = ROOT_SCOPE) -> StatusMetrics:
        metrics = StatusMetrics()

        for uid in self._subtree(scope):
            try:
                statuses = self.adapter.get_item_statuses(uid)
            except Exception as e:
                logger.warning(f"Skipping {uid} in metrics: {e}")
                continue
            metrics.add_item(visible_statuses(statuses))

        for context in self.config.contexts:
            metrics.set_context_count(context, len(self.get_all_items_in_context(context)))

        return metrics

    def _subtree(self, scope: str) -> List[str]:
        items = []
        for child in self.adapter.get_children(scope):
            items.append(child)
            try:
                items.extend(self._subtree(child))
            except Exception as e:
                logger.warning(f"Skipping subtree of {child}: {e}")
        return items
