"""
TASKTREE - Error Taxonomy
=========================
Every error raised by the engine derives from TaskTreeError and carries a
`kind` tag plus the identifiers needed to explain it on the command line.

Families:
    NotFoundError  - ItemNotFound, ScopeNotFound, ParentNotFound,
                     UIDNotReachable, HIDOutOfRange, PathNotResolvable,
                     AmbiguousReference
    ShapeError     - InvalidPathSyntax, InvalidMove
    WorkflowError  - UnknownDimension, InvalidValue, TransitionForbidden,
                     NotVisible, UnknownContext, ConfigInvalid
    HookError      - ValidatorRejected, PostHookFailed
    AdapterError   - StorageError (and anything an adapter chooses to raise)
"""

from typing import Optional


class TaskTreeError(Exception):
    """Base class for all tasktree errors"""
    kind = "error"
    exit_code = 1

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ========================================
# NOT FOUND FAMILY
# ========================================

class NotFoundError(TaskTreeError):
    kind = "not_found"


class ItemNotFound(NotFoundError):
    kind = "item_not_found"

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"item '{uid}' not found")


class ScopeNotFound(NotFoundError):
    kind = "scope_not_found"

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"scope '{scope}' not found")


class ParentNotFound(NotFoundError):
    kind = "parent_not_found"

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"parent '{scope}' not found")


class AmbiguousReference(NotFoundError):
    kind = "ambiguous_reference"

    def __init__(self, ref: str, count: int):
        self.ref = ref
        self.count = count
        super().__init__(f"'{ref}' matches {count} items, use a longer id prefix")


class UIDNotReachable(NotFoundError):
    kind = "uid_not_reachable"

    def __init__(self, uid: str, start_scope: str):
        self.uid = uid
        self.start_scope = start_scope
        super().__init__(f"item '{uid}' is not reachable from scope '{start_scope}'")


class HIDOutOfRange(NotFoundError):
    kind = "hid_out_of_range"

    def __init__(self, scope: str, hid: int, size: int):
        self.scope = scope
        self.hid = hid
        self.size = size
        super().__init__(f"invalid HID {hid} in scope '{scope}' (contains {size} items)")


class PathNotResolvable(NotFoundError):
    kind = "path_not_resolvable"

    def __init__(self, path: str, prefix: str):
        self.path = path
        self.prefix = prefix
        super().__init__(f"no item found at position '{prefix}'")


# ========================================
# SHAPE FAMILY
# ========================================

class ShapeError(TaskTreeError):
    kind = "shape"


class InvalidPathSyntax(ShapeError):
    kind = "invalid_path_syntax"

    def __init__(self, path: str, part: Optional[str] = None):
        self.path = path
        self.part = part
        if part is None:
            message = f"invalid position path '{path}'"
        else:
            message = f"invalid position '{part}' in path '{path}' (positions are integers >= 1)"
        super().__init__(message)


class InvalidMove(ShapeError):
    kind = "invalid_move"

    def __init__(self, uid: str, new_parent: str):
        self.uid = uid
        self.new_parent = new_parent
        super().__init__(f"cannot move '{uid}' under '{new_parent}': it is the item itself or one of its descendants")


# ========================================
# WORKFLOW FAMILY
# ========================================

class WorkflowError(TaskTreeError):
    kind = "workflow"


class UnknownDimension(WorkflowError):
    kind = "unknown_dimension"

    def __init__(self, dimension: str):
        self.dimension = dimension
        super().__init__(f"unknown dimension: {dimension}")


class InvalidValue(WorkflowError):
    kind = "invalid_value"

    def __init__(self, dimension: str, value: str):
        self.dimension = dimension
        self.value = value
        super().__init__(f"invalid value '{value}' for dimension '{dimension}'")


class TransitionForbidden(WorkflowError):
    kind = "transition_forbidden"

    def __init__(self, from_value: str, to_value: str, dimension: str):
        self.from_value = from_value
        self.to_value = to_value
        self.dimension = dimension
        super().__init__(
            f"transition from '{from_value}' to '{to_value}' not allowed in dimension '{dimension}'"
        )


class NotVisible(WorkflowError):
    kind = "not_visible"

    def __init__(self, uid: str, context: str):
        self.uid = uid
        self.context = context
        super().__init__(f"item '{uid}' not visible in context '{context}'")


class UnknownContext(WorkflowError):
    kind = "unknown_context"

    def __init__(self, context: str):
        self.context = context
        super().__init__(f"unknown context: {context}")


class ConfigInvalid(WorkflowError):
    kind = "config_invalid"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"invalid workflow config: {reason}")


# ========================================
# HOOK FAMILY
# ========================================

class HookError(TaskTreeError):
    kind = "hook"
    hook = "hook"

    def __init__(self, uid: str, dimension: str, old_value: Optional[str], new_value: str, cause: str):
        self.uid = uid
        self.dimension = dimension
        self.old_value = old_value
        self.new_value = new_value
        super().__init__(
            f"{self.hook} failed for '{uid}' ({dimension}: {old_value or '-'} -> {new_value}): {cause}"
        )


class ValidatorRejected(HookError):
    kind = "validator_rejected"
    hook = "status change validation"


class PostHookFailed(HookError):
    kind = "post_hook_failed"
    hook = "post-change hook"


# ========================================
# ADAPTER FAMILY
# ========================================

class AdapterError(TaskTreeError):
    kind = "adapter"
    exit_code = 2


class StorageError(AdapterError):
    kind = "storage"
