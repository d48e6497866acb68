#!/usr/bin/env python3
"""
TASKTREE - CLI Interface
========================
Command-line tool for hierarchical todo lists.

Usage:
    tasktree init
    tasktree add "Write report"
    tasktree add "Collect numbers" --parent 1
    tasktree list
    tasktree complete 1.1
    tasktree reopen 1.1
    tasktree status 1 priority high
    tasktree workflow enable priority

Exit codes: 0 success, 1 user error, 2 storage or adapter failure.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .errors import TaskTreeError
from .manager import ALL_CONTEXT, ItemView, TaskManager
from .presets import available_presets
from .schema import Layout

logger = logging.getLogger("tasktree.cli")


def _print_tree(views: List[ItemView], depth: int = 0) -> None:
    for view in views:
        mark = "x" if view.status == "done" else " "
        print(f"{'  ' * depth}[{mark}] {view.path}. {view.text}")
        _print_tree(view.children, depth + 1)


def _dump(payload) -> None:
    print(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data-path", help="Task file (default: nearest .todos, $TASKTREE_DB_PATH, ~/.todos.json)")

    parser = argparse.ArgumentParser(
        prog="tasktree",
        description="tasktree - hierarchical todo lists with workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tasktree add "Buy milk"                 Add a top-level item
  tasktree add "Oat milk" --parent 1      Add a child of item 1
  tasktree list --all                     Show done items too
  tasktree complete 1.1 2                 Complete several items
  tasktree move 2.1 --to 1                Move item 2.1 under item 1
  tasktree status 1 priority high         Set a status dimension
  tasktree workflow presets               List available workflows
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # INIT command
    init_parser = subparsers.add_parser("init", parents=[common], help="Create an empty task file")
    init_parser.add_argument("--layout", choices=[l.value for l in Layout], default=Layout.FLAT.value,
                             help="Document layout")

    # ADD command
    add_parser = subparsers.add_parser("add", parents=[common], help="Add an item")
    add_parser.add_argument("text", help="Item text")
    add_parser.add_argument("-p", "--parent", help="Parent position path or id prefix")

    # COMPLETE command
    complete_parser = subparsers.add_parser("complete", aliases=["done"], parents=[common], help="Mark items done")
    complete_parser.add_argument("refs", nargs="+", help="Position paths or id prefixes")

    # REOPEN command
    reopen_parser = subparsers.add_parser("reopen", parents=[common], help="Mark items pending again")
    reopen_parser.add_argument("refs", nargs="+", help="Position paths (among all items) or id prefixes")

    # EDIT command
    edit_parser = subparsers.add_parser("edit", parents=[common], help="Change an item's text")
    edit_parser.add_argument("ref", help="Position path or id prefix")
    edit_parser.add_argument("text", help="New text")

    # MOVE command
    move_parser = subparsers.add_parser("move", parents=[common], help="Move an item under another parent")
    move_parser.add_argument("ref", help="Item to move")
    move_parser.add_argument("--to", dest="parent", help="New parent (default: top level)")

    # DELETE command
    delete_parser = subparsers.add_parser("delete", parents=[common], help="Delete an item")
    delete_parser.add_argument("ref", help="Position path or id prefix")
    delete_parser.add_argument("--purge", action="store_true", help="Remove permanently with descendants")

    # RESTORE command
    restore_parser = subparsers.add_parser("restore", parents=[common], help="Restore a deleted item")
    restore_parser.add_argument("uid", help="Id prefix of the deleted item")

    # CLEAN command
    subparsers.add_parser("clean", parents=[common], help="Remove done items permanently")

    # SEARCH command
    search_parser = subparsers.add_parser("search", parents=[common], help="Search item text")
    search_parser.add_argument("query", help="Text to look for")
    search_parser.add_argument("-s", "--case-sensitive", action="store_true", help="Match case")
    search_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # LIST command
    list_parser = subparsers.add_parser("list", parents=[common], help="Show items")
    list_parser.add_argument("-a", "--all", action="store_true", help="Include done items")
    list_parser.add_argument("-c", "--context", help="Workflow context (default: active)")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # STATUS command
    status_parser = subparsers.add_parser("status", parents=[common], help="Set a status dimension")
    status_parser.add_argument("ref", help="Position path or id prefix")
    status_parser.add_argument("dimension", help="Status dimension, e.g. priority")
    status_parser.add_argument("value", help="New value")
    status_parser.add_argument("-f", "--force", action="store_true", help="Skip transition rules")
    status_parser.add_argument("-c", "--context", help="Context the position path refers to")

    # METRICS command
    metrics_parser = subparsers.add_parser("metrics", parents=[common], help="Status counts")
    metrics_parser.add_argument("ref", nargs="?", help="Limit to the subtree of this item")
    metrics_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # REPORT command
    report_parser = subparsers.add_parser("report", parents=[common], help="Tree with progress bar")
    report_parser.add_argument("-c", "--context", help="Workflow context (default: active)")

    # MIGRATE command
    migrate_parser = subparsers.add_parser("migrate", parents=[common], help="Rewrite the file in another layout")
    migrate_parser.add_argument("--layout", choices=[l.value for l in Layout], default=Layout.FLAT.value,
                                help="Target layout")

    # DATAPATH command
    subparsers.add_parser("datapath", parents=[common], help="Show the task file location")

    # WORKFLOW command
    workflow_parser = subparsers.add_parser("workflow", help="Workflow settings")
    workflow_sub = workflow_parser.add_subparsers(dest="workflow_command", help="Workflow commands")
    workflow_sub.add_parser("show", parents=[common], help="Show the active workflow")
    workflow_sub.add_parser("presets", parents=[common], help="List available presets")
    enable_parser = workflow_sub.add_parser("enable", parents=[common], help="Use a preset")
    enable_parser.add_argument("preset", help="Preset name")
    workflow_sub.add_parser("disable", parents=[common], help="Completion-only workflow")

    return parser


def run(args: argparse.Namespace) -> int:
    manager = TaskManager(data_path=getattr(args, "data_path", None))

    if args.command == "init":
        if manager.init(Layout(args.layout)):
            print(f"✅ Created: {manager.data_path()}")
        else:
            print(f"Task file already exists: {manager.data_path()}")

    elif args.command == "add":
        view = manager.add(args.text, parent_ref=args.parent)
        print(f"➕ Added: {view.path}. {view.text}")

    elif args.command in ("complete", "done"):
        for view in manager.complete(args.refs):
            print(f"✅ Completed: {view.text}")

    elif args.command == "reopen":
        for view in manager.reopen(args.refs):
            print(f"🔄 Reopened: {view.path}. {view.text}")

    elif args.command == "edit":
        view = manager.edit(args.ref, args.text)
        print(f"✏️ Edited: {view.path}. {view.text}")

    elif args.command == "move":
        view = manager.move(args.ref, args.parent)
        print(f"📦 Moved: {view.text} -> {view.path}")

    elif args.command == "delete":
        view = manager.delete(args.ref, purge=args.purge)
        if args.purge:
            print(f"🗑️ Purged: {view.text}")
        else:
            print(f"🗑️ Deleted: {view.text} (restore with: tasktree restore {view.uid[:8]})")

    elif args.command == "restore":
        view = manager.restore(args.uid)
        print(f"♻️ Restored: {view.path}. {view.text}")

    elif args.command == "clean":
        removed = manager.clean()
        print(f"🧹 Removed {len(removed)} done item(s)")

    elif args.command == "search":
        results = manager.search(args.query, case_sensitive=args.case_sensitive)
        if args.json:
            _dump([view.model_dump(mode='json', exclude={"children"}) for view in results])
        elif not results:
            print(f"No items match '{args.query}'")
        else:
            for view in results:
                print(f"  {view.path}. {view.text}")

    elif args.command == "list":
        context = ALL_CONTEXT if args.all else args.context
        forest = manager.list(context)
        if args.json:
            _dump([view.model_dump(mode='json') for view in forest])
        elif not forest:
            print("No items")
        else:
            _print_tree(forest)

    elif args.command == "status":
        view = manager.set_status(args.ref, args.dimension, args.value, force=args.force, context=args.context)
        print(f"🔀 {view.text}: {args.dimension} = {view.statuses.get(args.dimension)}")

    elif args.command == "metrics":
        metrics = manager.metrics(args.ref)
        if args.json:
            _dump(metrics.model_dump(mode='json'))
        else:
            print(f"Total: {metrics.total}")
            for dimension, counts in metrics.by_status.items():
                summary = ", ".join(f"{value}={count}" for value, count in counts.items())
                print(f"  {dimension}: {summary}")
            for context, count in metrics.contexts.items():
                print(f"  [{context}] {count}")

    elif args.command == "report":
        print(manager.get_status_report(args.context))

    elif args.command == "migrate":
        count = manager.migrate(Layout(args.layout))
        print(f"📦 Migrated {count} items to {args.layout} layout: {manager.data_path()}")

    elif args.command == "datapath":
        print(manager.data_path())

    elif args.command == "workflow":
        return run_workflow(manager, args)

    return 0


def run_workflow(manager: TaskManager, args: argparse.Namespace) -> int:
    if args.workflow_command == "presets":
        for info in available_presets():
            print(f"  {info.name:<10} {info.display_name}: {info.description}")

    elif args.workflow_command == "enable":
        settings = manager.enable_workflow(args.preset)
        print(f"✅ Workflow enabled: {settings.description}")

    elif args.workflow_command == "disable":
        manager.disable_workflow()
        print("Workflow disabled (completion only)")

    else:
        settings = manager.workflow_settings()
        config = settings.effective_config()
        print(f"Workflow: {settings.description}")
        for dimension in config.dimensions:
            default = f" (default: {dimension.default_value})" if dimension.default_value else ""
            print(f"  {dimension.name}: {', '.join(dimension.values)}{default}")
        print(f"  contexts: {', '.join(config.contexts)}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except TaskTreeError as e:
        # AdapterError carries exit code 2, every other error 1
        print(f"❌ {e.message}", file=sys.stderr)
        return e.exit_code
    except OSError as e:
        logger.debug("Unexpected I/O failure", exc_info=True)
        print(f"❌ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
