#!/usr/bin/env python3
"""
Taskboard CLI

Usage:
    taskboard show                          # Kanban columns, position order
    taskboard show --sort priority          # list view, high priority first
    taskboard show --search login           # filter by title/description
    taskboard add "Fix login" --status todo --priority high
    taskboard move todo 0 2                 # reorder within a column
    taskboard move todo 1 0 --to done       # move across columns
    taskboard status <task_id> in-progress  # append to the end of another column
    taskboard delete <task_id>
    taskboard check                         # verify column positions

Backing service: --api URL (or TASKBOARD_API_URL) for HTTP, local SQLite otherwise.
"""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

from .board import KanbanBoard
from .config import Config
from .errors import ConfigError, InvariantViolation, TaskboardError
from .events import OUT_OF_SYNC
from .grouping import SortKey, group_by_status
from .reorder import check_invariant
from .schema import STATUSES, Task, TaskStatus

HEADER_TITLES = {
    TaskStatus.TODO: "TO DO",
    TaskStatus.IN_PROGRESS: "IN PROGRESS",
    TaskStatus.DONE: "DONE",
}


def render(columns: Dict[TaskStatus, List[Task]]) -> str:
    """Plain-text board, one section per column."""
    lines = []
    for status in STATUSES:
        tasks = columns.get(status, [])
        lines.append(f"{HEADER_TITLES[status]} ({len(tasks)})")
        if not tasks:
            lines.append("  (empty)")
        for task in tasks:
            lines.append(
                f"  [{task.position}] {task.title}  ({task.priority.value})  {task.task_id}"
            )
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskboard", description="Ordered Kanban board")
    parser.add_argument("--config", help="Path to taskboard.yaml")
    parser.add_argument("--workspace", help="Workspace ID")
    parser.add_argument("--api", help="Task service base URL")
    parser.add_argument("--db", help="SQLite database path (local mode)")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the board")
    show.add_argument("--sort", choices=[k.value for k in SortKey], default="position")
    show.add_argument("--search", default="")

    add = sub.add_parser("add", help="Add a task at the end of a column")
    add.add_argument("title")
    add.add_argument("--status", default="todo", choices=[s.value for s in STATUSES])
    add.add_argument("--priority", default="medium", choices=["low", "medium", "high"])
    add.add_argument("--description", default="")
    add.add_argument("--assign", action="append", default=[], help="User ID (repeatable)")

    move = sub.add_parser("move", help="Move a task by column index")
    move.add_argument("column", choices=[s.value for s in STATUSES])
    move.add_argument("from_index", type=int)
    move.add_argument("to_index", type=int)
    move.add_argument("--to", dest="target", choices=[s.value for s in STATUSES])

    status = sub.add_parser("status", help="Move a task to the end of another column")
    status.add_argument("task_id")
    status.add_argument("new_status", choices=[s.value for s in STATUSES])

    delete = sub.add_parser("delete", help="Delete a task")
    delete.add_argument("task_id")

    sub.add_parser("check", help="Verify positions are 0..n-1 in every column")
    return parser


async def run(args: argparse.Namespace, cfg: Config) -> int:
    board = KanbanBoard.from_config(cfg)
    board.events.subscribe(
        OUT_OF_SYNC,
        lambda task_id, error: print(
            f"Task {task_id} is out of sync, refresh to continue ({error})", file=sys.stderr
        ),
    )
    await board.load()
    code = 0

    try:
        if args.command == "show":
            tasks = board.search(args.search)
            print(render(group_by_status(tasks, SortKey(args.sort))), end="")

        elif args.command == "add":
            task = await board.add_task(
                args.title,
                status=args.status,
                priority=args.priority,
                description=args.description,
                assigned_to=args.assign,
            )
            print(f"Added {task.task_id} at {task.status.value}[{task.position}]")

        elif args.command == "move":
            result = board.move_task(args.column, args.from_index, args.to_index, args.target)
            if not result.ok:
                print(f"Move rejected: {result.error}", file=sys.stderr)
                code = 1
            else:
                print(f"Moved; {len(result.changed)} task(s) repositioned")

        elif args.command == "status":
            result = board.change_status(args.task_id, args.new_status)
            if not result.ok:
                print(f"Move rejected: {result.error}", file=sys.stderr)
                code = 1
            else:
                print(f"{args.task_id} → {args.new_status}")

        elif args.command == "delete":
            task = await board.delete_task(args.task_id)
            print(f"Deleted {task.task_id} ({task.title})")

        elif args.command == "check":
            check_invariant(board.snapshot.tasks())
            print("OK: every column is contiguous")
    finally:
        await board.close()

    if board.out_of_sync:
        code = 2
    return code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    if args.workspace:
        cfg.workspace_id = args.workspace
    if args.api:
        cfg.api_url = args.api
    if args.db:
        cfg.db_path = args.db
        cfg.resolve_paths()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    try:
        return asyncio.run(run(args, cfg))
    except InvariantViolation as e:
        print(f"Invariant violated: {e}", file=sys.stderr)
        return 3
    except TaskboardError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
