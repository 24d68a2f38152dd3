from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from task_tracker.domain.errors import TaskTrackerError
from task_tracker.domain.task_models import Task, TaskPriority, TaskStatus
from task_tracker.infra.storage.json_file import JsonFileStorage
from task_tracker.observability.logging import setup_logging
from task_tracker.services.task_store import TaskStore

DEFAULT_TASKS_PATH = "./data/tasks.json"

SORT_CHOICES = {"created": "createdAt", "priority": "priority", "due": "dueDate"}


def _data_path(ns: argparse.Namespace) -> Path:
    if getattr(ns, "data", None):
        return Path(ns.data).expanduser()
    return Path(os.getenv("TASKS_PATH", DEFAULT_TASKS_PATH))


def _split_tags(raw: Optional[str]) -> Optional[list[str]]:
    if raw is None:
        return None
    return [t.strip() for t in raw.split(",") if t.strip()]


def _print_tasks(tasks: list[Task]) -> None:
    if not tasks:
        print("No tasks found.")
        return
    print(f"{'ID':>3}  {'STATUS':<11} {'PRI':<6} {'DUE':<10}  TITLE")
    print("-" * 64)
    for t in tasks:
        due = t.due_date.date().isoformat() if t.due_date else ""
        tags = f"  [{', '.join(t.tags)}]" if t.tags else ""
        print(f"{t.id:>3}  {t.status.value:<11} {t.priority.value:<6} {due:<10}  {t.title}{tags}")


async def cmd_add(store: TaskStore, ns: argparse.Namespace) -> int:
    data = {"title": ns.title, "description": ns.description or "", "priority": ns.priority}
    if ns.tags:
        data["tags"] = _split_tags(ns.tags)
    if ns.due:
        data["due_date"] = ns.due
    task = await store.add_task(data)
    print(f"Added task #{task.id}: {task.title}")
    return 0


async def cmd_list(store: TaskStore, ns: argparse.Namespace) -> int:
    tasks = store.get_tasks(
        status=ns.status,
        priority=ns.priority,
        tag=ns.tag,
        sort_by=SORT_CHOICES.get(ns.sort) if ns.sort else None,
    )
    _print_tasks(tasks)
    return 0


async def cmd_show(store: TaskStore, ns: argparse.Namespace) -> int:
    task = store.get_task_by_id(ns.task_id)
    if task is None:
        print(f"Task #{ns.task_id} not found.", file=sys.stderr)
        return 1
    print(json.dumps(task.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    return 0


async def cmd_update(store: TaskStore, ns: argparse.Namespace) -> int:
    updates = {
        "title": ns.title,
        "description": ns.description,
        "status": ns.status,
        "priority": ns.priority,
        "tags": _split_tags(ns.tags),
        "due_date": ns.due,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    task = await store.update_task(ns.task_id, updates)
    print(f"Updated task #{task.id}: {task.title} [{task.status.value}]")
    return 0


async def cmd_done(store: TaskStore, ns: argparse.Namespace) -> int:
    changed = await store.mark_as_completed(ns.task_ids)
    if not changed:
        print("Nothing to complete.")
        return 0
    print(f"Completed {len(changed)} task(s): " + ", ".join(f"#{t.id}" for t in changed))
    return 0


async def cmd_delete(store: TaskStore, ns: argparse.Namespace) -> int:
    if not await store.delete_task(ns.task_id):
        print(f"Task #{ns.task_id} not found.", file=sys.stderr)
        return 1
    print(f"Deleted task #{ns.task_id}.")
    return 0


async def cmd_search(store: TaskStore, ns: argparse.Namespace) -> int:
    _print_tasks(store.search_tasks(ns.keyword))
    return 0


async def cmd_stats(store: TaskStore, ns: argparse.Namespace) -> int:
    stats = store.get_statistics()
    print(f"Total:        {stats.total}")
    for status, count in stats.by_status.items():
        print(f"  {status:<12}{count}")
    for priority, count in stats.by_priority.items():
        print(f"  {priority:<12}{count}")
    print(f"Completion:   {stats.completion_rate}")
    print(f"Overdue:      {stats.overdue}")
    return 0


async def cmd_clear(store: TaskStore, ns: argparse.Namespace) -> int:
    removed = await store.clear_all()
    print(f"Removed {removed} task(s).")
    return 0


def cmd_serve(ns: argparse.Namespace) -> int:
    import uvicorn

    os.environ["TASKS_PATH"] = str(_data_path(ns))
    uvicorn.run("task_tracker.app.main:create_app", factory=True, host=ns.host, port=ns.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="task-tracker",
        description="Task Tracker: a single-user task list stored in one JSON file.",
    )
    p.add_argument("--data", help=f"Path to the JSON data file (default: TASKS_PATH env var or {DEFAULT_TASKS_PATH})")
    sub = p.add_subparsers(dest="cmd", required=True)

    statuses = [s.value for s in TaskStatus]
    priorities = [pr.value for pr in TaskPriority]

    s = sub.add_parser("add", help="Add a new task.")
    s.add_argument("title", help="Short task title.")
    s.add_argument("-d", "--description", help="Longer description.")
    s.add_argument("-p", "--priority", choices=priorities, default=TaskPriority.medium.value)
    s.add_argument("--tags", help="Comma-separated tags (e.g., work,urgent).")
    s.add_argument("--due", help="Due date/time in ISO-8601 (e.g., 2026-11-01 or 2026-11-01T09:00).")
    s.set_defaults(func=cmd_add)

    s = sub.add_parser("list", help="List tasks.")
    s.add_argument("--status", choices=statuses)
    s.add_argument("--priority", choices=priorities)
    s.add_argument("--tag")
    s.add_argument("--sort", choices=sorted(SORT_CHOICES))
    s.set_defaults(func=cmd_list)

    s = sub.add_parser("show", help="Show one task as JSON.")
    s.add_argument("task_id", type=int)
    s.set_defaults(func=cmd_show)

    s = sub.add_parser("update", help="Change fields of a task.")
    s.add_argument("task_id", type=int)
    s.add_argument("--title")
    s.add_argument("-d", "--description")
    s.add_argument("--status", choices=statuses)
    s.add_argument("-p", "--priority", choices=priorities)
    s.add_argument("--tags", help="Comma-separated tags; replaces the current ones.")
    s.add_argument("--due")
    s.set_defaults(func=cmd_update)

    s = sub.add_parser("done", help="Mark one or more tasks as completed.")
    s.add_argument("task_ids", type=int, nargs="+")
    s.set_defaults(func=cmd_done)

    s = sub.add_parser("delete", help="Delete a task.")
    s.add_argument("task_id", type=int)
    s.set_defaults(func=cmd_delete)

    s = sub.add_parser("search", help="Search title, description and tags.")
    s.add_argument("keyword")
    s.set_defaults(func=cmd_search)

    s = sub.add_parser("stats", help="Show task statistics.")
    s.set_defaults(func=cmd_stats)

    s = sub.add_parser("clear", help="Delete every task and reset ids.")
    s.set_defaults(func=cmd_clear)

    s = sub.add_parser("serve", help="Run the HTTP API.")
    s.add_argument("--host", default="127.0.0.1")
    s.add_argument("--port", type=int, default=8000)
    s.set_defaults(func=cmd_serve)

    return p


async def _run(command: Callable[[TaskStore, argparse.Namespace], Awaitable[int]], ns: argparse.Namespace) -> int:
    store = TaskStore(JsonFileStorage(_data_path(ns)))
    await store.initialize()
    return await command(store, ns)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    if ns.func is cmd_serve:
        return cmd_serve(ns)
    # records still reach LOG_DIR; the terminal only shows problems
    setup_logging(console_level="WARNING")
    try:
        return int(asyncio.run(_run(ns.func, ns)))
    except TaskTrackerError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
