"""
af tasks - Sync story statuses with native task lists.
"""

import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from agileflow.lib.suggest import suggest_story
from agileflow.teams.task_sync import read_status_stories, reconcile, sync_from_status, sync_to_status

console = Console()


def cmd_tasks_list(args, root: Path) -> int:
    result = sync_from_status(root, epic=args.epic, status=args.status, owner=args.owner)
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1

    if args.json:
        print(json.dumps([t.to_dict() for t in result.tasks], indent=2))
        return 0

    if not result.tasks:
        print("No stories found.")
        return 0

    table = Table(title="Tasks")
    for column in ("Story", "Task status", "Story status", "Owner", "Subject"):
        table.add_column(column)
    for task in result.tasks:
        table.add_row(task.id, task.status, task.metadata.get("original_status") or "-",
                      task.owner or "-", task.subject)
    console.print(table)
    return 0


def cmd_tasks_set(args, root: Path) -> int:
    fields = {"status": args.status}
    if args.owner:
        fields["owner"] = args.owner

    result = sync_to_status(root, args.story, fields)
    if not result.ok:
        print(f"ERROR: {result.error}")
        suggestion = suggest_story(args.story, read_status_stories(root))
        if suggestion:
            print(f"Did you mean: {suggestion}?")
        return 1

    print(f"{args.story}: {args.status}")
    return 0


def cmd_tasks_reconcile(args, root: Path) -> int:
    """Apply native task statuses from a JSON file (list of task objects)."""
    source = Path(args.file)
    try:
        tasks = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"ERROR: Cannot read tasks from {source}: {e}")
        return 1
    if not isinstance(tasks, list) or not all(isinstance(t, dict) for t in tasks):
        print(f"ERROR: {source} must contain a JSON list of task objects")
        return 1

    result = reconcile(root, tasks)
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1

    print(f"Updated {result.updated} story(s)")
    for story_id in result.story_ids:
        print(f"  {story_id}")
    return 0
