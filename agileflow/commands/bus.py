"""
af bus - Send and read agent bus messages, rotate the log.
"""

import json
from pathlib import Path

from agileflow.lib.paths import get_bus_log_path
from agileflow.teams.bus import get_log_stats, read_messages, rotate_log, send_message


def cmd_bus_send(args, root: Path) -> int:
    message = {"from": args.sender, "type": args.type}
    if args.to:
        message["to"] = args.to
    if args.task:
        message["task_id"] = args.task
    if args.status:
        message["status"] = args.status
    if args.text:
        message["message"] = args.text

    result = send_message(root, message)
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1
    print(json.dumps(result.messages[0]))
    return 0


def cmd_bus_tail(args, root: Path) -> int:
    result = read_messages(
        root,
        from_=args.sender,
        to=args.to,
        type_=args.type,
        since=args.since,
        limit=args.limit,
    )
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1
    for message in result.messages:
        print(json.dumps(message))
    return 0


def cmd_bus_rotate(args, root: Path) -> int:
    result = rotate_log(get_bus_log_path(root), keep_recent=args.keep, threshold=args.threshold)
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1
    if result.archived:
        print(f"Archived {result.archived} message(s) to {result.archive_file}, kept {result.kept}")
    else:
        print(f"{result.message} ({result.kept} message(s))")
    return 0


def cmd_bus_stats(args, root: Path) -> int:
    stats = get_log_stats(get_bus_log_path(root))
    print(f"Current log: {stats['current_lines']} message(s), {stats['current_size']} bytes")
    for archive in stats["archives"]:
        print(f"  {archive['filename']}: {archive['lines']} message(s), {archive['size']} bytes")
    print(f"Archived total: {stats['total_archived']}")
    return 0
